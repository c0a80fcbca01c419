"""Thin CLI entry point: queues files and runs the analysis engine."""

import argparse
import logging
import sys
from pathlib import Path

from introskip import ffutil
from introskip.analyzers.blackframe import BlackFrameAnalyzer
from introskip.analyzers.chapters import ChapterAnalyzer
from introskip.config import ConfigStore
from introskip.engine import analyze_library, build_analyzers, build_queue
from introskip.models import AnalysisMode
from introskip.store import SegmentStore

MODES = {
    "intro": (AnalysisMode.INTRODUCTION,),
    "credits": (AnalysisMode.CREDITS,),
    "both": (AnalysisMode.INTRODUCTION, AnalysisMode.CREDITS),
}


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="introskip",
        description="Detect intros and end credits, serve them to players.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    parser.add_argument("--store", type=Path, default=Path("segments.json"), help="Segment store file")
    parser.add_argument("--config", type=Path, help="Path to a JSON configuration file")
    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser("analyze", help="Detect segments in video files")
    analyze.add_argument("videos", nargs="+", type=Path, help="Episode files, grouped into seasons by directory")
    analyze.add_argument("--mode", choices=sorted(MODES), default="both", help="Which segments to detect")
    analyze.add_argument("--movie", action="store_true", help="Treat inputs as movies (longer credits)")

    serve = sub.add_parser("serve", help="Serve detected segments over HTTP")
    serve.add_argument("--port", type=int, default=8096, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING - 10 * min(args.verbose, 2),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    config_store = ConfigStore(path=args.config)
    store = SegmentStore.load(args.store)

    if args.command == "serve":
        from introskip.web import create_app
        app = create_app(store=store, config_store=config_store)
        print(f"introskip API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    config = config_store.get()
    try:
        ffutil.check_ffmpeg(config.ffmpeg_path, config.ffprobe_path)
    except ffutil.FFmpegNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    queue = build_queue(
        args.videos,
        lambda p: ffutil.probe_duration(p, config.ffprobe_path),
        is_movie=args.movie,
    )
    chapters = ffutil.FileChapterSource(
        {e.episode_id: e.path for e in queue}, config.ffprobe_path
    )
    analyzers = build_analyzers(
        ChapterAnalyzer(chapters, store, config_store.get),
        BlackFrameAnalyzer(
            chapters, ffutil.FFmpegFrameSampler(config.ffmpeg_path), store, config_store.get
        ),
    )

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    result = analyze_library(
        queue, analyzers, store, modes=MODES[args.mode], on_progress=on_progress
    )
    store.save()

    print()
    print(f"Done! Analyzed {result.processed} files, store: {args.store}")
    for episode in queue:
        for mode in MODES[args.mode]:
            seg = store.get(episode.episode_id, mode)
            if seg is not None and seg.valid:
                print(f"  {episode.name}: {mode.value} {seg.start:.1f}s -> {seg.end:.1f}s")
