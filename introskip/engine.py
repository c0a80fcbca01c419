"""Orchestrator: runs the analyzer chain over a library queue, one season at a time."""

import logging
import re
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from introskip.analyzers.base import MediaFileAnalyzer
from introskip.analyzers.blackframe import BlackFrameAnalyzer
from introskip.analyzers.chapters import ChapterAnalyzer
from introskip.models import AnalysisMode, AnalyzerAction, QueuedEpisode
from introskip.store import SegmentStore

logger = logging.getLogger(__name__)

_EPISODE_RE = re.compile(r"[Ss](\d{1,3})[Ee](\d{1,4})")

# Only one analysis batch may run in the process at a time.
_batch_lock = threading.Lock()


class AnalysisInProgressError(RuntimeError):
    pass


@contextmanager
def acquire_batch_lock(timeout: float | None = None) -> Iterator[None]:
    """Hold the process-wide analysis lock for the duration of the block."""
    acquired = _batch_lock.acquire(timeout=-1 if timeout is None else timeout)
    if not acquired:
        raise AnalysisInProgressError("Another analysis batch is already running")
    try:
        yield
    finally:
        _batch_lock.release()


@dataclass
class BatchResult:
    processed: int = 0
    segments_found: dict[AnalysisMode, int] = field(default_factory=dict)
    cancelled: bool = False


def build_analyzers(
    chapter_analyzer: ChapterAnalyzer,
    black_frame_analyzer: BlackFrameAnalyzer,
) -> dict[AnalysisMode, list[MediaFileAnalyzer]]:
    """The fixed analyzer chain per mode, cheapest evidence first."""
    return {
        AnalysisMode.INTRODUCTION: [chapter_analyzer],
        AnalysisMode.CREDITS: [chapter_analyzer, black_frame_analyzer],
    }


def _allowed(analyzer: MediaFileAnalyzer, action: AnalyzerAction) -> bool:
    if action == AnalyzerAction.CHAPTER:
        return isinstance(analyzer, ChapterAnalyzer)
    if action == AnalyzerAction.BLACK_FRAME:
        return isinstance(analyzer, BlackFrameAnalyzer)
    return True


def group_by_season(queue: list[QueuedEpisode]) -> "OrderedDict[str, list[QueuedEpisode]]":
    seasons: OrderedDict[str, list[QueuedEpisode]] = OrderedDict()
    for episode in queue:
        seasons.setdefault(episode.season_id, []).append(episode)
    for episodes in seasons.values():
        episodes.sort(key=lambda e: (e.episode_number is None, e.episode_number or 0))
    return seasons


def analyze_library(
    queue: list[QueuedEpisode],
    analyzers: dict[AnalysisMode, list[MediaFileAnalyzer]],
    store: SegmentStore,
    modes: tuple[AnalysisMode, ...] = (AnalysisMode.INTRODUCTION, AnalysisMode.CREDITS),
    cancel: threading.Event | None = None,
    on_progress: Callable[[str, float], None] | None = None,
) -> BatchResult:
    """Run every analyzer for every season and mode.

    Args:
        queue: Episodes to analyze; ``analyzed`` flags are updated in place.
        analyzers: Analyzer chain per mode, applied in order.
        store: Receives detected segments; also holds per-season actions.
        modes: Which modes to analyze.
        cancel: Checked between seasons here and between episodes by analyzers.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    result = BatchResult(segments_found={mode: 0 for mode in modes})

    with acquire_batch_lock():
        seasons = group_by_season(queue)
        total = max(len(seasons), 1)

        for n, (season_id, episodes) in enumerate(seasons.items()):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break

            _progress(f"Analyzing season {season_id}", n / total)
            for mode in modes:
                already = {e.episode_id for e in episodes if e.is_analyzed(mode)}
                action = store.get_analyzer_action(season_id, mode)
                if action == AnalyzerAction.SKIP:
                    logger.info("Season %s: %s analysis skipped by action", season_id, mode.value)
                    continue

                for analyzer in analyzers.get(mode, []):
                    if not _allowed(analyzer, action):
                        continue
                    if all(e.is_analyzed(mode) for e in episodes):
                        break
                    try:
                        analyzer.analyze(episodes, mode, cancel)
                    except Exception:
                        logger.exception(
                            "Season %s: %s failed for %s",
                            season_id, type(analyzer).__name__, mode.value,
                        )

                found = sum(
                    1 for e in episodes
                    if e.is_analyzed(mode) and e.episode_id not in already
                )
                result.segments_found[mode] += found
                logger.info(
                    "Season %s: found %s in %d/%d episodes",
                    season_id, mode.value.lower(), found, len(episodes) - len(already),
                )

            result.processed += len(episodes)

        if cancel is not None and cancel.is_set():
            result.cancelled = True

    _progress("Done", 1.0)
    return result


def build_queue(
    paths: list[Path],
    probe_duration: Callable[[Path], float],
    is_movie: bool = False,
) -> list[QueuedEpisode]:
    """Queue media files for analysis; the parent directory is the season."""
    queue: list[QueuedEpisode] = []
    for path in paths:
        m = _EPISODE_RE.search(path.name)
        queue.append(
            QueuedEpisode(
                episode_id=str(path.resolve()),
                season_id=str(path.resolve().parent),
                path=str(path),
                name=path.stem,
                duration=probe_duration(path),
                is_movie=is_movie,
                episode_number=int(m.group(2)) if m else None,
            )
        )
    return queue
