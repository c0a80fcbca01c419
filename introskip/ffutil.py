"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import re
import shutil
import subprocess
from pathlib import Path

from introskip.models import BlackFrame, Chapter, QueuedEpisode, TimeRange

logger = logging.getLogger(__name__)

_BLACKFRAME_RE = re.compile(r"pblack:(\d+)\s.*?\bt:([\d.]+)")


class FFmpegNotFoundError(RuntimeError):
    pass


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe_duration(input_path: Path, ffprobe: str = "ffprobe") -> float:
    """Return the container duration in seconds."""
    cmd = [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)
    return float(data["format"]["duration"])


def parse_chapters(data: dict) -> list[Chapter]:
    """Convert ffprobe ``-show_chapters`` JSON into ordered Chapters."""
    chapters = [
        Chapter(
            name=(c.get("tags") or {}).get("title", ""),
            start=float(c["start_time"]),
        )
        for c in data.get("chapters", [])
    ]
    chapters.sort(key=lambda c: c.start)
    return chapters


def get_chapters(input_path: Path, ffprobe: str = "ffprobe") -> list[Chapter]:
    """Read chapter markers; a file without chapters yields an empty list."""
    cmd = [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_chapters",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0 or not result.stdout:
        logger.warning("ffprobe could not read chapters from %s", input_path)
        return []
    return parse_chapters(json.loads(result.stdout))


def parse_black_frames(stderr: str, minimum_percentage: int) -> list[BlackFrame]:
    """Parse blackframe filter output, keeping frames at least this black.

    Times are relative to the start of the probed clip.
    """
    frames: list[BlackFrame] = []
    for m in _BLACKFRAME_RE.finditer(stderr):
        pblack = int(m.group(1))
        if pblack >= minimum_percentage:
            frames.append(BlackFrame(time=float(m.group(2)), percentage=pblack))
    frames.sort(key=lambda f: f.time)
    return frames


def detect_black_frames(
    input_path: Path,
    time_range: TimeRange,
    minimum_percentage: int,
    ffmpeg: str = "ffmpeg",
) -> list[BlackFrame]:
    """Run the blackframe filter over a short clip of the file."""
    cmd = [
        ffmpeg,
        "-hide_banner",
        "-ss", f"{max(time_range.start, 0.0):.3f}",
        "-i", str(input_path),
        "-t", f"{time_range.duration:.3f}",
        "-an", "-dn", "-sn",
        "-vf", f"blackframe=amount={minimum_percentage}",
        "-f", "null", "-",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.returncode != 0 and not result.stderr:
        raise RuntimeError(
            f"ffmpeg blackframe failed (rc={result.returncode}) with no output"
        )

    return parse_black_frames(result.stderr, minimum_percentage)


class FileChapterSource:
    """Chapter source reading markers straight from the media files."""

    def __init__(self, paths: dict[str, str], ffprobe: str = "ffprobe"):
        self._paths = paths
        self._ffprobe = ffprobe
        self._cache: dict[str, list[Chapter]] = {}

    def get_chapters(self, episode_id: str) -> list[Chapter]:
        if episode_id not in self._cache:
            path = self._paths.get(episode_id)
            if path is None:
                logger.warning("Item with ID %s not found", episode_id)
                return []
            self._cache[episode_id] = get_chapters(Path(path), self._ffprobe)
        return self._cache[episode_id]


class FFmpegFrameSampler:
    """Frame sampler backed by ffmpeg's blackframe filter."""

    def __init__(self, ffmpeg: str = "ffmpeg"):
        self._ffmpeg = ffmpeg

    def detect_black_frames(
        self, episode: QueuedEpisode, time_range: TimeRange, minimum_percentage: int
    ) -> list[BlackFrame]:
        return detect_black_frames(
            Path(episode.path), time_range, minimum_percentage, ffmpeg=self._ffmpeg
        )
