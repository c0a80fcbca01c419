"""Shared data types used across introskip."""

from dataclasses import dataclass, field
from enum import Enum


class AnalysisMode(str, Enum):
    """Which kind of segment an analyzer is looking for."""

    INTRODUCTION = "Introduction"
    CREDITS = "Credits"


class AnalyzerAction(str, Enum):
    """Per-season override controlling which analyzers run for a mode."""

    DEFAULT = "Default"
    CHAPTER = "Chapter"
    BLACK_FRAME = "BlackFrame"
    SKIP = "Skip"


@dataclass(frozen=True)
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"TimeRange end {self.end} is before start {self.start}")

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Segment:
    """A detected intro or credits range inside one episode.

    A zero-length segment is a "nothing detected" sentinel; see ``valid``.
    """

    episode_id: str
    start: float = 0.0
    end: float = 0.0

    @classmethod
    def from_range(cls, episode_id: str, time_range: TimeRange) -> "Segment":
        return cls(episode_id=episode_id, start=time_range.start, end=time_range.end)

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def valid(self) -> bool:
        return self.end > self.start

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def to_dict(self) -> dict:
        return {
            "EpisodeId": self.episode_id,
            "Start": self.start,
            "End": self.end,
            "Valid": self.valid,
        }


@dataclass
class QueuedEpisode:
    """An episode waiting for analysis.

    ``analyzed`` is flipped in place by analyzers once a mode has a confirmed
    detection, so later analyzers in the chain only see what is still missing.
    """

    episode_id: str
    season_id: str
    path: str
    duration: float
    name: str = ""
    is_movie: bool = False
    episode_number: int | None = None
    analyzed: dict[AnalysisMode, bool] = field(default_factory=dict)

    def is_analyzed(self, mode: AnalysisMode) -> bool:
        return self.analyzed.get(mode, False)

    def set_analyzed(self, mode: AnalysisMode, value: bool = True) -> None:
        self.analyzed[mode] = value


@dataclass
class Chapter:
    """A chapter marker: a name and its start offset in seconds."""

    name: str
    start: float


@dataclass
class BlackFrame:
    """A black frame reported by the frame sampler.

    ``time`` is relative to the start of the probed range, not the file.
    """

    time: float
    percentage: int = 100


class PlaybackEventReason(str, Enum):
    PLAYBACK_START = "PlaybackStart"
    PLAYBACK_FINISHED = "PlaybackFinished"
    PLAYBACK_PROGRESS = "PlaybackProgress"
    OTHER = "Other"


@dataclass
class PlaybackEvent:
    """User data saved by the media server for a playing item."""

    user_id: str
    item_id: str
    reason: PlaybackEventReason
    episode_number: int | None = None


@dataclass
class SessionInfo:
    """Snapshot of one active playback session."""

    session_id: str
    device_id: str
    user_id: str
    client: str
    now_playing_item_id: str | None
    position: float = 0.0
