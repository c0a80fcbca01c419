"""Interfaces shared by the analyzers and the collaborators they consume."""

import threading
from typing import Callable, Protocol

from introskip.config import PluginConfig
from introskip.models import AnalysisMode, BlackFrame, Chapter, QueuedEpisode, TimeRange

ConfigProvider = Callable[[], PluginConfig]


class ChapterSource(Protocol):
    def get_chapters(self, episode_id: str) -> list[Chapter]: ...


class FrameSampler(Protocol):
    def detect_black_frames(
        self, episode: QueuedEpisode, time_range: TimeRange, minimum_percentage: int
    ) -> list[BlackFrame]: ...


class MediaFileAnalyzer(Protocol):
    """Given a queue and a mode, store segments and flag analyzed episodes.

    Cancellation is only honoured between episodes.
    """

    def analyze(
        self,
        queue: list[QueuedEpisode],
        mode: AnalysisMode,
        cancel: threading.Event | None = None,
    ) -> list[QueuedEpisode]: ...
