"""JSON configuration schema and the live-reloadable config holder."""

import json
import logging
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_INTRO_PATTERN = r"(^|\s)(Intro|Introduction|OP|Opening)(?!\sEnd)(\s|$)"
DEFAULT_CREDITS_PATTERN = r"(^|\s)(Credits?|ED|Ending|Outro)(?!\sEnd)(\s|$)"


@dataclass
class AnalysisConfig:
    """Configuration for segment detection."""

    chapter_intro_pattern: str = DEFAULT_INTRO_PATTERN
    chapter_credits_pattern: str = DEFAULT_CREDITS_PATTERN
    min_intro_duration: float = 15
    max_intro_duration: float = 120
    min_credits_duration: float = 15
    max_credits_duration: float = 450
    max_movie_credits_duration: float = 900
    black_frame_min_percentage: int = 85
    consensus_tolerance: float = 5.0

    def max_credits_for(self, is_movie: bool) -> float:
        return self.max_movie_credits_duration if is_movie else self.max_credits_duration


@dataclass
class AutoSkipConfig:
    """Configuration for automatic credit skipping during playback."""

    auto_skip_credits: bool = False
    client_list: str = ""
    seconds_of_credits_start_to_play: float = 0
    remaining_seconds_of_intro: float = 2
    skip_first_episode: bool = False
    notification_text: str = "Credits skipped"
    notification_timeout_ms: int = 2000
    show_prompt_adjustment: float = 5
    hide_prompt_adjustment: float = 10

    @property
    def clients(self) -> frozenset[str]:
        """Allow-listed client names, lower-cased for case-insensitive lookup."""
        return frozenset(
            name.strip().lower() for name in self.client_list.split(",") if name.strip()
        )


@dataclass
class PluginConfig:
    """Top-level configuration."""

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    auto_skip: AutoSkipConfig = field(default_factory=AutoSkipConfig)
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"


def _section(cls, data: dict, name: str):
    raw = data.get(name, {})
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown '{name}' keys: {', '.join(sorted(unknown))}")
    return cls(**raw)


def parse_config(data: dict) -> PluginConfig:
    """Build a PluginConfig from already-decoded JSON."""
    return PluginConfig(
        analysis=_section(AnalysisConfig, data, "analysis"),
        auto_skip=_section(AutoSkipConfig, data, "auto_skip"),
        ffmpeg_path=data.get("ffmpeg_path", "ffmpeg"),
        ffprobe_path=data.get("ffprobe_path", "ffprobe"),
    )


def load_config(path: str | Path) -> PluginConfig:
    """Load and validate a configuration file."""
    path = Path(path)
    return parse_config(json.loads(path.read_text()))


class ConfigStore:
    """Holds the current configuration and tells listeners when it changes.

    Readers call ``get()`` whenever they need a value, so a reload takes effect
    on their next read.
    """

    def __init__(self, config: PluginConfig | None = None, path: Path | None = None):
        self._lock = threading.Lock()
        self._listeners: list[Callable[[PluginConfig], None]] = []
        self._path = Path(path) if path else None
        self._mtime: float | None = None
        if config is None and self._path is not None and self._path.exists():
            config = load_config(self._path)
            self._mtime = self._path.stat().st_mtime
        self._config = config or PluginConfig()

    def get(self) -> PluginConfig:
        with self._lock:
            return self._config

    def update(self, config: PluginConfig) -> None:
        with self._lock:
            self._config = config
            listeners = list(self._listeners)
        for listener in listeners:
            listener(config)

    def reload(self) -> bool:
        """Re-read the backing file if it changed since the last load."""
        if self._path is None or not self._path.exists():
            return False
        mtime = self._path.stat().st_mtime
        if mtime == self._mtime:
            return False
        config = load_config(self._path)
        self._mtime = mtime
        logger.info("Reloaded configuration from %s", self._path)
        self.update(config)
        return True

    def subscribe(self, listener: Callable[[PluginConfig], None]) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
