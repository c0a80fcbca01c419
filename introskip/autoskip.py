"""Automatically skip past credit sequences.

While a session plays through the credits of an item, the client is told to
seek to the end of them, at most once per playback.

The media server embeds this module: it supplies a SessionManager for its
connected clients and a PlaybackEventSource, then calls
``AutoSkipCredits.start``. The CLI does not run it.
"""

import logging
import threading
from typing import Callable, Protocol

from introskip.config import ConfigStore, PluginConfig
from introskip.models import (
    AnalysisMode,
    PlaybackEvent,
    PlaybackEventReason,
    SessionInfo,
)
from introskip.store import SegmentStore

logger = logging.getLogger(__name__)


class SessionManager(Protocol):
    def sessions(self) -> list[SessionInfo]: ...

    def send_seek(self, session_id: str, position: float) -> None: ...

    def send_message(self, session_id: str, text: str, timeout_ms: int) -> None: ...


class PlaybackEventSource(Protocol):
    def subscribe(self, callback: Callable[[PlaybackEvent], None]) -> Callable[[], None]: ...


class SkipState:
    """Per-device flag recording whether the seek command was already sent."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sent: dict[str, bool] = {}

    def reset(self, device_id: str, fired: bool = False) -> None:
        with self._lock:
            self._sent[device_id] = fired

    def has_fired(self, device_id: str) -> bool:
        with self._lock:
            return self._sent.get(device_id, False)

    def mark_fired(self, device_id: str) -> None:
        with self._lock:
            self._sent[device_id] = True

    def try_fire(self, device_id: str) -> bool:
        """Flip an armed device to fired; False if it had already fired."""
        with self._lock:
            if self._sent.get(device_id, False):
                return False
            self._sent[device_id] = True
            return True

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sent)


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread while enabled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._lock = threading.Lock()
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._thread is not None

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value:
            self.start()
        else:
            self.stop()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop,), name="autoskip-timer", daemon=True
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            stop, thread = self._stop, self._thread
            self._stop = self._thread = None
        if stop is not None:
            stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1)

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("Playback timer callback failed")


class AutoSkipCredits:
    """Sends a one-time seek past the credits to every eligible playing session."""

    def __init__(
        self,
        session_manager: SessionManager,
        store: SegmentStore,
        config_store: ConfigStore,
        interval: float = 1.0,
        state: SkipState | None = None,
    ):
        self.session_manager = session_manager
        self.store = store
        self.config_store = config_store
        self.state = state or SkipState()
        self.timer = RepeatingTimer(interval, self.tick)
        self._clients: frozenset[str] = frozenset()
        self._unsubscribe: list[Callable[[], None]] = []

    def start(self, events: PlaybackEventSource) -> None:
        logger.debug("Setting up automatic credit skipping")
        self._unsubscribe.append(events.subscribe(self.on_playback_event))
        self._unsubscribe.append(self.config_store.subscribe(self.apply_config))
        self.apply_config(self.config_store.get())

    def stop(self) -> None:
        while self._unsubscribe:
            self._unsubscribe.pop()()
        self.timer.stop()
        self.state.clear()

    def __enter__(self) -> "AutoSkipCredits":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def apply_config(self, config: PluginConfig) -> None:
        self._clients = config.auto_skip.clients
        enabled = config.auto_skip.auto_skip_credits or bool(self._clients)
        logger.debug("Setting playback timer enabled to %s", enabled)
        self.timer.enabled = enabled

    def _eligible(self, session: SessionInfo, config: PluginConfig) -> bool:
        return config.auto_skip.auto_skip_credits or (session.client or "").lower() in self._clients

    def on_playback_event(self, event: PlaybackEvent) -> None:
        """Re-arm the device that just started or finished playing ``event.item_id``."""
        if event.reason not in (
            PlaybackEventReason.PLAYBACK_START,
            PlaybackEventReason.PLAYBACK_FINISHED,
        ):
            return

        session = next(
            (
                s
                for s in self.session_manager.sessions()
                if s.user_id == event.user_id and s.now_playing_item_id == event.item_id
            ),
            None,
        )
        if session is None:
            logger.info("Unable to find session for %s", event.item_id)
            return

        # Deliberately unskipped first episodes count as already handled.
        config = self.config_store.get()
        fired = config.auto_skip.skip_first_episode and event.episode_number == 1

        logger.debug("Resetting seek command state for session %s", session.device_id)
        self.state.reset(session.device_id, fired)

    def tick(self) -> None:
        """Check every eligible session once; called by the playback timer."""
        config = self.config_store.get()
        for session in self.session_manager.sessions():
            if not self._eligible(session, config):
                continue
            try:
                self._check_session(session, config)
            except Exception:
                logger.exception("Auto skip failed for session %s", session.device_id)

    def _check_session(self, session: SessionInfo, config: PluginConfig) -> None:
        device_id = session.device_id
        if not session.now_playing_item_id:
            return
        if self.state.has_fired(device_id):
            logger.debug("Already sent seek command for session %s", device_id)
            return

        credit = self.store.get(session.now_playing_item_id, AnalysisMode.CREDITS)
        if credit is None or not credit.valid:
            return

        # Seeking right at the very end of an episode is unreliable.
        adjusted_start = credit.start + config.auto_skip.seconds_of_credits_start_to_play
        adjusted_end = credit.end - config.auto_skip.remaining_seconds_of_intro
        logger.debug(
            "Playback position is %s, credits run from %s to %s",
            session.position, adjusted_start, adjusted_end,
        )
        if session.position < adjusted_start or session.position > adjusted_end:
            return

        if not self.state.try_fire(device_id):
            return

        text = config.auto_skip.notification_text
        if text and text.strip():
            try:
                self.session_manager.send_message(
                    session.session_id, text, config.auto_skip.notification_timeout_ms
                )
            except Exception as e:
                logger.warning("Failed to notify session %s: %s", device_id, e)

        logger.debug("Sending seek command to %s", device_id)
        try:
            self.session_manager.send_seek(session.session_id, adjusted_end)
        except Exception as e:
            logger.warning("Failed to send seek command to %s: %s", device_id, e)
