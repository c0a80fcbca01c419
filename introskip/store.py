"""Segment store keyed by (episode id, mode), with optional JSON persistence."""

import json
import logging
import threading
from pathlib import Path
from typing import Iterable

from introskip.models import AnalysisMode, AnalyzerAction, Segment

logger = logging.getLogger(__name__)


class SegmentStore:
    """Thread-safe store for detected segments and per-season analyzer actions.

    Readers get copies; callers re-fetch instead of holding on to a segment.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._segments: dict[tuple[str, AnalysisMode], Segment] = {}
        self._actions: dict[tuple[str, AnalysisMode], AnalyzerAction] = {}

    def upsert(self, segment: Segment, mode: AnalysisMode) -> None:
        with self._lock:
            self._segments[(segment.episode_id, mode)] = Segment(
                segment.episode_id, segment.start, segment.end
            )

    def upsert_many(self, segments: Iterable[Segment], mode: AnalysisMode) -> int:
        count = 0
        for segment in segments:
            self.upsert(segment, mode)
            count += 1
        if count:
            logger.debug("Stored %d %s segments", count, mode.value)
        return count

    def get(self, episode_id: str, mode: AnalysisMode) -> Segment | None:
        with self._lock:
            seg = self._segments.get((episode_id, mode))
            return Segment(seg.episode_id, seg.start, seg.end) if seg else None

    def get_all(self, episode_id: str) -> dict[AnalysisMode, Segment]:
        result = {}
        for mode in AnalysisMode:
            seg = self.get(episode_id, mode)
            if seg is not None:
                result[mode] = seg
        return result

    def clear(self, mode: AnalysisMode | None = None) -> None:
        with self._lock:
            if mode is None:
                self._segments.clear()
            else:
                for key in [k for k in self._segments if k[1] == mode]:
                    del self._segments[key]

    def clear_invalid(self) -> int:
        """Drop sentinel segments that never had a detection."""
        with self._lock:
            stale = [k for k, s in self._segments.items() if not s.valid]
            for key in stale:
                del self._segments[key]
        return len(stale)

    def clean(self, keep_ids: set[str]) -> int:
        """Drop segments for episodes that no longer exist in the library."""
        with self._lock:
            stale = [k for k in self._segments if k[0] not in keep_ids]
            for key in stale:
                del self._segments[key]
        return len(stale)

    def set_analyzer_action(
        self, season_id: str, mode: AnalysisMode, action: AnalyzerAction
    ) -> None:
        with self._lock:
            self._actions[(season_id, mode)] = action

    def get_analyzer_action(self, season_id: str, mode: AnalysisMode) -> AnalyzerAction:
        with self._lock:
            return self._actions.get((season_id, mode), AnalyzerAction.DEFAULT)

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "segments": [
                    {"mode": mode.value, "episode_id": ep, "start": s.start, "end": s.end}
                    for (ep, mode), s in self._segments.items()
                ],
                "analyzer_actions": [
                    {"season_id": season, "mode": mode.value, "action": action.value}
                    for (season, mode), action in self._actions.items()
                ],
            }

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "SegmentStore":
        """Open a store backed by ``path``; a missing file yields an empty store."""
        store = cls(Path(path))
        if not store.path.exists():
            return store
        data = json.loads(store.path.read_text())
        for item in data.get("segments", []):
            store.upsert(
                Segment(item["episode_id"], float(item["start"]), float(item["end"])),
                AnalysisMode(item["mode"]),
            )
        for item in data.get("analyzer_actions", []):
            store.set_analyzer_action(
                item["season_id"], AnalysisMode(item["mode"]), AnalyzerAction(item["action"])
            )
        return store
