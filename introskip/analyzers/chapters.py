"""Chapter name analyzer."""

import logging
import threading

import regex

from introskip.analyzers.base import ChapterSource, ConfigProvider
from introskip.config import PluginConfig
from introskip.models import AnalysisMode, Chapter, QueuedEpisode, Segment, TimeRange
from introskip.store import SegmentStore

logger = logging.getLogger(__name__)

# Per-match budget for user supplied patterns.
MATCH_TIMEOUT = 1.0


def _matches(pattern: str, name: str) -> bool:
    try:
        return regex.search(pattern, name, timeout=MATCH_TIMEOUT) is not None
    except TimeoutError:
        logger.debug("Pattern %r timed out on chapter %r", pattern, name)
        return False


class ChapterAnalyzer:
    """Finds intro/credits chapters by matching chapter names against a pattern."""

    def __init__(
        self,
        chapter_source: ChapterSource,
        store: SegmentStore,
        config_provider: ConfigProvider = PluginConfig,
    ):
        self.chapter_source = chapter_source
        self.store = store
        self.config_provider = config_provider

    def analyze(
        self,
        queue: list[QueuedEpisode],
        mode: AnalysisMode,
        cancel: threading.Event | None = None,
    ) -> list[QueuedEpisode]:
        analysis = self.config_provider().analysis
        pattern = (
            analysis.chapter_intro_pattern
            if mode == AnalysisMode.INTRODUCTION
            else analysis.chapter_credits_pattern
        )
        if not pattern or not pattern.strip():
            return queue

        try:
            regex.compile(pattern)
        except regex.error as e:
            logger.warning("Invalid %s chapter pattern %r: %s", mode.value, pattern, e)
            return queue

        found: list[Segment] = []
        for episode in queue:
            if episode.is_analyzed(mode):
                continue
            if cancel is not None and cancel.is_set():
                break

            try:
                segment = self.find_matching_chapter(
                    episode,
                    self.chapter_source.get_chapters(episode.episode_id),
                    pattern,
                    mode,
                )
            except Exception:
                logger.exception("%s: chapter analysis failed", episode.path)
                continue
            if segment is None or not segment.valid:
                continue

            found.append(segment)
            episode.set_analyzed(mode)

        self.store.upsert_many(found, mode)
        return queue

    def find_matching_chapter(
        self,
        episode: QueuedEpisode,
        chapters: list[Chapter],
        pattern: str,
        mode: AnalysisMode,
    ) -> Segment | None:
        """Return the first chapter whose name and duration fit ``mode``.

        Intros are searched from the start of the file, credits from the end.
        A matching chapter is rejected when its neighbour in scan direction
        matches too.
        """
        count = len(chapters)
        if count == 0:
            return None

        analysis = self.config_provider().analysis
        reverse = mode != AnalysisMode.INTRODUCTION
        if reverse:
            min_duration = analysis.min_credits_duration
            max_duration = analysis.max_credits_for(episode.is_movie)
        else:
            min_duration = analysis.min_intro_duration
            max_duration = analysis.max_intro_duration

        indices = range(count - 1, -1, -1) if reverse else range(count)
        for i in indices:
            chapter = chapters[i]
            if not chapter.name or not chapter.name.strip():
                continue

            # The last chapter ends at a virtual boundary at the end of the file.
            end = chapters[i + 1].start if i + 1 < count else episode.duration
            if end < chapter.start:
                continue
            current = TimeRange(start=chapter.start, end=end)
            base = f'{episode.path}: Chapter "{chapter.name}" ({current.start} - {current.end})'

            if current.duration < min_duration or current.duration > max_duration:
                logger.debug("%s: ignoring (invalid duration)", base)
                continue

            if not _matches(pattern, chapter.name):
                logger.debug("%s: ignoring (does not match pattern)", base)
                continue

            adjacent_index = i - 1 if reverse else i + 1
            if 0 <= adjacent_index < count:
                adjacent = chapters[adjacent_index]
                if adjacent.name and adjacent.name.strip() and _matches(pattern, adjacent.name):
                    logger.debug("%s: ignoring (adjacent chapter also matches)", base)
                    continue

            logger.debug("%s: okay", base)
            return Segment.from_range(episode.episode_id, current)

        return None
