"""Black frame analyzer for end credits shown over a black background.

Rather than scanning the whole tail of a file, the analyzer bisects the end
of the episode with short probes until the first black frame of the credits
is bracketed to within ``MAXIMUM_ERROR`` seconds. Probe positions are
expressed as seconds counted back from the end of the file.
"""

import logging
import threading
from dataclasses import dataclass

from introskip.analyzers.base import ChapterSource, ConfigProvider, FrameSampler
from introskip.analyzers.consensus import adjust_segments
from introskip.config import PluginConfig
from introskip.models import AnalysisMode, QueuedEpisode, Segment, TimeRange
from introskip.store import SegmentStore

logger = logging.getLogger(__name__)

MAXIMUM_ERROR = 4.0
PROBE_LENGTH = 2.0
PRESCAN_LENGTH = 0.5


@dataclass
class SearchWindow:
    """Search position carried from one episode of a season to the next."""

    minimum: float
    search_start: float = 0.0
    search_distance: float = 0.0
    first_episode: bool = True

    def __post_init__(self) -> None:
        self.search_distance = 2 * self.minimum
        self.reset()

    def reset(self) -> None:
        self.search_start = self.minimum
        self.first_episode = True

    def advance(self, episode: QueuedEpisode, credit: Segment) -> None:
        """Centre the next episode's search on this episode's credits."""
        self.search_start = episode.duration - credit.start + 0.5 * self.search_distance
        self.first_episode = False


class BlackFrameAnalyzer:
    """Locates the start of end credits by bisecting black frame occurrence."""

    def __init__(
        self,
        chapter_source: ChapterSource,
        frame_sampler: FrameSampler,
        store: SegmentStore,
        config_provider: ConfigProvider = PluginConfig,
    ):
        self.chapter_source = chapter_source
        self.frame_sampler = frame_sampler
        self.store = store
        self.config_provider = config_provider

    def analyze(
        self,
        queue: list[QueuedEpisode],
        mode: AnalysisMode,
        cancel: threading.Event | None = None,
    ) -> list[QueuedEpisode]:
        """Analyze one season's episodes in playback order.

        ``cancel`` is only checked between episodes: stopping in the middle of
        a bisection would leave the carried search window inconsistent.
        """
        if mode != AnalysisMode.CREDITS:
            raise ValueError("BlackFrameAnalyzer only supports Credits mode")

        analysis = self.config_provider().analysis
        window = SearchWindow(minimum=analysis.min_credits_duration)
        credits: list[Segment] = []

        for episode in queue:
            if episode.is_analyzed(mode):
                continue
            if cancel is not None and cancel.is_set():
                break

            try:
                if window.first_episode:
                    self._seed_from_chapters(episode, window)
                if window.first_episode and not self._prescan(episode, window):
                    logger.debug("%s: no black frames near the end, skipping", episode.path)
                    window.reset()
                    continue

                credit = self.analyze_media_file(
                    episode, window.search_start, window.search_distance
                )
            except Exception:
                logger.exception("%s: black frame analysis failed", episode.path)
                window.reset()
                continue

            if credit is None or not credit.valid:
                window.reset()
                continue

            window.advance(episode, credit)
            credits.append(credit)
            episode.set_analyzed(mode)

        adjusted = adjust_segments(queue, credits, mode, analysis.consensus_tolerance)
        self.store.upsert_many(adjusted, mode)
        return queue

    def _seed_from_chapters(self, episode: QueuedEpisode, window: SearchWindow) -> None:
        analysis = self.config_provider().analysis
        maximum = analysis.max_credits_for(episode.is_movie)
        suitable = [
            episode.duration - c.start
            for c in self.chapter_source.get_chapters(episode.episode_id)
            if analysis.min_credits_duration <= episode.duration - c.start <= maximum
        ]
        if suitable:
            window.search_start = min(suitable)
            window.first_episode = False

    def _probe(self, episode: QueuedEpisode, scan_time: float, length: float):
        analysis = self.config_provider().analysis
        return self.frame_sampler.detect_black_frames(
            episode,
            TimeRange(start=scan_time, end=scan_time + length),
            analysis.black_frame_min_percentage,
        )

    def _prescan(self, episode: QueuedEpisode, window: SearchWindow) -> bool:
        """Walk outward from the end while the credits stay black.

        Returns False when the very first probe finds nothing.
        """
        maximum = self.config_provider().analysis.max_credits_for(episode.is_movie)
        scan_time = episode.duration - window.search_start
        if not self._probe(episode, scan_time - PRESCAN_LENGTH, PRESCAN_LENGTH):
            return False

        while True:
            window.search_start += window.search_distance
            if window.search_start > maximum:
                window.search_start = maximum
                break
            scan_time = episode.duration - window.search_start
            if not self._probe(episode, scan_time - PRESCAN_LENGTH, PRESCAN_LENGTH):
                break

        window.first_episode = False
        return True

    def analyze_media_file(
        self,
        episode: QueuedEpisode,
        search_start: float,
        search_distance: float,
    ) -> Segment | None:
        """Bisect the end of one file for the first black frame of the credits."""
        analysis = self.config_provider().analysis
        minimum = analysis.min_credits_duration
        maximum = analysis.max_credits_for(episode.is_movie)

        upper_limit = search_start
        lower_limit = max(search_start - search_distance, minimum)
        start = upper_limit
        end = lower_limit
        first_frame_time = 0.0

        while start - end > MAXIMUM_ERROR:
            midpoint = (start + end) / 2
            scan_time = episode.duration - midpoint
            frames = self._probe(episode, scan_time, PROBE_LENGTH)
            logger.debug(
                "%s: bisect [%.2f, %.2f], probe at %.2f has %d black frames",
                episode.path, start, end, scan_time, len(frames),
            )

            if not frames:
                # Credits start closer to the end of the file.
                start = midpoint - PROBE_LENGTH
                if midpoint - lower_limit < MAXIMUM_ERROR:
                    widened = max(lower_limit - 0.5 * search_distance, minimum)
                    if widened < lower_limit:
                        lower_limit = widened
                        end = lower_limit
            else:
                end = midpoint
                first_frame_time = frames[0].time + scan_time
                if upper_limit - midpoint < MAXIMUM_ERROR:
                    widened = min(upper_limit + 0.5 * search_distance, maximum)
                    if widened > upper_limit:
                        upper_limit = widened
                        start = upper_limit

        if first_frame_time > 0:
            return Segment(episode.episode_id, first_frame_time, episode.duration)
        return None
