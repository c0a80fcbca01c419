"""Season consensus: pull near-identical detections within a season together."""

import logging
from collections import defaultdict
from statistics import median

from introskip.models import AnalysisMode, QueuedEpisode, Segment

logger = logging.getLogger(__name__)


def _anchor(segment: Segment, episode: QueuedEpisode, mode: AnalysisMode) -> float:
    # Credits are compared by their distance from the end of the episode.
    if mode == AnalysisMode.CREDITS:
        return episode.duration - segment.start
    return segment.start


def _clusters(values: list[tuple[float, int]], tolerance: float) -> list[list[tuple[float, int]]]:
    """Group sorted (anchor, index) pairs so no cluster spans more than tolerance."""
    clusters: list[list[tuple[float, int]]] = []
    for item in values:
        if clusters and item[0] - clusters[-1][0][0] <= tolerance:
            clusters[-1].append(item)
        else:
            clusters.append([item])
    return clusters


def adjust_segments(
    queue: list[QueuedEpisode],
    segments: list[Segment],
    mode: AnalysisMode,
    tolerance: float,
) -> list[Segment]:
    """Snap each segment to the median of its season cluster.

    Output has the same length, order and episode ids as ``segments``.
    Segments with no close neighbour in their season are left alone, and a
    segment is never adjusted into (or out of) validity.
    """
    episodes = {e.episode_id: e for e in queue}
    adjusted = list(segments)

    by_season: dict[str, list[tuple[float, int]]] = defaultdict(list)
    for idx, seg in enumerate(segments):
        episode = episodes.get(seg.episode_id)
        if episode is None or not seg.valid:
            continue
        by_season[episode.season_id].append((_anchor(seg, episode, mode), idx))

    for season_id in sorted(by_season):
        values = sorted(by_season[season_id])
        for cluster in _clusters(values, tolerance):
            if len(cluster) < 2:
                continue
            target = median(anchor for anchor, _ in cluster)
            for anchor, idx in cluster:
                original = segments[idx]
                episode = episodes[original.episode_id]
                if mode == AnalysisMode.CREDITS:
                    candidate = Segment(original.episode_id, episode.duration - target, original.end)
                else:
                    shift = target - anchor
                    candidate = Segment(
                        original.episode_id, original.start + shift, original.end + shift
                    )

                if not candidate.valid or candidate.start < 0 or candidate.end > episode.duration:
                    continue
                if candidate.start != original.start:
                    logger.debug(
                        "%s: adjusted %s start %.2f -> %.2f (season %s)",
                        episode.path, mode.value, original.start, candidate.start, season_id,
                    )
                adjusted[idx] = candidate

    return adjusted
