"""Tests for the shared data types."""

import pytest

from introskip.models import AnalysisMode, QueuedEpisode, Segment, TimeRange


class TestTimeRange:
    def test_duration(self):
        assert TimeRange(start=10.0, end=25.5).duration == 15.5

    def test_zero_length_allowed(self):
        assert TimeRange(start=5.0, end=5.0).duration == 0.0

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError, match="before start"):
            TimeRange(start=10.0, end=5.0)


class TestSegment:
    def test_default_is_invalid(self):
        seg = Segment("ep1")
        assert seg.valid is False
        assert seg.duration == 0.0

    def test_from_range(self):
        seg = Segment.from_range("ep1", TimeRange(1410.0, 1500.0))
        assert seg == Segment("ep1", 1410.0, 1500.0)
        assert seg.valid
        assert seg.time_range == TimeRange(1410.0, 1500.0)

    def test_to_dict(self):
        assert Segment("ep1", 1.0, 2.0).to_dict() == {
            "EpisodeId": "ep1", "Start": 1.0, "End": 2.0, "Valid": True,
        }


class TestQueuedEpisode:
    def test_analyzed_flags_per_mode(self):
        ep = QueuedEpisode("ep1", "s1", "/ep1.mkv", 1500.0)
        assert not ep.is_analyzed(AnalysisMode.CREDITS)
        ep.set_analyzed(AnalysisMode.CREDITS)
        assert ep.is_analyzed(AnalysisMode.CREDITS)
        assert not ep.is_analyzed(AnalysisMode.INTRODUCTION)
