"""Unit tests for the chapter name analyzer."""

from unittest.mock import patch

import pytest

from fakes import FakeChapterSource, make_episode
from introskip.analyzers.chapters import ChapterAnalyzer
from introskip.config import AnalysisConfig, PluginConfig
from introskip.models import AnalysisMode, Chapter, Segment


def _analyzer(store, chapters=None, **analysis):
    config = PluginConfig(analysis=AnalysisConfig(**analysis))
    return ChapterAnalyzer(FakeChapterSource(chapters), store, lambda: config)


class TestFindIntroduction:
    def test_intro_chapter_matches(self, store):
        """Scenario: [("Intro", 0s), ("Episode", 95s)] with bounds [15s, 120s]."""
        analyzer = _analyzer(store, min_intro_duration=15, max_intro_duration=120)
        episode = make_episode(duration=1500.0)
        chapters = [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]

        result = analyzer.find_matching_chapter(
            episode, chapters, "(?i)intro", AnalysisMode.INTRODUCTION
        )

        assert result == Segment("ep1", 0.0, 95.0)

    def test_no_chapters(self, store):
        analyzer = _analyzer(store)
        result = analyzer.find_matching_chapter(
            make_episode(), [], "(?i)intro", AnalysisMode.INTRODUCTION
        )
        assert result is None

    def test_blank_names_are_skipped(self, store):
        analyzer = _analyzer(store)
        chapters = [Chapter("", 0.0), Chapter("  ", 30.0), Chapter("Episode", 90.0)]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, ".*", AnalysisMode.INTRODUCTION
        )
        assert result is None

    def test_forward_scan_picks_first_match(self, store):
        analyzer = _analyzer(store)
        chapters = [
            Chapter("Recap", 0.0),
            Chapter("Opening", 60.0),
            Chapter("Part A", 150.0),
            Chapter("Opening", 900.0),
            Chapter("Part B", 990.0),
        ]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, "Opening", AnalysisMode.INTRODUCTION
        )
        assert result == Segment("ep1", 60.0, 150.0)


class TestDurationBounds:
    @pytest.mark.parametrize("length", [5.0, 14.9, 120.1, 300.0])
    def test_out_of_range_never_selected(self, store, length):
        analyzer = _analyzer(store, min_intro_duration=15, max_intro_duration=120)
        chapters = [Chapter("Intro", 0.0), Chapter("Episode", length)]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, "Intro", AnalysisMode.INTRODUCTION
        )
        assert result is None

    @pytest.mark.parametrize("length", [15.0, 60.0, 120.0])
    def test_in_range_selected(self, store, length):
        analyzer = _analyzer(store, min_intro_duration=15, max_intro_duration=120)
        chapters = [Chapter("Intro", 0.0), Chapter("Episode", length)]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, "Intro", AnalysisMode.INTRODUCTION
        )
        assert result is not None
        assert result.duration == length

    def test_movies_allow_longer_credits(self, store):
        analyzer = _analyzer(
            store, max_credits_duration=450, max_movie_credits_duration=900
        )
        chapters = [Chapter("Movie", 0.0), Chapter("Credits", 6600.0)]

        episode = make_episode(duration=7200.0)
        movie = make_episode(duration=7200.0, is_movie=True)

        assert analyzer.find_matching_chapter(
            episode, chapters, "Credits", AnalysisMode.CREDITS
        ) is None
        assert analyzer.find_matching_chapter(
            movie, chapters, "Credits", AnalysisMode.CREDITS
        ) == Segment("ep1", 6600.0, 7200.0)


class TestFindCredits:
    def test_last_chapter_ends_at_episode_duration(self, store):
        analyzer = _analyzer(store)
        chapters = [Chapter("Episode", 0.0), Chapter("Credits", 1410.0)]
        result = analyzer.find_matching_chapter(
            make_episode(duration=1500.0), chapters, "Credits", AnalysisMode.CREDITS
        )
        assert result == Segment("ep1", 1410.0, 1500.0)

    def test_reverse_scan_prefers_chapter_nearest_end(self, store):
        analyzer = _analyzer(store)
        chapters = [
            Chapter("Episode", 0.0),
            Chapter("Ending", 1200.0),
            Chapter("Part B", 1290.0),
            Chapter("Ending", 1410.0),
        ]
        result = analyzer.find_matching_chapter(
            make_episode(duration=1500.0), chapters, "Ending", AnalysisMode.CREDITS
        )
        assert result == Segment("ep1", 1410.0, 1500.0)


class TestAdjacentMatch:
    def test_next_chapter_matching_rejects_intro(self, store):
        analyzer = _analyzer(store)
        chapters = [
            Chapter("Intro Part 1", 0.0),
            Chapter("Intro Part 2", 40.0),
            Chapter("Episode", 80.0),
        ]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, "Intro", AnalysisMode.INTRODUCTION
        )
        # Part 1 is rejected because Part 2 matches; Part 2 is then accepted.
        assert result == Segment("ep1", 40.0, 80.0)

    def test_previous_chapter_matching_rejects_credits(self, store):
        analyzer = _analyzer(store)
        chapters = [
            Chapter("Episode", 0.0),
            Chapter("Preview 1", 1380.0),
            Chapter("Preview 2", 1440.0),
        ]
        result = analyzer.find_matching_chapter(
            make_episode(duration=1500.0), chapters, "Preview", AnalysisMode.CREDITS
        )
        assert result == Segment("ep1", 1380.0, 1440.0)

    def test_every_matching_chapter_with_matching_neighbour_rejected(self, store):
        analyzer = _analyzer(store)
        chapters = [
            Chapter("Episode", 0.0),
            Chapter("Credits", 1380.0),
            Chapter("Credits", 1440.0),
            Chapter("Credits", 1470.0),
        ]
        # The first chapter in reverse order has a matching neighbour, and so
        # on until the earliest Credits chapter, whose neighbour is "Episode".
        result = analyzer.find_matching_chapter(
            make_episode(duration=1500.0), chapters, "Credits", AnalysisMode.CREDITS
        )
        assert result == Segment("ep1", 1380.0, 1440.0)


class TestPatternTimeout:
    @patch("introskip.analyzers.chapters.regex.search", side_effect=TimeoutError)
    def test_timeout_is_non_match(self, mock_search, store):
        analyzer = _analyzer(store)
        chapters = [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]
        result = analyzer.find_matching_chapter(
            make_episode(), chapters, "Intro", AnalysisMode.INTRODUCTION
        )
        assert result is None
        assert mock_search.call_args.kwargs["timeout"] == 1.0


class TestAnalyze:
    def test_stores_match_and_marks_analyzed(self, store):
        chapters = {"ep1": [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]}
        analyzer = _analyzer(store, chapters, chapter_intro_pattern="(?i)intro")
        episode = make_episode()

        analyzer.analyze([episode], AnalysisMode.INTRODUCTION)

        assert episode.is_analyzed(AnalysisMode.INTRODUCTION)
        assert store.get("ep1", AnalysisMode.INTRODUCTION) == Segment("ep1", 0.0, 95.0)

    def test_no_match_leaves_episode_unanalyzed(self, store):
        chapters = {"ep1": [Chapter("Cold Open", 0.0), Chapter("Episode", 95.0)]}
        analyzer = _analyzer(store, chapters, chapter_intro_pattern="(?i)intro")
        episode = make_episode()

        analyzer.analyze([episode], AnalysisMode.INTRODUCTION)

        assert not episode.is_analyzed(AnalysisMode.INTRODUCTION)
        assert store.get("ep1", AnalysisMode.INTRODUCTION) is None

    def test_chapter_source_error_is_scoped_to_one_episode(self, store):
        chapters = {
            ep: [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]
            for ep in ("ep1", "ep2", "ep3")
        }
        config = PluginConfig(analysis=AnalysisConfig(chapter_intro_pattern="(?i)intro"))
        analyzer = ChapterAnalyzer(
            FakeChapterSource(chapters, fail_for={"ep2"}), store, lambda: config
        )
        queue = [make_episode(ep) for ep in ("ep1", "ep2", "ep3")]

        analyzer.analyze(queue, AnalysisMode.INTRODUCTION)

        assert [e.is_analyzed(AnalysisMode.INTRODUCTION) for e in queue] == [True, False, True]
        assert store.get("ep1", AnalysisMode.INTRODUCTION) == Segment("ep1", 0.0, 95.0)
        assert store.get("ep2", AnalysisMode.INTRODUCTION) is None
        assert store.get("ep3", AnalysisMode.INTRODUCTION) == Segment("ep3", 0.0, 95.0)

    def test_blank_pattern_does_nothing(self, store):
        chapters = {"ep1": [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]}
        analyzer = _analyzer(store, chapters, chapter_intro_pattern="  ")
        episode = make_episode()

        analyzer.analyze([episode], AnalysisMode.INTRODUCTION)

        assert not episode.is_analyzed(AnalysisMode.INTRODUCTION)

    def test_invalid_pattern_does_nothing(self, store):
        chapters = {"ep1": [Chapter("Intro", 0.0), Chapter("Episode", 95.0)]}
        analyzer = _analyzer(store, chapters, chapter_intro_pattern="(unclosed")
        episode = make_episode()

        analyzer.analyze([episode], AnalysisMode.INTRODUCTION)

        assert not episode.is_analyzed(AnalysisMode.INTRODUCTION)

    def test_default_credits_pattern(self, store):
        chapters = {"ep1": [Chapter("Episode", 0.0), Chapter("End Credits", 1410.0)]}
        analyzer = _analyzer(store, chapters)
        episode = make_episode(duration=1500.0)

        analyzer.analyze([episode], AnalysisMode.CREDITS)

        assert store.get("ep1", AnalysisMode.CREDITS) == Segment("ep1", 1410.0, 1500.0)
