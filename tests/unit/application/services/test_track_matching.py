"""Unit tests for track matching strategies."""

import pytest

from mediarr.application.services.track_matching import (
    FilenameNumberMatcher,
    FuzzyTitleMatcher,
    TagNumberMatcher,
    TrackSignals,
    default_matchers,
    match_track,
)
from mediarr.domain.entities import AudioMediaInfo
from mediarr.infrastructure.persistence.models import TrackModel


@pytest.fixture
def tracks() -> list[TrackModel]:
    """Unsaved album tracklist, two discs."""
    return [
        TrackModel(id="t1", album_id="a", title="Wanna Be Startin' Somethin'", track_number=1,
                   disc_number=1),
        TrackModel(id="t2", album_id="a", title="Baby Be Mine", track_number=2, disc_number=1),
        TrackModel(id="t3", album_id="a", title="The Girl Is Mine", track_number=3,
                   disc_number=1),
        TrackModel(id="d2t1", album_id="a", title="Bonus", track_number=1, disc_number=2),
    ]


class TestTrackSignals:
    """Tests for TrackSignals."""

    def test_tags_win_over_file_name(self) -> None:
        """Test that tag values take precedence."""
        signals = TrackSignals.from_file(
            "03 - File Title.flac", AudioMediaInfo(title="Tag Title", track_number=5)
        )
        assert signals.title == "Tag Title"
        assert signals.track_number == 5

    def test_file_name_fallback(self) -> None:
        """Test the fallback to the parsed file name without tags."""
        signals = TrackSignals.from_file("2-03 - File Title.flac", None)
        assert signals.title == "File Title"
        assert signals.track_number == 3
        assert signals.disc_number == 2

    def test_nothing_known(self) -> None:
        """Test a file with neither tags nor a numbered name."""
        signals = TrackSignals.from_file("notes.flac", AudioMediaInfo())
        assert signals.title is None
        assert signals.track_number is None
        assert signals.disc_number is None


class TestMatchers:
    """Tests for the individual strategies."""

    def test_tag_number(self, tracks: list[TrackModel]) -> None:
        """Test matching by tag track number."""
        signals = TrackSignals("x.flac", tag_track_number=2)
        assert TagNumberMatcher().match(signals, tracks) is tracks[1]

    def test_tag_number_respects_disc(self, tracks: list[TrackModel]) -> None:
        """Test that disc 2 track 1 isn't disc 1 track 1."""
        signals = TrackSignals("x.flac", tag_track_number=1, tag_disc_number=2)
        assert TagNumberMatcher().match(signals, tracks) is tracks[3]

    def test_tag_number_without_disc_takes_first(self, tracks: list[TrackModel]) -> None:
        """Test that no disc info matches any disc."""
        signals = TrackSignals("x.flac", tag_track_number=1)
        assert TagNumberMatcher().match(signals, tracks) is tracks[0]

    def test_fuzzy_title_ignores_punctuation(self, tracks: list[TrackModel]) -> None:
        """Test that normalized titles compare equal."""
        signals = TrackSignals("x.flac", tag_title="baby be mine!")
        assert FuzzyTitleMatcher().match(signals, tracks) is tracks[1]

    def test_fuzzy_title_threshold(self, tracks: list[TrackModel]) -> None:
        """Test that near misses only match with a lower threshold."""
        signals = TrackSignals("x.flac", tag_title="Girl Is Mine")
        assert FuzzyTitleMatcher(90).match(signals, tracks) is None
        assert FuzzyTitleMatcher(80).match(signals, tracks) is tracks[2]

    def test_fuzzy_title_needs_tag_title(self, tracks: list[TrackModel]) -> None:
        """Test that the fuzzy matcher only looks at tag titles."""
        signals = TrackSignals.from_file("02 - Baby Be Mine.flac", None)
        assert FuzzyTitleMatcher().match(signals, tracks) is None

    def test_filename_number(self, tracks: list[TrackModel]) -> None:
        """Test "2-01 - Title" matching disc 2 track 1."""
        signals = TrackSignals.from_file("2-01 - Bonus.flac", None)
        assert FilenameNumberMatcher().match(signals, tracks) is tracks[3]


class TestMatchTrack:
    """Tests for match_track() ordering."""

    def test_tag_number_wins(self, tracks: list[TrackModel]) -> None:
        """Test that the tag number beats a title pointing elsewhere."""
        signals = TrackSignals("x.flac", tag_title="Baby Be Mine", tag_track_number=3)
        assert match_track(signals, tracks) == (tracks[2], "tag_number")

    def test_falls_through_to_title(self, tracks: list[TrackModel]) -> None:
        """Test fuzzy title when the tag number matches nothing."""
        signals = TrackSignals("x.flac", tag_title="Baby Be Mine", tag_track_number=9)
        assert match_track(signals, tracks) == (tracks[1], "fuzzy_title")

    def test_falls_through_to_file_name(self, tracks: list[TrackModel]) -> None:
        """Test the file name as the last resort."""
        signals = TrackSignals.from_file("03 - Something Else.flac", AudioMediaInfo())
        assert match_track(signals, tracks) == (tracks[2], "filename_number")

    def test_no_match(self, tracks: list[TrackModel]) -> None:
        """Test that nothing matching gives None."""
        assert match_track(TrackSignals.from_file("notes.flac", None), tracks) is None

    def test_custom_matcher_order(self, tracks: list[TrackModel]) -> None:
        """Test that the matcher list is honoured as given."""
        signals = TrackSignals.from_file(
            "01 - Baby Be Mine.flac", AudioMediaInfo(title="Baby Be Mine")
        )
        matchers = [FilenameNumberMatcher(), FuzzyTitleMatcher()]
        assert match_track(signals, tracks, matchers) == (tracks[0], "filename_number")

    def test_default_matchers_order(self) -> None:
        """Test the default strategy order."""
        assert [matcher.name for matcher in default_matchers(85)] == [
            "tag_number",
            "fuzzy_title",
            "filename_number",
        ]
