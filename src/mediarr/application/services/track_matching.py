"""Match an audio file to one of an album's track slots.

Hey future me - the matching order used to be implicit in a chain of if/else. Now it's an
explicit list of strategies, tried in order, first hit wins:

    1. TagNumberMatcher      - track (+disc) number from embedded tags
    2. FuzzyTitleMatcher     - tag title vs track titles, rapidfuzz ratio >= threshold
    3. FilenameNumberMatcher - "2-03 - Title.flac" style file names

Each strategy is a tiny pure object over an in-memory list of tracks, so they are
testable without a database and reorderable without touching the importers.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from rapidfuzz import fuzz

from mediarr.domain.entities import AudioMediaInfo
from mediarr.domain.value_objects.naming import ParsedTrackName, parse_track_filename
from mediarr.domain.value_objects.release_parsing import normalize_title
from mediarr.infrastructure.persistence.models import TrackModel

DEFAULT_FUZZY_THRESHOLD = 90


@dataclass(frozen=True)
class TrackSignals:
    """What we know about a file before matching."""

    file_name: str
    tag_title: str | None = None
    tag_track_number: int | None = None
    tag_disc_number: int | None = None
    parsed: ParsedTrackName | None = None

    @classmethod
    def from_file(cls, file_name: str, info: AudioMediaInfo | None) -> "TrackSignals":
        return cls(
            file_name=file_name,
            tag_title=info.title if info else None,
            tag_track_number=info.track_number if info else None,
            tag_disc_number=info.disc_number if info else None,
            parsed=parse_track_filename(file_name),
        )

    @property
    def title(self) -> str | None:
        """Best title guess: tags first, then the file name."""
        if self.tag_title:
            return self.tag_title
        return self.parsed.title if self.parsed else None

    @property
    def track_number(self) -> int | None:
        if self.tag_track_number:
            return self.tag_track_number
        return self.parsed.track_number if self.parsed else None

    @property
    def disc_number(self) -> int | None:
        if self.tag_disc_number:
            return self.tag_disc_number
        return self.parsed.disc_number if self.parsed else None


class TrackMatcher(Protocol):
    name: str

    def match(self, signals: TrackSignals, tracks: Sequence[TrackModel]) -> TrackModel | None: ...


def _by_number(
    tracks: Sequence[TrackModel], track_number: int, disc_number: int | None
) -> TrackModel | None:
    for track in tracks:
        if track.track_number != track_number:
            continue
        # No disc info on the file = any disc matches
        if disc_number is None or (track.disc_number or 1) == disc_number:
            return track
    return None


class TagNumberMatcher:
    name = "tag_number"

    def match(self, signals: TrackSignals, tracks: Sequence[TrackModel]) -> TrackModel | None:
        if not signals.tag_track_number:
            return None
        return _by_number(tracks, signals.tag_track_number, signals.tag_disc_number)


class FuzzyTitleMatcher:
    """Best title above threshold wins; ties go to the earlier track."""

    name = "fuzzy_title"

    def __init__(self, threshold: int = DEFAULT_FUZZY_THRESHOLD) -> None:
        self.threshold = threshold

    def match(self, signals: TrackSignals, tracks: Sequence[TrackModel]) -> TrackModel | None:
        wanted = normalize_title(signals.tag_title)
        if not wanted:
            return None

        best: TrackModel | None = None
        best_score = 0.0
        for track in tracks:
            score = fuzz.ratio(wanted, normalize_title(track.title))
            if score > best_score:
                best, best_score = track, score
        return best if best_score >= self.threshold else None


class FilenameNumberMatcher:
    name = "filename_number"

    def match(self, signals: TrackSignals, tracks: Sequence[TrackModel]) -> TrackModel | None:
        if signals.parsed is None:
            return None
        return _by_number(tracks, signals.parsed.track_number, signals.parsed.disc_number)


def default_matchers(fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD) -> list[TrackMatcher]:
    return [TagNumberMatcher(), FuzzyTitleMatcher(fuzzy_threshold), FilenameNumberMatcher()]


def match_track(
    signals: TrackSignals,
    tracks: Sequence[TrackModel],
    matchers: Sequence[TrackMatcher] | None = None,
) -> tuple[TrackModel, str] | None:
    """Try each matcher in order. Returns (track, matcher name) or None."""
    for matcher in matchers if matchers is not None else default_matchers():
        track = matcher.match(signals, tracks)
        if track is not None:
            return track, matcher.name
    return None
