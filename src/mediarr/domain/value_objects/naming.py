"""Folder and file naming for the organized library.

Hey future me - every path the importers and the rename feature write goes through here!
The layout is Jellyfin/Plex compatible:

    /music/Artist Name/[2020] Album Name/01 - Track Title.flac
    /movies/Movie Title (1999)/Movie Title (1999) - Bluray-1080p.mkv
    /tv/Show Title (2008)/Season 01/Show Title - S01E01 - Pilot.mkv
    /books/Author Name/Book Title (1977).epub

Two layers:
1. Pure helpers (sanitize, extension sets, parse_track_filename) - no config, no I/O.
2. NamingService - renders the user's NamingPatterns (see naming_templates.py). The
   module-level artist_folder()/track_path()/... functions use the default patterns.

All returned paths are RELATIVE to a root folder and use "/" separators. File records
store exactly these strings, never absolute paths.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any

from mediarr.domain.value_objects.naming_templates import (
    DEFAULT_PATTERNS,
    NamingPatterns,
    parse_template,
)

UNKNOWN_NAME = "Unknown"
MAX_NAME_LENGTH = 200

# Characters illegal in filenames on at least one OS (Windows is the strictest)
# plus ASCII control characters.
ILLEGAL_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
WHITESPACE_PATTERN = re.compile(r"\s+")

# Windows device names - "CON.flac" is just as broken as "CON"
RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

# Separator left dangling when a template's last token is empty: "Show - S01E02 -"
DANGLING_SEPARATOR_PATTERN = re.compile(r"(?:\s*[-–]\s*)+$")

MIN_VALID_YEAR = 1900
MAX_VALID_YEAR = 2099

AUDIO_EXTENSIONS = frozenset(
    {
        ".flac", ".mp3", ".m4a", ".aac", ".ogg", ".opus", ".wav",
        ".wma", ".alac", ".ape", ".wv", ".dsf", ".dff",
    }
)

VIDEO_EXTENSIONS = frozenset(
    {
        ".mkv", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm",
        ".m4v", ".mpg", ".mpeg", ".ts", ".m2ts", ".vob", ".ogv",
    }
)

# Extension -> display format. Order here is NOT the import preference,
# see BOOK_FORMAT_PRIORITY in the book importer for that.
BOOK_FORMATS: dict[str, str] = {
    ".epub": "EPUB",
    ".pdf": "PDF",
    ".mobi": "MOBI",
    ".azw": "AZW",
    ".azw3": "AZW3",
    ".fb2": "FB2",
    ".djvu": "DJVU",
    ".cbz": "CBZ",
    ".cbr": "CBR",
}
BOOK_EXTENSIONS = frozenset(BOOK_FORMATS)

# Track filename patterns, tried in this order (first match wins):
#   "2-03 - Title"  disc-track
#   "03 - Title"
#   "03. Title"
#   "03 Title"
# The disc-track pattern MUST come first - "2-03 - Title" would otherwise parse as
# track 2 titled "03 - Title".
TRACK_FILENAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?P<disc>\d+)-(?P<track>\d+)\s*-\s*(?P<title>.+)$"),
    re.compile(r"^(?P<track>\d+)\s*-\s*(?P<title>.+)$"),
    re.compile(r"^(?P<track>\d+)\.\s*(?P<title>.+)$"),
    re.compile(r"^(?P<track>\d+)\s+(?P<title>.+)$"),
)

LEADING_ARTICLES = ("the ", "a ", "an ")


def sanitize(name: str | None) -> str:
    """Make a string safe to use as a single file or folder name.

    Steps: illegal/control characters become spaces, whitespace is collapsed, trailing
    dots and spaces are stripped (Windows drops them silently), the result is capped at
    200 characters, and Windows device names get a "_" prefix. Empty results become
    "Unknown", so the return value is never empty.

    The function is idempotent: sanitize(sanitize(x)) == sanitize(x).

    Example:
        >>> sanitize('AC/DC: Live?')
        "AC DC Live"
        >>> sanitize("CON")
        "_CON"
    """
    if not name:
        return UNKNOWN_NAME

    result = ILLEGAL_CHARS_PATTERN.sub(" ", name)
    result = WHITESPACE_PATTERN.sub(" ", result).strip()
    result = result.rstrip(". ")

    if result and result.split(".", 1)[0].upper() in RESERVED_NAMES:
        result = f"_{result}"

    # Truncate last so the reserved-name prefix can't push us over the limit
    result = result[:MAX_NAME_LENGTH].rstrip(". ")

    return result or UNKNOWN_NAME


def normalize_extension(extension: str) -> str:
    """Return the extension lowercased with exactly one leading dot ("" stays "")."""
    extension = extension.strip().lstrip(".").lower()
    return f".{extension}" if extension else ""


def file_extension(file_name: str) -> str:
    """Lowercase extension of a file name including the dot."""
    return PurePosixPath(file_name.replace("\\", "/")).suffix.lower()


def is_audio_file(file_name: str) -> bool:
    return file_extension(file_name) in AUDIO_EXTENSIONS


def is_video_file(file_name: str) -> bool:
    return file_extension(file_name) in VIDEO_EXTENSIONS


def is_book_file(file_name: str) -> bool:
    return file_extension(file_name) in BOOK_EXTENSIONS


def book_format(file_name: str) -> str:
    """Display format for a book file ("EPUB", "PDF", ...), uppercased extension otherwise."""
    extension = file_extension(file_name)
    return BOOK_FORMATS.get(extension, extension.lstrip(".").upper())


def valid_year(year: int | None) -> int | None:
    """Return the year if it is plausible for a release (1900-2099), else None."""
    if year is not None and MIN_VALID_YEAR <= year <= MAX_VALID_YEAR:
        return year
    return None


def release_year(release_date: date | datetime | str | int | None) -> int | None:
    """Derive a valid year from whatever the metadata gave us.

    Accepts a date/datetime, an int year, or an ISO-ish string ("1982", "1982-11-30").
    """
    if release_date is None:
        return None
    if isinstance(release_date, (date, datetime)):
        return valid_year(release_date.year)
    if isinstance(release_date, int):
        return valid_year(release_date)
    match = re.match(r"^\s*(\d{4})", str(release_date))
    return valid_year(int(match.group(1))) if match else None


def sort_title(title: str) -> str:
    """Title without a leading English article ("The Matrix" -> "Matrix")."""
    lower = title.lower()
    for article in LEADING_ARTICLES:
        if lower.startswith(article):
            return title[len(article):]
    return title


@dataclass(frozen=True)
class ParsedTrackName:
    """Numbers and title recovered from a track filename."""

    track_number: int
    title: str
    disc_number: int | None = None


def parse_track_filename(file_name: str) -> ParsedTrackName | None:
    """Inverse of track_filename(): recover disc/track number and title.

    The extension (if any) is dropped first. Returns None when no pattern matches.

    Example:
        >>> parse_track_filename("2-03 - Foo.flac")
        ParsedTrackName(track_number=3, title="Foo", disc_number=2)
    """
    name = PurePosixPath(file_name.replace("\\", "/")).name
    candidate, _ = _split_extension(name)

    for pattern in TRACK_FILENAME_PATTERNS:
        match = pattern.match(candidate.strip())
        if not match:
            continue
        groups = match.groupdict()
        title = groups["title"].strip()
        if not title:
            continue
        disc = groups.get("disc")
        return ParsedTrackName(
            track_number=int(groups["track"]),
            title=title,
            disc_number=int(disc) if disc is not None else None,
        )
    return None


def _split_extension(name: str) -> tuple[str, str]:
    # Only treat short alphanumeric suffixes as extensions - "01. Mr. Brightside" has
    # no extension, and ". Brightside" must not be cut off.
    match = re.match(r"^(?P<stem>.+)(?P<ext>\.[A-Za-z0-9]{1,5})$", name)
    if match:
        return match.group("stem"), match.group("ext")
    return name, ""


@dataclass
class NamingService:
    """Render library paths from NamingPatterns.

    Hey future me - every token value is sanitized BEFORE substitution (so a "/" in a
    title can't create a subfolder), then the rendered segment is sanitized again (so a
    user pattern with ":" can't either). Empty values render as "" and the template
    engine removes them with their brackets.
    """

    patterns: NamingPatterns = field(default_factory=lambda: DEFAULT_PATTERNS)

    # ---- music -----------------------------------------------------------------

    def artist_folder(self, artist_name: str | None) -> str:
        return self._render(self.patterns.artist_folder, artist_name=artist_name)

    def album_folder(
        self, album_title: str | None, release_date: date | datetime | str | int | None = None
    ) -> str:
        """"[1982] Thriller", or just "Thriller" without a valid year."""
        return self._render(
            self.patterns.album_folder,
            album_title=album_title,
            year=release_year(release_date),
        )

    def album_path(
        self,
        artist_name: str | None,
        album_title: str | None,
        release_date: date | datetime | str | int | None = None,
    ) -> str:
        return f"{self.artist_folder(artist_name)}/{self.album_folder(album_title, release_date)}"

    def track_filename(
        self, track_title: str | None, track_number: int | None, disc_number: int | None = None
    ) -> str:
        """"03 - Title", or "2-03 - Title" when disc_number > 1 (without extension)."""
        disc = disc_number or 1
        name = self._render(
            self.patterns.track_file,
            track_number=_pad(track_number or 0),
            track_title=track_title,
            disc_number=disc,
        )
        # Default pattern has no disc token - multi-disc albums still need the prefix
        if disc > 1 and "{disc_number}" not in self.patterns.track_file:
            name = sanitize(f"{disc}-{name}")
        return name

    def track_path(
        self,
        artist_name: str | None,
        album_title: str | None,
        release_date: date | datetime | str | int | None,
        track_title: str | None,
        track_number: int | None,
        disc_number: int | None,
        extension: str,
    ) -> str:
        """Artist/[Year] Album/NN - Title.ext relative to the music root folder."""
        return (
            f"{self.album_path(artist_name, album_title, release_date)}/"
            f"{self.track_filename(track_title, track_number, disc_number)}"
            f"{normalize_extension(extension)}"
        )

    # ---- movies ----------------------------------------------------------------

    def movie_folder(self, title: str | None, year: int | None = None) -> str:
        return self._render(self.patterns.movie_folder, movie_title=title, year=valid_year(year))

    def movie_filename(
        self, title: str | None, year: int | None = None, quality: str | None = None
    ) -> str:
        return self._render(
            self.patterns.movie_file,
            movie_title=title,
            year=valid_year(year),
            quality=quality,
        )

    def movie_path(
        self, title: str | None, year: int | None, quality: str | None, extension: str
    ) -> str:
        return (
            f"{self.movie_folder(title, year)}/"
            f"{self.movie_filename(title, year, quality)}{normalize_extension(extension)}"
        )

    # ---- tv --------------------------------------------------------------------

    def series_folder(self, title: str | None, year: int | None = None) -> str:
        return self._render(self.patterns.series_folder, show_title=title, year=valid_year(year))

    def season_folder(self, season_number: int) -> str:
        if season_number == 0:
            return "Specials"
        return self._render(self.patterns.season_folder, season_number=_pad(season_number))

    def episode_filename(
        self,
        show_title: str | None,
        season_number: int,
        episode_number: int,
        episode_title: str | None = None,
        quality: str | None = None,
    ) -> str:
        """"Show - S01E02 - Title", or "Show - S01E02" without a title."""
        return self._render(
            self.patterns.episode_file,
            show_title=show_title,
            season_number=_pad(season_number),
            episode_number=_pad(episode_number),
            episode_title=episode_title,
            quality=quality,
        )

    def episode_path(
        self,
        show_title: str | None,
        show_year: int | None,
        season_number: int,
        episode_number: int,
        episode_title: str | None,
        extension: str,
        quality: str | None = None,
    ) -> str:
        file_name = self.episode_filename(
            show_title, season_number, episode_number, episode_title, quality
        )
        return (
            f"{self.series_folder(show_title, show_year)}/"
            f"{self.season_folder(season_number)}/"
            f"{file_name}{normalize_extension(extension)}"
        )

    # ---- books -----------------------------------------------------------------

    def author_folder(self, author_name: str | None) -> str:
        return self._render(self.patterns.author_folder, author_name=author_name)

    def book_filename(
        self, title: str | None, release_date: date | datetime | str | int | None = None
    ) -> str:
        return self._render(
            self.patterns.book_file, book_title=title, year=release_year(release_date)
        )

    def book_path(
        self,
        author_name: str | None,
        title: str | None,
        release_date: date | datetime | str | int | None,
        extension: str,
    ) -> str:
        return (
            f"{self.author_folder(author_name)}/"
            f"{self.book_filename(title, release_date)}{normalize_extension(extension)}"
        )

    # ---- internals -------------------------------------------------------------

    def _render(self, pattern: str, **values: Any) -> str:
        cleaned = {
            key: sanitize(str(value)) if value not in (None, "") else ""
            for key, value in values.items()
        }
        rendered = parse_template(pattern, cleaned)
        rendered = DANGLING_SEPARATOR_PATTERN.sub("", rendered)
        return sanitize(rendered)


def _pad(number: int) -> str:
    return str(number).zfill(2)


# Built-in scheme - what you get without any user patterns configured
_default_naming = NamingService()

artist_folder = _default_naming.artist_folder
album_folder = _default_naming.album_folder
track_filename = _default_naming.track_filename
track_path = _default_naming.track_path
movie_folder = _default_naming.movie_folder
movie_filename = _default_naming.movie_filename
movie_path = _default_naming.movie_path
series_folder = _default_naming.series_folder
season_folder = _default_naming.season_folder
episode_filename = _default_naming.episode_filename
episode_path = _default_naming.episode_path
author_folder = _default_naming.author_folder
book_filename = _default_naming.book_filename
book_path = _default_naming.book_path
