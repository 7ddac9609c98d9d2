"""Regex parsers for release names and library folder structures.

Hey future me - this is the "what is this file?" layer for everything that isn't embedded
tags. Scanners and importers feed it RELATIVE paths ("Show (2020)/Season 01/x.mkv") and get
back best-effort dataclasses. The rules:

1. NEVER raise on weird input. A parser that can't find something leaves the field None
   (titles fall back to "Unknown") - callers decide what a missing field means.
2. Pattern lists are ORDERED and first match wins. "S01E01-E03" must be tried before
   "S01E01" or we'd lose the multi-episode range. Tests pin this order.
3. Quality tokens only match as whole tokens. Plain substring matching turned "Cats" into a
   TS (telesync) release and cut "Confession" at "nf" (Netflix). Token boundaries are
   anything that isn't a letter or digit, so "Movie.1080p.WEB-DL" still works.

Usage:
    from mediarr.domain.value_objects.release_parsing import parse_tv_path

    info = parse_tv_path("Breaking Bad (2008)/Season 01/Breaking Bad - S01E01 - Pilot.mkv")
    # info.show_title == "Breaking Bad", info.season_number == 1, info.episode_title == "Pilot"
"""

import re
from dataclasses import dataclass

from mediarr.domain.value_objects.naming import (
    BOOK_EXTENSIONS,
    BOOK_FORMATS,
    UNKNOWN_NAME,
    VIDEO_EXTENSIONS,
    file_extension,
    valid_year,
)

# =============================================================================
# QUALITY TOKENS (release-name vocabulary, checked in list order)
# =============================================================================

RESOLUTION_TOKENS = ("2160p", "4k", "1080p", "720p", "576p", "480p", "360p")

TV_SOURCE_TOKENS = (
    "bluray", "blu-ray", "bdrip", "brrip", "remux", "webrip", "web-dl", "webdl", "web",
    "hdtv", "hdrip", "amzn", "nf", "netflix", "hulu", "dsnp", "atvp", "hmax",
)

MOVIE_SOURCE_TOKENS = (
    "bluray", "blu-ray", "bdrip", "brrip", "remux", "webrip", "web-dl", "webdl", "web",
    "hdtv", "hdrip", "dvdrip", "dvd", "hdcam", "cam", "ts", "telesync", "screener",
)

CODEC_TOKENS = ("x264", "x265", "h264", "h265", "hevc", "avc", "xvid", "divx", "av1")

# Trailing words that are never part of a movie title
MOVIE_NOISE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(rf"(?<![A-Za-z0-9]){words}(?![A-Za-z0-9])", re.IGNORECASE)
    for words in (
        r"(?:proper|repack|internal|extended|unrated|theatrical|directors[.\s]?cut)",
        r"(?:multi|dual|french|german|spanish|italian)",
        r"(?:dts|aac|ac3|dd5[.\s]?1|7[.\s]?1|atmos)",
        r"(?:hdr10|hdr|dolby[.\s]?vision|dv)",
    )
)

# "-GROUP" at the very end; these look like groups but are split tokens ("WEB-DL", "BD-Rip")
RELEASE_GROUP_PATTERN = re.compile(r"-([A-Za-z0-9]+)$")
RELEASE_GROUP_FALSE_POSITIVES = frozenset({"dl", "rip", "cam", "ts", "hd", "sd"})

# =============================================================================
# TV PATTERNS
# =============================================================================

# Episode markers, first match wins. The range pattern covers "S01E01-02", "S01E01-E02"
# and "S01E01E02" - the explicit S01E01E02 pattern stays for clarity.
EPISODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # A range end glued to a resolution ("S01E05-1080p") is not an episode number
    re.compile(r"S(\d{1,2})E(\d{1,3})(?:-E?|E)(\d{1,3})(?![\dp])", re.IGNORECASE),
    re.compile(r"S(\d{1,2})E(\d{1,3})E(\d{1,3})", re.IGNORECASE),
    re.compile(r"S(\d{1,2})E(\d{1,3})", re.IGNORECASE),
    re.compile(r"(\d{1,2})x(\d{2,3})", re.IGNORECASE),
    re.compile(r"s(\d{1,2})\.?e(\d{1,3})", re.IGNORECASE),
)

# Used to cut the show title at the marker and the episode title after it
SE_MARKER_CUT_PATTERN = re.compile(r"[.\s_-]?S\d{1,2}\.?E\d{1,3}.*", re.IGNORECASE)
X_MARKER_CUT_PATTERN = re.compile(r"[.\s_-]?\d{1,2}x\d{2,3}.*", re.IGNORECASE)
EPISODE_TITLE_MARKER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"S\d{1,2}\.?E\d{1,3}(?:(?:-E?|E)\d{1,3}(?![\dp]))?\s*[-.]?\s*", re.IGNORECASE
    ),
    re.compile(r"\d{1,2}x\d{2,3}\s*[-.]?\s*", re.IGNORECASE),
)

# Season folders: "Season 01", "S01", "Staffel 1" (de), "Saison 1" (fr), bare "1"
SEASON_FOLDER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^season\s*(\d+)$", re.IGNORECASE),
    re.compile(r"^s(\d+)$", re.IGNORECASE),
    re.compile(r"^staffel\s*(\d+)$", re.IGNORECASE),
    re.compile(r"^saison\s*(\d+)$", re.IGNORECASE),
    re.compile(r"^(\d{1,2})$"),
)

# "Show - S01E02 - Title", "Show - S01E02", "S01E02 - Title", anything with S01E02 / 1x02
EPISODE_FILENAME_PATTERNS: tuple[tuple[re.Pattern[str], bool], ...] = (
    (re.compile(r"^.+?\s*-\s*S(\d{1,2})E(\d{1,3})\s*-\s*(.+)$", re.IGNORECASE), True),
    (re.compile(r"^.+?\s*-\s*S(\d{1,2})E(\d{1,3})$", re.IGNORECASE), False),
    (re.compile(r"^S(\d{1,2})E(\d{1,3})\s*-\s*(.+)$", re.IGNORECASE), True),
    (re.compile(r"^.*S(\d{1,2})E(\d{1,3}).*$", re.IGNORECASE), False),
    (re.compile(r"^.*?(\d{1,2})x(\d{2,3}).*$", re.IGNORECASE), False),
)

# Year in show/movie names, most specific first
PAREN_YEAR_PATTERN = re.compile(r"\((\d{4})\)")
BRACKET_YEAR_PATTERN = re.compile(r"\[(\d{4})\]")
DOTTED_YEAR_PATTERN = re.compile(r"\.(\d{4})\.")
SPACED_YEAR_BEFORE_EPISODE_PATTERN = re.compile(
    r"\s(\d{4})\s+(?:S\d{1,2}E\d{1,3}|\d{1,2}x\d{2,3})", re.IGNORECASE
)
MOVIE_YEAR_PATTERNS: tuple[re.Pattern[str], ...] = (
    PAREN_YEAR_PATTERN,
    BRACKET_YEAR_PATTERN,
    DOTTED_YEAR_PATTERN,
    re.compile(r"\s(\d{4})\s"),
    re.compile(r"\.(\d{4})(?:\.|$)"),
)

# =============================================================================
# MUSIC FOLDER PATTERNS
# =============================================================================

# "[1982] Thriller" (our own layout) then "Thriller (1982)" (Lidarr/Plex layout)
BRACKET_YEAR_ALBUM_PATTERN = re.compile(r"^\[(?P<year>\d{4})\]\s*(?P<title>.+)$")
PAREN_YEAR_ALBUM_PATTERN = re.compile(r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)$")

# "Artist - Album (2020)" - how most music downloads are named. A spaced " - " wins over
# a bare hyphen so "Jay-Z - The Blueprint" keeps its artist; "Artist-Album" still splits.
ARTIST_ALBUM_FOLDER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?P<artist>.+?)\s+-\s+(?P<album>.+?)(?:\s*\((?P<year>\d{4})\))?$"),
    re.compile(r"^(?P<artist>.+?)\s*-\s*(?P<album>.+?)(?:\s*\((?P<year>\d{4})\))?$"),
)

# =============================================================================
# BOOK PATTERNS
# =============================================================================

MIN_BOOK_YEAR = 1800

# Series notations, first match wins. Named groups so title-first and series-first
# layouts can share one loop.
BOOK_SERIES_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "Series #1 - Title" / "Series #1: Title"
    re.compile(r"^(?P<series>.+?)\s*#(?P<position>\d+)\s*[-:]\s*(?P<title>.+)$"),
    # "Series, Book 1 - Title"
    re.compile(
        r"^(?P<series>.+?),\s*(?:Book|Vol\.?|Volume)\s*(?P<position>\d+)\s*[-:]\s*(?P<title>.+)$",
        re.IGNORECASE,
    ),
    # "[Series 1] Title"
    re.compile(r"^\[(?P<series>.+?)\s*(?P<position>\d+)\]\s*(?P<title>.+)$"),
    # "Title (Series #1)"
    re.compile(r"^(?P<title>.+?)\s*\((?P<series>.+?)\s*#(?P<position>\d+)\)$"),
    # "Title (Series, Book 1)"
    re.compile(
        r"^(?P<title>.+?)\s*\((?P<series>.+?),\s*(?:Book|Vol\.?|Volume)\s*(?P<position>\d+)\)$",
        re.IGNORECASE,
    ),
)
# "Series #3" alone - the series name doubles as the title
BOOK_TRAILING_POSITION_PATTERN = re.compile(r"^(?P<title>.+?)\s*#(?P<position>\d+)$")

AUTHOR_TITLE_SPLIT_PATTERN = re.compile(r"^(.+?)\s+-\s+(.+)$")
LAST_FIRST_PATTERN = re.compile(r"^(.+?),\s*(.+)$")
BOOK_TITLE_WORDS = frozenset(
    {"the", "a", "an", "of", "and", "in", "to", "for", "book", "series", "volume", "vol", "part"}
)


# =============================================================================
# PARSED RESULT DATACLASSES
# =============================================================================


@dataclass(frozen=True)
class EpisodeMarker:
    """Season/episode numbers found in a name."""

    season_number: int
    episode_number: int
    is_multi_episode: bool = False
    end_episode_number: int | None = None


@dataclass(frozen=True)
class ParsedEpisodeFile:
    """Result of parse_episode_filename() - the importer's view of a file name."""

    season_number: int
    episode_number: int
    title: str | None = None


@dataclass
class ParsedTvInfo:
    """Everything a TV path tells us.

    Hey future me - season_number can come from the folder ("Season 02") OR the file
    marker; the folder wins when both exist because users fix folders, not filenames.
    """

    show_title: str = UNKNOWN_NAME
    year: int | None = None
    season_number: int | None = None
    episode_number: int | None = None
    episode_title: str | None = None
    quality: str | None = None
    """Display hint, e.g. "1080p WEB-DL" - NOT a quality profile name."""
    resolution: str | None = None
    source: str | None = None
    is_multi_episode: bool = False
    end_episode_number: int | None = None


@dataclass
class ParsedMovieInfo:
    """Title/year/quality hints from a movie folder or file name."""

    title: str = UNKNOWN_NAME
    year: int | None = None
    quality: str | None = None
    resolution: str | None = None
    source: str | None = None
    codec: str | None = None
    release_group: str | None = None


@dataclass
class ParsedBookInfo:
    """Title/author/series hints from a book path."""

    title: str = UNKNOWN_NAME
    author_name: str | None = None
    year: int | None = None
    format: str = "UNKNOWN"
    series_name: str | None = None
    series_position: int | None = None


@dataclass(frozen=True)
class ParsedAlbumFolder:
    """Album folder name split into title and optional year."""

    title: str
    year: int | None = None


@dataclass(frozen=True)
class ParsedArtistAlbumFolder:
    """"Artist - Album (Year)" download folder."""

    artist: str
    album: str
    year: int | None = None


# =============================================================================
# HELPERS
# =============================================================================


def normalize_title(title: str | None) -> str:
    """Grouping/lookup key: lowercase with everything but letters and digits removed.

    "The Office (US)" and "the.office.us" both become "theofficeus".
    """
    if not title:
        return ""
    return "".join(ch for ch in title.lower() if ch.isalnum())


def _split_path(relative_path: str) -> list[str]:
    return [part for part in relative_path.replace("\\", "/").split("/") if part]


def _strip_extension(name: str, extensions: frozenset[str]) -> str:
    extension = file_extension(name)
    if extension and extension in extensions:
        return name[: -len(extension)]
    return name


def _token_pattern(token: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![A-Za-z0-9]){re.escape(token)}(?![A-Za-z0-9])", re.IGNORECASE)


_TOKEN_PATTERNS: dict[str, re.Pattern[str]] = {
    token: _token_pattern(token)
    for token in (*RESOLUTION_TOKENS, *TV_SOURCE_TOKENS, *MOVIE_SOURCE_TOKENS, *CODEC_TOKENS)
}


def _first_token(name: str, tokens: tuple[str, ...]) -> str | None:
    for token in tokens:
        if _TOKEN_PATTERNS[token].search(name):
            return token
    return None


def _format_quality(resolution: str | None, source: str | None) -> str | None:
    parts = [part for part in (resolution, source) if part]
    return " ".join(parts) if parts else None


def _extract_year(
    name: str, patterns: tuple[re.Pattern[str], ...], min_year: int = 1900
) -> tuple[int | None, str]:
    """Find the first plausible year; return it and the name with the match blanked out."""
    for pattern in patterns:
        match = pattern.search(name)
        if not match:
            continue
        year = int(match.group(1))
        if min_year <= year <= 2099:
            return year, name[: match.start()] + " " + name[match.end():]
    return None, name


def _clean_show_title(title: str) -> str:
    title = re.sub(r"[._]", " ", title)
    title = re.sub(r"\s+", " ", title)
    title = re.sub(r"\s*-\s*$", "", title)
    return title.strip() or UNKNOWN_NAME


# =============================================================================
# TV
# =============================================================================


def parse_episode_marker(name: str) -> EpisodeMarker | None:
    """Find the season/episode marker in a name (see EPISODE_PATTERNS for the order)."""
    for pattern in EPISODE_PATTERNS:
        match = pattern.search(name)
        if not match:
            continue
        end = match.group(3) if pattern.groups >= 3 else None
        return EpisodeMarker(
            season_number=int(match.group(1)),
            episode_number=int(match.group(2)),
            is_multi_episode=end is not None,
            end_episode_number=int(end) if end is not None else None,
        )
    return None


def parse_season_folder(folder_name: str) -> int | None:
    """Season number from a season folder name, None if it isn't one."""
    name = folder_name.strip()
    for pattern in SEASON_FOLDER_PATTERNS:
        match = pattern.match(name)
        if match:
            return int(match.group(1))
    return None


def parse_episode_filename(file_name: str) -> ParsedEpisodeFile | None:
    """Season, episode and (optional) title from a single episode file name.

    Example:
        >>> parse_episode_filename("Breaking Bad - S01E02 - Cat's in the Bag.mkv")
        ParsedEpisodeFile(season_number=1, episode_number=2, title="Cat's in the Bag")
    """
    name = _strip_extension(file_name, VIDEO_EXTENSIONS).strip()
    for pattern, has_title in EPISODE_FILENAME_PATTERNS:
        match = pattern.match(name)
        if not match:
            continue
        title = match.group(3).strip() if has_title else None
        return ParsedEpisodeFile(
            season_number=int(match.group(1)),
            episode_number=int(match.group(2)),
            title=title or None,
        )
    return None


def _extract_tv_year(name: str) -> tuple[int | None, str]:
    year, remaining = _extract_year(
        name, (PAREN_YEAR_PATTERN, BRACKET_YEAR_PATTERN, DOTTED_YEAR_PATTERN)
    )
    if year is not None:
        return year, remaining

    # "Show Name 2023 S01E01" - only trusted right before the episode marker
    match = SPACED_YEAR_BEFORE_EPISODE_PATTERN.search(name)
    if match and valid_year(int(match.group(1))):
        return int(match.group(1)), name[: match.start(1)] + name[match.end(1):]
    return None, name


def _episode_title(name: str) -> str | None:
    for pattern in EPISODE_TITLE_MARKER_PATTERNS:
        match = pattern.search(name)
        if not match:
            continue
        title = name[match.end():]
        # Everything from the first quality token on is release noise
        for token in (*RESOLUTION_TOKENS, *TV_SOURCE_TOKENS):
            token_match = _TOKEN_PATTERNS[token].search(title)
            if token_match:
                title = title[: token_match.start()]
        title = re.sub(r"[._]", " ", title).strip()
        title = re.sub(r"\s*-\s*$", "", title).strip()
        if title:
            return title
    return None


def parse_tv_filename(file_name: str) -> ParsedTvInfo:
    """Parse a scene-style episode file name ("Show.Name.S01E01.Title.1080p.WEB-DL.mkv")."""
    name = _strip_extension(file_name, VIDEO_EXTENSIONS)
    marker = parse_episode_marker(name)
    year, _ = _extract_tv_year(name)
    resolution = _first_token(name, RESOLUTION_TOKENS)
    source = _first_token(name, TV_SOURCE_TOKENS)

    title = name
    if marker:
        title = X_MARKER_CUT_PATTERN.sub("", SE_MARKER_CUT_PATTERN.sub("", title))
    if year:
        title = re.sub(rf"\({year}\)|\[{year}\]|\.{year}|\s{year}(?=\s|$)", "", title)

    return ParsedTvInfo(
        show_title=_clean_show_title(title),
        year=year,
        season_number=marker.season_number if marker else None,
        episode_number=marker.episode_number if marker else None,
        episode_title=_episode_title(name) if marker else None,
        quality=_format_quality(resolution, source.upper() if source else None),
        resolution=resolution,
        source=source.upper() if source else None,
        is_multi_episode=marker.is_multi_episode if marker else False,
        end_episode_number=marker.end_episode_number if marker else None,
    )


def _parse_show_folder(folder_name: str) -> tuple[str, int | None]:
    year, remaining = _extract_tv_year(folder_name)
    return _clean_show_title(remaining), year


def parse_tv_path(relative_path: str) -> ParsedTvInfo:
    """Parse a path relative to a TV root folder.

    Layouts:
        "Show (2020)/Season 01/S01E01 - Episode.mkv"   show/season/file
        "Season 01/Show - S01E01.mkv"                  season/file
        "Show/Show.S01E01.mkv"                         show/file
        "Show.Name.S01E01.Episode.1080p.mkv"           file only
    """
    parts = _split_path(relative_path)
    if not parts:
        return ParsedTvInfo()

    if len(parts) == 1:
        return parse_tv_filename(parts[0])

    episode = parse_tv_filename(parts[-1])

    if len(parts) == 2:
        season = parse_season_folder(parts[0])
        if season is not None:
            episode.season_number = season
            return episode
        show_title, year = _parse_show_folder(parts[0])
        episode.show_title = show_title
        episode.year = year or episode.year
        return episode

    show_title, year = _parse_show_folder(parts[0])
    episode.show_title = show_title
    episode.year = year or episode.year
    season = parse_season_folder(parts[1])
    if season is not None:
        episode.season_number = season
    return episode


# =============================================================================
# MOVIES
# =============================================================================


def parse_movie_name(name: str) -> ParsedMovieInfo:
    """Parse a movie folder or file name.

    Example:
        >>> parse_movie_name("The.Matrix.1999.1080p.BluRay.x264-GROUP.mkv")
        ParsedMovieInfo(title="The Matrix", year=1999, resolution="1080p",
                        source="BLURAY", codec="X264", release_group="GROUP", ...)
    """
    clean = _strip_extension(name, VIDEO_EXTENSIONS)
    year, remaining = _extract_year(clean, MOVIE_YEAR_PATTERNS)

    resolution = _first_token(remaining, RESOLUTION_TOKENS)
    source = _first_token(remaining, MOVIE_SOURCE_TOKENS)
    codec = _first_token(remaining, CODEC_TOKENS)

    # Only scene-style names have a group - "Spider-Man" must not lose "Man"
    title = remaining
    release_group: str | None = None
    group_match = RELEASE_GROUP_PATTERN.search(remaining)
    if (
        group_match
        and (resolution or source or codec)
        and group_match.group(1).lower() not in RELEASE_GROUP_FALSE_POSITIVES
    ):
        release_group = group_match.group(1)
        title = remaining[: group_match.start()]

    for token in (*RESOLUTION_TOKENS, *MOVIE_SOURCE_TOKENS, *CODEC_TOKENS):
        title = _TOKEN_PATTERNS[token].sub(" ", title)
    for pattern in MOVIE_NOISE_PATTERNS:
        title = pattern.sub(" ", title)

    title = re.sub(r"[._]", " ", title)
    title = re.sub(r"\s+", " ", title)
    title = re.sub(r"-+", "-", title)
    title = re.sub(r"^\s*-\s*|\s*-\s*$", "", title).strip()

    return ParsedMovieInfo(
        title=title or UNKNOWN_NAME,
        year=year,
        quality=_format_quality(resolution, source.upper() if source else None),
        resolution=resolution,
        source=source.upper() if source else None,
        codec=codec.upper() if codec else None,
        release_group=release_group,
    )


def parse_movie_path(relative_path: str) -> ParsedMovieInfo:
    """Parse a movie path; the top folder name wins because it is usually the clean one."""
    parts = _split_path(relative_path)
    if not parts:
        return ParsedMovieInfo()
    return parse_movie_name(parts[0])


# =============================================================================
# BOOKS
# =============================================================================


def looks_like_author_name(text: str) -> bool:
    """Heuristic: 1-5 words, no digits, not mostly title words ("the", "of", "book", ...)."""
    words = text.strip().split()
    if not words or len(words) > 5:
        return False
    title_words = sum(1 for word in words if word.lower() in BOOK_TITLE_WORDS)
    if title_words > len(words) / 2:
        return False
    return not re.search(r"\d", text)


def _book_format(file_name: str) -> str:
    return BOOK_FORMATS.get(file_extension(file_name), "UNKNOWN")


def _clean_book_title(title: str) -> str:
    title = re.sub(r"\s*[-:]\s*$", "", title)
    title = re.sub(r"^\s*[-:]\s*", "", title)
    title = re.sub(r"\s+", " ", title)
    return title.strip() or UNKNOWN_NAME


def clean_author_name(name: str) -> str:
    """Collapse whitespace and turn "King, Stephen" into "Stephen King"."""
    cleaned = re.sub(r"\s+", " ", name).strip()
    match = LAST_FIRST_PATTERN.match(cleaned)
    if match:
        cleaned = f"{match.group(2)} {match.group(1)}"
    return cleaned or UNKNOWN_NAME


def _book_series(name: str) -> tuple[str | None, int | None, str]:
    for pattern in BOOK_SERIES_PATTERNS:
        match = pattern.match(name)
        if match:
            return (
                match.group("series").strip(),
                int(match.group("position")),
                match.group("title").strip(),
            )
    match = BOOK_TRAILING_POSITION_PATTERN.match(name)
    if match:
        return None, int(match.group("position")), match.group("title").strip()
    return None, None, name


def _parse_book_stem(stem: str) -> tuple[str, int | None, str | None, int | None]:
    year, remaining = _extract_year(
        stem, (PAREN_YEAR_PATTERN, BRACKET_YEAR_PATTERN), min_year=MIN_BOOK_YEAR
    )
    series, position, title = _book_series(remaining.strip())
    return _clean_book_title(title), year, series, position


def parse_book_filename(file_name: str) -> ParsedBookInfo:
    """Parse a bare book file name, guessing the author from "A - B"."""
    stem = _strip_extension(file_name, BOOK_EXTENSIONS)
    author: str | None = None

    split = AUTHOR_TITLE_SPLIT_PATTERN.match(stem)
    if split:
        first, second = split.group(1).strip(), split.group(2).strip()
        # "Author - Title" is far more common, so it wins when both sides look like names
        if looks_like_author_name(first):
            author, stem = first, second
        elif looks_like_author_name(second):
            author, stem = second, first

    title, year, series, position = _parse_book_stem(stem)
    return ParsedBookInfo(
        title=title,
        author_name=author,
        year=year,
        format=_book_format(file_name),
        series_name=series,
        series_position=position,
    )


def parse_book_path(relative_path: str) -> ParsedBookInfo:
    """Parse a path relative to a book root ("Author/[Series/]Title.epub")."""
    parts = _split_path(relative_path)
    if not parts:
        return ParsedBookInfo()
    if len(parts) == 1:
        return parse_book_filename(parts[0])

    file_name = parts[-1]
    title, year, series, position = _parse_book_stem(_strip_extension(file_name, BOOK_EXTENSIONS))
    return ParsedBookInfo(
        title=title,
        author_name=clean_author_name(parts[0]),
        year=year,
        format=_book_format(file_name),
        series_name=series,
        series_position=position,
    )


# =============================================================================
# MUSIC
# =============================================================================


def parse_album_folder(folder_name: str) -> ParsedAlbumFolder:
    """"[1982] Thriller" / "Thriller (1982)" / "Thriller" -> title + year.

    A 4-digit number outside 1900-2099 is kept as part of the title ("1000 Forms of Fear").
    """
    name = folder_name.strip()
    for pattern in (BRACKET_YEAR_ALBUM_PATTERN, PAREN_YEAR_ALBUM_PATTERN):
        match = pattern.match(name)
        if match and valid_year(int(match.group("year"))):
            return ParsedAlbumFolder(
                title=match.group("title").strip() or UNKNOWN_NAME,
                year=int(match.group("year")),
            )
    return ParsedAlbumFolder(title=name or UNKNOWN_NAME)


def parse_artist_album_folder(folder_name: str) -> ParsedArtistAlbumFolder | None:
    """"Artist - Album (2020)" download folder, None without a hyphen split."""
    name = folder_name.strip()
    for pattern in ARTIST_ALBUM_FOLDER_PATTERNS:
        match = pattern.match(name)
        if not match:
            continue
        year = int(match.group("year")) if match.group("year") else None
        return ParsedArtistAlbumFolder(
            artist=match.group("artist").strip(),
            album=match.group("album").strip(),
            year=valid_year(year),
        )
    return None
