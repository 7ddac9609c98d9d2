"""User-configurable naming templates for library folders and files.

Hey future me - this is the pattern layer on top of naming.py! Users can override
how folders and files are named (Settings > Media Management), e.g. switch the album
folder from "[1982] Thriller" to "Thriller (1982)". A pattern is plain text with
{variable} tokens:

    "[{year}] {album_title}"       -> "[1982] Thriller"
    "[{year}] {album_title}" (no year) -> "Thriller"

Missing/empty values are removed TOGETHER with the brackets/parens that wrapped them,
so a pattern never produces "Thriller ()" or "[] Thriller". Validation is separate from
substitution on purpose: an unknown token in a saved pattern is a settings problem,
reported by validate_pattern(), while parse_template() just drops it at runtime.

Usage:
    from mediarr.domain.value_objects.naming_templates import parse_template

    parse_template("{artist} - {title}", {"artist": "Prince", "title": "Kiss"})
    # "Prince - Kiss"
"""

import re
from dataclasses import dataclass
from typing import Any

from mediarr.domain.entities import MediaType

# {variable_name} - word characters only, same grammar the settings UI offers
TEMPLATE_TOKEN_PATTERN = re.compile(r"\{(\w+)\}")

# Leftovers after removing empty tokens: "()" / "( )" / "[]" plus the space before them
EMPTY_PARENS_PATTERN = re.compile(r"\s*\(\s*\)")
EMPTY_BRACKETS_PATTERN = re.compile(r"\s*\[\s*\]")
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class TemplateVariable:
    """A token that may appear in a naming pattern."""

    name: str
    description: str
    example: str


@dataclass(frozen=True)
class NamingPatterns:
    """Complete set of naming patterns, one per folder/file level.

    Defaults reproduce the built-in Jellyfin-compatible layout:
        Music:  Artist/[Year] Album/NN - Title.ext
        Movies: Title (Year)/Title (Year) - Quality.ext
        TV:     Show (Year)/Season NN/Show - SxxEyy - Episode.ext
        Books:  Author/Title (Year).ext
    """

    artist_folder: str = "{artist_name}"
    album_folder: str = "[{year}] {album_title}"
    track_file: str = "{track_number} - {track_title}"
    movie_folder: str = "{movie_title} ({year})"
    movie_file: str = "{movie_title} ({year}) - {quality}"
    series_folder: str = "{show_title} ({year})"
    season_folder: str = "Season {season_number}"
    episode_file: str = "{show_title} - S{season_number}E{episode_number} - {episode_title}"
    author_folder: str = "{author_name}"
    book_file: str = "{book_title} ({year})"


DEFAULT_PATTERNS = NamingPatterns()


# Field names here match NamingPatterns attributes - validate_pattern() looks them up
# by (media type, field) so the settings screen can validate one input box at a time.
TEMPLATE_VARIABLES: dict[MediaType, dict[str, tuple[TemplateVariable, ...]]] = {
    MediaType.MUSIC: {
        "artist_folder": (TemplateVariable("artist_name", "Artist name", "Michael Jackson"),),
        "album_folder": (
            TemplateVariable("album_title", "Album title", "Thriller"),
            TemplateVariable("year", "Release year", "1982"),
        ),
        "track_file": (
            TemplateVariable("track_number", "Track number (zero-padded)", "01"),
            TemplateVariable("track_title", "Track title", "Beat It"),
            TemplateVariable("disc_number", "Disc number", "1"),
        ),
    },
    MediaType.MOVIES: {
        "movie_folder": (
            TemplateVariable("movie_title", "Movie title", "The Matrix"),
            TemplateVariable("year", "Release year", "1999"),
        ),
        "movie_file": (
            TemplateVariable("movie_title", "Movie title", "The Matrix"),
            TemplateVariable("year", "Release year", "1999"),
            TemplateVariable("quality", "Video quality", "Bluray-1080p"),
        ),
    },
    MediaType.TV: {
        "series_folder": (
            TemplateVariable("show_title", "Show title", "Breaking Bad"),
            TemplateVariable("year", "First air year", "2008"),
        ),
        "season_folder": (
            TemplateVariable("season_number", "Season number (zero-padded)", "01"),
        ),
        "episode_file": (
            TemplateVariable("show_title", "Show title", "Breaking Bad"),
            TemplateVariable("season_number", "Season number (zero-padded)", "01"),
            TemplateVariable("episode_number", "Episode number (zero-padded)", "01"),
            TemplateVariable("episode_title", "Episode title", "Pilot"),
            TemplateVariable("quality", "Video quality", "WEB-1080p"),
        ),
    },
    MediaType.BOOKS: {
        "author_folder": (TemplateVariable("author_name", "Author name", "Stephen King"),),
        "book_file": (
            TemplateVariable("book_title", "Book title", "The Shining"),
            TemplateVariable("year", "Publication year", "1977"),
        ),
    },
}


def parse_template(pattern: str, values: dict[str, Any]) -> str:
    """Substitute {variable} tokens in a pattern.

    Tokens whose value is missing, None or "" are removed, then any "()"/"[]" they
    leave behind is dropped and whitespace is collapsed. Every occurrence of a token
    is replaced, so "{a} and {a}" works as expected.

    Args:
        pattern: Pattern text, e.g. "[{year}] {album_title}".
        values: Token values keyed by variable name.

    Returns:
        The rendered, trimmed string (may be empty if nothing was filled in).

    Example:
        >>> parse_template("[{year}] {album_title}", {"year": "", "album_title": "Thriller"})
        "Thriller"
    """

    def replace_token(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        if value is None or value == "":
            return ""
        return str(value)

    result = TEMPLATE_TOKEN_PATTERN.sub(replace_token, pattern)
    result = EMPTY_PARENS_PATTERN.sub("", result)
    result = EMPTY_BRACKETS_PATTERN.sub("", result)
    result = WHITESPACE_PATTERN.sub(" ", result)
    return result.strip()


def template_variables(pattern: str) -> list[str]:
    """List token names used in a pattern, in order of appearance."""
    return TEMPLATE_TOKEN_PATTERN.findall(pattern)


def get_variables(media_type: MediaType, field: str) -> tuple[TemplateVariable, ...]:
    """Variables allowed for one pattern field (empty tuple for unknown fields)."""
    return TEMPLATE_VARIABLES.get(media_type, {}).get(field, ())


def validate_pattern(media_type: MediaType, field: str, pattern: str) -> list[str]:
    """Return the tokens in a pattern that are not valid for this field.

    An empty list means the pattern is valid. Duplicates are reported once.
    """
    allowed = {variable.name for variable in get_variables(media_type, field)}
    invalid: list[str] = []
    for name in template_variables(pattern):
        if name not in allowed and name not in invalid:
            invalid.append(name)
    return invalid


def generate_example(media_type: MediaType, field: str, pattern: str) -> str:
    """Render a pattern with the catalogue's example values (for settings previews)."""
    examples = {variable.name: variable.example for variable in get_variables(media_type, field)}
    return parse_template(pattern, examples)
