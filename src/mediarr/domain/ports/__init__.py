"""Domain ports (interfaces) for dependency inversion.

Hey future me - these are the collaborators the import/scan pipeline CONSUMES but doesn't
own: metadata providers, the tag probe, the event sink and the directory lister. Services
depend on these ABCs, infrastructure implements them, tests hand in fakes. Every provider
method must degrade to "no match" ([] / None) instead of raising - a flaky MusicBrainz must
never fail a scan.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mediarr.domain.entities import AudioMediaInfo, ScanProgressCallback, ScanResult

# =============================================================================
# PROVIDER RECORDS
# =============================================================================


@dataclass(frozen=True)
class AlbumCandidate:
    """Release group returned by a music metadata search."""

    release_group_id: str
    title: str
    artist_name: str | None = None
    artist_id: str | None = None
    year: int | None = None
    score: int = 0


@dataclass(frozen=True)
class TracklistEntry:
    """One track of a release tracklist."""

    title: str
    track_number: int
    disc_number: int = 1
    duration_ms: int | None = None
    recording_id: str | None = None


@dataclass(frozen=True)
class MovieCandidate:
    """Movie returned by a video metadata search."""

    tmdb_id: int
    title: str
    year: int | None = None
    overview: str | None = None
    poster_path: str | None = None


@dataclass(frozen=True)
class TvShowCandidate:
    """TV show returned by a video metadata search."""

    tmdb_id: int
    title: str
    year: int | None = None
    overview: str | None = None
    poster_path: str | None = None


@dataclass(frozen=True)
class EpisodeCandidate:
    """Episode of a season as known to the provider."""

    season_number: int
    episode_number: int
    title: str | None = None
    air_date: str | None = None


@dataclass(frozen=True)
class AuthorCandidate:
    """Author returned by a book metadata search."""

    openlibrary_id: str
    name: str
    birth_date: str | None = None
    work_count: int = 0


@dataclass(frozen=True)
class BookCandidate:
    """Book (work) returned by a book metadata search."""

    openlibrary_id: str
    title: str
    author_name: str | None = None
    author_id: str | None = None
    year: int | None = None
    isbn: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DirectoryEntry:
    """One child of a directory listing."""

    name: str
    path: Path
    is_dir: bool
    size: int = 0


# =============================================================================
# METADATA PROVIDERS
# =============================================================================


class IMusicMetadataProvider(ABC):
    """MusicBrainz-like lookup service."""

    @abstractmethod
    async def search_albums(
        self, artist_name: str, album_title: str, limit: int = 5
    ) -> list[AlbumCandidate]:
        """Search release groups by artist and title."""
        pass

    @abstractmethod
    async def get_tracklist(self, release_group_id: str) -> list[TracklistEntry]:
        """Tracklist of the first official release in a release group ([] if unknown)."""
        pass


class IMovieMetadataProvider(ABC):
    """TMDB-like movie lookup."""

    @abstractmethod
    async def search_movies(self, title: str, year: int | None = None) -> list[MovieCandidate]:
        """Search movies by title, optionally narrowed by release year."""
        pass

    @abstractmethod
    async def get_movie(self, tmdb_id: int) -> MovieCandidate | None:
        """Full record by provider ID."""
        pass


class ITvMetadataProvider(ABC):
    """TMDB-like TV lookup."""

    @abstractmethod
    async def search_shows(self, title: str, year: int | None = None) -> list[TvShowCandidate]:
        """Search shows by title, optionally narrowed by first-air year."""
        pass

    @abstractmethod
    async def get_show(self, tmdb_id: int) -> TvShowCandidate | None:
        """Full record by provider ID."""
        pass

    @abstractmethod
    async def get_season_episodes(
        self, tmdb_id: int, season_number: int
    ) -> list[EpisodeCandidate]:
        """Episodes of one season ([] if unknown)."""
        pass


class IBookMetadataProvider(ABC):
    """OpenLibrary-like book lookup."""

    @abstractmethod
    async def search_authors(self, name: str, limit: int = 5) -> list[AuthorCandidate]:
        """Search authors by name."""
        pass

    @abstractmethod
    async def search_books(
        self, title: str, author_name: str | None = None, limit: int = 5
    ) -> list[BookCandidate]:
        """Search works by title (and author when known)."""
        pass


# =============================================================================
# MEDIA PROBE / EVENTS / FILESYSTEM
# =============================================================================


class IMediaProbe(ABC):
    """Reads embedded tags and technical info from audio files."""

    @abstractmethod
    async def read_tags(self, file_path: Path) -> AudioMediaInfo | None:
        """Probe a file; None when it can't be read (corrupt, unsupported, vanished)."""
        pass


EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


class IEventSink(ABC):
    """Fire-and-forget outcome events ("import.completed", "import.failed")."""

    @abstractmethod
    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event. Must never raise."""
        pass


class IDirectoryLister(ABC):
    """Lists one directory level.

    Synchronous on purpose: the walker runs it in a worker thread under a timeout, so a
    hung network mount blocks a thread instead of the event loop.
    """

    @abstractmethod
    def list_dir(self, path: Path) -> list[DirectoryEntry]:
        """Children of a directory. Raises OSError if it can't be read."""
        pass


class ILibraryScanner(ABC):
    """Per-media-type cold scanner, dispatched to by the scan coordinator."""

    @abstractmethod
    async def scan(
        self, root_folder_id: str, on_progress: ScanProgressCallback | None = None
    ) -> ScanResult:
        """Walk a root folder and reconcile what's on disk with the database."""
        pass


__all__ = [
    "AlbumCandidate",
    "AuthorCandidate",
    "BookCandidate",
    "DirectoryEntry",
    "EpisodeCandidate",
    "EventHandler",
    "IBookMetadataProvider",
    "IDirectoryLister",
    "IEventSink",
    "ILibraryScanner",
    "IMediaProbe",
    "IMovieMetadataProvider",
    "IMusicMetadataProvider",
    "ITvMetadataProvider",
    "MovieCandidate",
    "TracklistEntry",
    "TvShowCandidate",
]
