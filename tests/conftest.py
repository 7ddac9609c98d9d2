"""Shared fixtures: a fresh SQLite database per test, fake ports and seed helpers.

Hey future me - every test gets its OWN file-backed database under tmp_path. In-memory
SQLite would be faster but each new connection sees an empty database, and the scan
coordinator opens its own sessions. Directory trees are built in tmp_path too, so the
importers and scanners run against a real filesystem.
"""

import time
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import OsDirectoryLister
from mediarr.config import DatabaseSettings, ImportSettings, MusicBrainzSettings, Settings
from mediarr.domain.entities import AudioMediaInfo, MediaType
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, IMediaProbe
from mediarr.infrastructure.persistence import (
    AlbumModel,
    ArtistModel,
    AuthorModel,
    BookModel,
    Database,
    DownloadModel,
    EpisodeModel,
    MovieModel,
    RootFolderModel,
    TrackModel,
    TvShowModel,
)
from mediarr.infrastructure.persistence.repositories import SeasonRepository

# =============================================================================
# SETTINGS / DATABASE
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a per-test database, ignoring any local .env."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        imports=ImportSettings(path_timeout_seconds=2.0, listing_timeout_seconds=2.0),
        musicbrainz=MusicBrainzSettings(rate_limit_delay=0.0),
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.drop_tables()
    await db.close()


@pytest.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as db_session:
        yield db_session


# =============================================================================
# FAKE PORTS
# =============================================================================


class FakeProbe(IMediaProbe):
    """Tag probe answering from a file-name -> info table.

    Names mapped to None behave like corrupt files. Unknown names get the default.
    """

    def __init__(
        self,
        tags: dict[str, AudioMediaInfo | None] | None = None,
        default: AudioMediaInfo | None = None,
    ) -> None:
        self.tags = tags or {}
        self.default = default or AudioMediaInfo(codec="flac", bit_depth=16, sample_rate=44_100)
        self.calls: list[Path] = []

    async def read_tags(self, file_path: Path) -> AudioMediaInfo | None:
        self.calls.append(file_path)
        if file_path.name in self.tags:
            return self.tags[file_path.name]
        return self.default


class SlowLister(IDirectoryLister):
    """Lister that takes `delay` seconds per directory, like a dying NFS mount."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    def list_dir(self, path: Path) -> list[DirectoryEntry]:
        self.calls += 1
        time.sleep(self.delay)
        return OsDirectoryLister().list_dir(path)


class CountingLister(OsDirectoryLister):
    """Real lister that counts how often it was asked."""

    def __init__(self) -> None:
        self.calls = 0

    def list_dir(self, path: Path) -> list[DirectoryEntry]:
        self.calls += 1
        return super().list_dir(path)


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


# =============================================================================
# FILES
# =============================================================================


def write_file(path: Path, size: int = 16) -> Path:
    """Create a file (and its parents) with `size` bytes of content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    return path


# =============================================================================
# SEEDING
# =============================================================================


class LibrarySeeder:
    """Inserts library rows with sensible defaults and commits each one."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _add(self, instance: Any) -> Any:
        self.session.add(instance)
        await self.session.commit()
        return instance

    async def root_folder(self, path: Path, media_type: MediaType | str) -> RootFolderModel:
        path.mkdir(parents=True, exist_ok=True)
        value = media_type.value if isinstance(media_type, MediaType) else media_type
        return await self._add(RootFolderModel(name=path.name, path=str(path), media_type=value))

    async def artist(self, name: str, root_folder: RootFolderModel | None) -> ArtistModel:
        return await self._add(
            ArtistModel(name=name, root_folder_id=root_folder.id if root_folder else None)
        )

    async def album(
        self,
        artist: ArtistModel,
        title: str,
        release_date: date | None = None,
        release_group_id: str | None = None,
    ) -> AlbumModel:
        return await self._add(
            AlbumModel(
                artist_id=artist.id,
                title=title,
                release_date=release_date,
                musicbrainz_release_group_id=release_group_id,
            )
        )

    async def track(
        self, album: AlbumModel, title: str, track_number: int, disc_number: int = 1
    ) -> TrackModel:
        return await self._add(
            TrackModel(
                album_id=album.id,
                title=title,
                track_number=track_number,
                disc_number=disc_number,
            )
        )

    async def movie(
        self, title: str, year: int | None, root_folder: RootFolderModel | None
    ) -> MovieModel:
        return await self._add(
            MovieModel(
                title=title,
                year=year,
                root_folder_id=root_folder.id if root_folder else None,
            )
        )

    async def show(
        self, title: str, year: int | None, root_folder: RootFolderModel | None
    ) -> TvShowModel:
        return await self._add(
            TvShowModel(
                title=title,
                year=year,
                root_folder_id=root_folder.id if root_folder else None,
            )
        )

    async def episode(
        self,
        show: TvShowModel,
        season_number: int,
        episode_number: int,
        title: str | None = None,
    ) -> EpisodeModel:
        season = await SeasonRepository(self.session).get_or_create(show.id, season_number)
        return await self._add(
            EpisodeModel(
                tv_show_id=show.id,
                season_id=season.id,
                season_number=season_number,
                episode_number=episode_number,
                title=title,
            )
        )

    async def author(self, name: str, root_folder: RootFolderModel | None) -> AuthorModel:
        return await self._add(
            AuthorModel(name=name, root_folder_id=root_folder.id if root_folder else None)
        )

    async def book(
        self, author: AuthorModel, title: str, release_date: date | None = None
    ) -> BookModel:
        return await self._add(
            BookModel(author_id=author.id, title=title, release_date=release_date)
        )

    async def download(
        self, title: str, output_path: Path | str | None, **links: Any
    ) -> DownloadModel:
        return await self._add(
            DownloadModel(
                title=title,
                status="completed",
                output_path=str(output_path) if output_path is not None else None,
                **links,
            )
        )


@pytest.fixture
def seed(session: AsyncSession) -> LibrarySeeder:
    return LibrarySeeder(session)


@pytest.fixture
def make_file() -> Any:
    return write_file


@pytest.fixture
def slow_lister() -> SlowLister:
    return SlowLister(delay=0.5)


@pytest.fixture
def counting_lister() -> CountingLister:
    return CountingLister()
