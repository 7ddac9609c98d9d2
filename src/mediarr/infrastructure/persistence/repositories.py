"""Repository implementations over the ORM models.

Hey future me - the import/scan core only needs simple access: find by key, find by a
column, create, update, delete and filtered count/first/all. SqlAlchemyRepository gives
every model exactly that; the subclasses below add the handful of lookups that need a join
or a case-insensitive compare. No repository commits - the service owns the transaction
(scanners commit per file, importers per imported file).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.domain.exceptions import EntityNotFoundException

from .models import (
    AlbumModel,
    ArtistModel,
    AuthorModel,
    Base,
    BookFileModel,
    BookModel,
    DownloadClientModel,
    EpisodeFileModel,
    EpisodeModel,
    MovieFileModel,
    MovieModel,
    RootFolderModel,
    SeasonModel,
    TrackFileModel,
    TrackModel,
    TvShowModel,
    UnmatchedFileModel,
)

ModelT = TypeVar("ModelT", bound=Base)


class SqlAlchemyRepository(Generic[ModelT]):
    """Generic find/create/update/delete over one model class."""

    model: type[ModelT]
    entity_name: str = "Entity"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _filters(self, filters: dict[str, Any]) -> list[ColumnElement[bool]]:
        return [getattr(self.model, column) == value for column, value in filters.items()]

    async def find(self, entity_id: str) -> ModelT | None:
        return await self.session.get(self.model, entity_id)

    async def get(self, entity_id: str) -> ModelT:
        """Like find() but raises EntityNotFoundException."""
        instance = await self.find(entity_id)
        if instance is None:
            raise EntityNotFoundException(self.entity_name, entity_id)
        return instance

    async def find_by(self, **filters: Any) -> ModelT | None:
        stmt = select(self.model).where(*self._filters(filters)).limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_by(self, **filters: Any) -> Sequence[ModelT]:
        stmt = select(self.model).where(*self._filters(filters))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_by(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).where(*self._filters(filters))
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def create(self, **fields: Any) -> ModelT:
        """Add a new row and flush so defaults (id, timestamps) are populated."""
        instance = self.model(**fields)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def update(self, instance: ModelT, **fields: Any) -> ModelT:
        for column, value in fields.items():
            setattr(instance, column, value)
        await self.session.flush()
        return instance

    async def delete(self, instance: ModelT) -> None:
        await self.session.delete(instance)
        await self.session.flush()


# =============================================================================
# ROOT FOLDERS / DOWNLOADS
# =============================================================================


class RootFolderRepository(SqlAlchemyRepository[RootFolderModel]):
    model = RootFolderModel
    entity_name = "RootFolder"

    async def list_accessible(self) -> Sequence[RootFolderModel]:
        stmt = (
            select(RootFolderModel)
            .where(RootFolderModel.accessible.is_(True))
            .order_by(RootFolderModel.name)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class DownloadClientRepository(SqlAlchemyRepository[DownloadClientModel]):
    model = DownloadClientModel
    entity_name = "DownloadClient"


class UnmatchedFileRepository(SqlAlchemyRepository[UnmatchedFileModel]):
    model = UnmatchedFileModel
    entity_name = "UnmatchedFile"

    async def record(
        self,
        root_folder_id: str,
        relative_path: str,
        file_name: str,
        media_type: str,
        file_size_bytes: int | None,
        parsed_info: dict[str, Any] | None = None,
    ) -> UnmatchedFileModel:
        """Upsert an unmatched file (a rescan must not duplicate it)."""
        existing = await self.find_by(root_folder_id=root_folder_id, relative_path=relative_path)
        if existing:
            return await self.update(
                existing, file_size_bytes=file_size_bytes, parsed_info=parsed_info
            )
        return await self.create(
            root_folder_id=root_folder_id,
            relative_path=relative_path,
            file_name=file_name,
            media_type=media_type,
            file_size_bytes=file_size_bytes,
            parsed_info=parsed_info,
        )


# =============================================================================
# MUSIC
# =============================================================================


class ArtistRepository(SqlAlchemyRepository[ArtistModel]):
    model = ArtistModel
    entity_name = "Artist"

    async def find_by_name(
        self, name: str, root_folder_id: str | None = None
    ) -> ArtistModel | None:
        """Case-insensitive exact name match, optionally within one root folder."""
        stmt = select(ArtistModel).where(func.lower(ArtistModel.name) == name.lower())
        if root_folder_id is not None:
            stmt = stmt.where(ArtistModel.root_folder_id == root_folder_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()


class AlbumRepository(SqlAlchemyRepository[AlbumModel]):
    model = AlbumModel
    entity_name = "Album"

    async def find_by_title(self, artist_id: str, title: str) -> AlbumModel | None:
        stmt = select(AlbumModel).where(
            AlbumModel.artist_id == artist_id,
            func.lower(AlbumModel.title) == title.lower(),
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def list_for_root_folder(self, root_folder_id: str) -> Sequence[AlbumModel]:
        stmt = (
            select(AlbumModel)
            .join(ArtistModel, ArtistModel.id == AlbumModel.artist_id)
            .where(ArtistModel.root_folder_id == root_folder_id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class TrackRepository(SqlAlchemyRepository[TrackModel]):
    model = TrackModel
    entity_name = "Track"

    async def list_for_album(self, album_id: str) -> Sequence[TrackModel]:
        stmt = (
            select(TrackModel)
            .where(TrackModel.album_id == album_id)
            .order_by(TrackModel.disc_number, TrackModel.track_number)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def next_track_number(self, album_id: str, disc_number: int = 1) -> int:
        stmt = select(func.max(TrackModel.track_number)).where(
            TrackModel.album_id == album_id, TrackModel.disc_number == disc_number
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0) + 1


class TrackFileRepository(SqlAlchemyRepository[TrackFileModel]):
    model = TrackFileModel
    entity_name = "TrackFile"

    async def find_in_root(
        self, root_folder_id: str, relative_path: str
    ) -> TrackFileModel | None:
        """File row for a path under one music root (paths are only unique per root)."""
        stmt = (
            select(TrackFileModel)
            .join(AlbumModel, AlbumModel.id == TrackFileModel.album_id)
            .join(ArtistModel, ArtistModel.id == AlbumModel.artist_id)
            .where(
                ArtistModel.root_folder_id == root_folder_id,
                TrackFileModel.relative_path == relative_path,
            )
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def list_for_album(self, album_id: str) -> Sequence[TrackFileModel]:
        return await self.list_by(album_id=album_id)


# =============================================================================
# BOOKS
# =============================================================================


class AuthorRepository(SqlAlchemyRepository[AuthorModel]):
    model = AuthorModel
    entity_name = "Author"

    async def list_for_root_folder(self, root_folder_id: str) -> Sequence[AuthorModel]:
        return await self.list_by(root_folder_id=root_folder_id)


class BookRepository(SqlAlchemyRepository[BookModel]):
    model = BookModel
    entity_name = "Book"

    async def list_for_root_folder(self, root_folder_id: str) -> Sequence[BookModel]:
        stmt = (
            select(BookModel)
            .join(AuthorModel, AuthorModel.id == BookModel.author_id)
            .where(AuthorModel.root_folder_id == root_folder_id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class BookFileRepository(SqlAlchemyRepository[BookFileModel]):
    model = BookFileModel
    entity_name = "BookFile"

    async def find_in_root(self, root_folder_id: str, relative_path: str) -> BookFileModel | None:
        stmt = (
            select(BookFileModel)
            .join(BookModel, BookModel.id == BookFileModel.book_id)
            .join(AuthorModel, AuthorModel.id == BookModel.author_id)
            .where(
                AuthorModel.root_folder_id == root_folder_id,
                BookFileModel.relative_path == relative_path,
            )
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()


# =============================================================================
# MOVIES
# =============================================================================


class MovieRepository(SqlAlchemyRepository[MovieModel]):
    model = MovieModel
    entity_name = "Movie"

    async def list_for_root_folder(self, root_folder_id: str) -> Sequence[MovieModel]:
        return await self.list_by(root_folder_id=root_folder_id)


class MovieFileRepository(SqlAlchemyRepository[MovieFileModel]):
    model = MovieFileModel
    entity_name = "MovieFile"

    async def find_in_root(
        self, root_folder_id: str, relative_path: str
    ) -> MovieFileModel | None:
        stmt = (
            select(MovieFileModel)
            .join(MovieModel, MovieModel.id == MovieFileModel.movie_id)
            .where(
                MovieModel.root_folder_id == root_folder_id,
                MovieFileModel.relative_path == relative_path,
            )
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()


# =============================================================================
# TV
# =============================================================================


class TvShowRepository(SqlAlchemyRepository[TvShowModel]):
    model = TvShowModel
    entity_name = "TvShow"

    async def list_for_root_folder(self, root_folder_id: str) -> Sequence[TvShowModel]:
        return await self.list_by(root_folder_id=root_folder_id)

    async def recount(self, show: TvShowModel) -> None:
        """Recompute season/episode aggregates from child rows (never incremental)."""
        seasons = await SeasonRepository(self.session).list_by(tv_show_id=show.id)
        episodes = EpisodeRepository(self.session)
        for season in seasons:
            season.episode_count = await episodes.count_by(season_id=season.id)
        show.season_count = len(seasons)
        show.episode_count = await episodes.count_by(tv_show_id=show.id)
        await self.session.flush()


class SeasonRepository(SqlAlchemyRepository[SeasonModel]):
    model = SeasonModel
    entity_name = "Season"

    async def get_or_create(self, tv_show_id: str, season_number: int) -> SeasonModel:
        season = await self.find_by(tv_show_id=tv_show_id, season_number=season_number)
        if season:
            return season
        return await self.create(
            tv_show_id=tv_show_id,
            season_number=season_number,
            title="Specials" if season_number == 0 else f"Season {season_number}",
        )


class EpisodeRepository(SqlAlchemyRepository[EpisodeModel]):
    model = EpisodeModel
    entity_name = "Episode"


class EpisodeFileRepository(SqlAlchemyRepository[EpisodeFileModel]):
    model = EpisodeFileModel
    entity_name = "EpisodeFile"

    async def find_in_root(
        self, root_folder_id: str, relative_path: str
    ) -> EpisodeFileModel | None:
        stmt = (
            select(EpisodeFileModel)
            .join(TvShowModel, TvShowModel.id == EpisodeFileModel.tv_show_id)
            .where(
                TvShowModel.root_folder_id == root_folder_id,
                EpisodeFileModel.relative_path == relative_path,
            )
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def delete_for_episode(self, episode_id: str) -> None:
        await self.session.execute(
            delete(EpisodeFileModel).where(EpisodeFileModel.episode_id == episode_id)
        )
