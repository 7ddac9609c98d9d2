"""Library reconciliation: has_file flags and vanished file rows.

Hey future me - this service handles DESTRUCTIVE cleanup! File rows whose path no longer
exists under the root folder are deleted, then every has_file flag in the root folder is
recomputed from the remaining file rows. Flags are never trusted incrementally here, this
is the "recount from source of truth" pass.

The root folder is probed FIRST: an unmounted share looks exactly like "every file
vanished", so an inaccessible root or a timed-out stat aborts the whole run with a
rollback instead of wiping the library.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import access_with_timeout, stat_with_timeout
from mediarr.config.settings import Settings
from mediarr.domain.entities import MediaType
from mediarr.domain.exceptions import (
    EntityNotFoundException,
    PathInaccessibleException,
    ValidationException,
)
from mediarr.infrastructure.observability.logging import set_operation_id
from mediarr.infrastructure.persistence.repositories import (
    AlbumRepository,
    BookFileRepository,
    BookRepository,
    EpisodeFileRepository,
    EpisodeRepository,
    MovieFileRepository,
    MovieRepository,
    RootFolderRepository,
    SqlAlchemyRepository,
    TrackFileRepository,
    TrackRepository,
    TvShowRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """What a reconciliation pass changed."""

    root_folder_id: str
    files_checked: int = 0
    files_removed: int = 0
    flags_updated: int = 0


class LibraryReconciliationService:
    """Recomputes has_file flags of one root folder from its file rows."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self.session = session
        self.settings = settings
        self.root_folder_repo = RootFolderRepository(session)
        self.album_repo = AlbumRepository(session)
        self.track_repo = TrackRepository(session)
        self.track_file_repo = TrackFileRepository(session)
        self.movie_repo = MovieRepository(session)
        self.movie_file_repo = MovieFileRepository(session)
        self.show_repo = TvShowRepository(session)
        self.episode_repo = EpisodeRepository(session)
        self.episode_file_repo = EpisodeFileRepository(session)
        self.book_repo = BookRepository(session)
        self.book_file_repo = BookFileRepository(session)

    async def sync_has_file_flags(
        self, root_folder_id: str, remove_missing: bool = True
    ) -> ReconciliationResult:
        """Drop vanished file rows and recompute has_file for a root folder.

        Args:
            root_folder_id: Root folder to reconcile
            remove_missing: Delete file rows whose file is gone (False = flags only)

        Returns:
            Counts of checked/removed files and changed flags

        Raises:
            EntityNotFoundException: Root folder doesn't exist
            PathInaccessibleException: Root folder can't be read
            PathTimeoutException: Root folder (or a file in it) didn't answer in time
        """
        set_operation_id(prefix="reconcile")
        root_folder = await self.root_folder_repo.find(root_folder_id)
        if root_folder is None:
            raise EntityNotFoundException("RootFolder", root_folder_id, "Root folder not found")
        root_path = Path(root_folder.path)
        try:
            media_type = MediaType(root_folder.media_type)
        except ValueError:
            raise ValidationException(
                f"Unsupported media type: {root_folder.media_type}"
            ) from None
        await access_with_timeout(root_path, self.settings.imports.path_timeout_seconds)

        result = ReconciliationResult(root_folder_id=root_folder_id)
        sync = {
            MediaType.MUSIC: self._sync_music,
            MediaType.MOVIES: self._sync_movies,
            MediaType.TV: self._sync_tv,
            MediaType.BOOKS: self._sync_books,
        }[media_type]

        try:
            await sync(root_folder_id, root_path, result, remove_missing)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Reconciled root %s: %d files checked, %d removed, %d flags updated",
            root_folder_id,
            result.files_checked,
            result.files_removed,
            result.flags_updated,
        )
        return result

    # =========================================================================
    # PER MEDIA TYPE
    # =========================================================================

    async def _sync_music(
        self, root_folder_id: str, root_path: Path, result: ReconciliationResult, remove: bool
    ) -> None:
        for album in await self.album_repo.list_for_root_folder(root_folder_id):
            files = await self._prune(
                self.track_file_repo,
                await self.track_file_repo.list_for_album(album.id),
                root_path,
                result,
                remove,
            )
            file_by_track = {track_file.track_id: track_file.id for track_file in files}
            for track in await self.track_repo.list_for_album(album.id):
                file_id = file_by_track.get(track.id)
                await self._set(
                    self.track_repo,
                    track,
                    result,
                    has_file=file_id is not None,
                    track_file_id=file_id,
                )
            await self._set(self.album_repo, album, result, has_file=bool(files))

    async def _sync_movies(
        self, root_folder_id: str, root_path: Path, result: ReconciliationResult, remove: bool
    ) -> None:
        for movie in await self.movie_repo.list_for_root_folder(root_folder_id):
            files = await self._prune(
                self.movie_file_repo,
                await self.movie_file_repo.list_by(movie_id=movie.id),
                root_path,
                result,
                remove,
            )
            await self._set(self.movie_repo, movie, result, has_file=bool(files))

    async def _sync_tv(
        self, root_folder_id: str, root_path: Path, result: ReconciliationResult, remove: bool
    ) -> None:
        for show in await self.show_repo.list_for_root_folder(root_folder_id):
            files = await self._prune(
                self.episode_file_repo,
                await self.episode_file_repo.list_by(tv_show_id=show.id),
                root_path,
                result,
                remove,
            )
            file_by_episode = {episode_file.episode_id: episode_file.id for episode_file in files}
            for episode in await self.episode_repo.list_by(tv_show_id=show.id):
                file_id = file_by_episode.get(episode.id)
                await self._set(
                    self.episode_repo,
                    episode,
                    result,
                    has_file=file_id is not None,
                    episode_file_id=file_id,
                )
            await self.show_repo.recount(show)

    async def _sync_books(
        self, root_folder_id: str, root_path: Path, result: ReconciliationResult, remove: bool
    ) -> None:
        for book in await self.book_repo.list_for_root_folder(root_folder_id):
            files = await self._prune(
                self.book_file_repo,
                await self.book_file_repo.list_by(book_id=book.id),
                root_path,
                result,
                remove,
            )
            await self._set(self.book_repo, book, result, has_file=bool(files))

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _prune(
        self,
        repo: SqlAlchemyRepository[Any],
        files: Sequence[Any],
        root_path: Path,
        result: ReconciliationResult,
        remove: bool,
    ) -> list[Any]:
        """File rows that still exist on disk (the others are deleted when remove=True)."""
        kept = []
        for file_row in files:
            result.files_checked += 1
            if not remove or await self._exists(root_path / file_row.relative_path):
                kept.append(file_row)
                continue
            logger.info("Removing record of vanished file %s", file_row.relative_path)
            await repo.delete(file_row)
            result.files_removed += 1
        return kept

    async def _exists(self, path: Path) -> bool:
        # PathTimeoutException propagates: a hanging mount is not a missing file
        try:
            await stat_with_timeout(path, self.settings.imports.path_timeout_seconds)
        except PathInaccessibleException:
            return False
        return True

    @staticmethod
    async def _set(
        repo: SqlAlchemyRepository[Any],
        instance: Any,
        result: ReconciliationResult,
        **fields: Any,
    ) -> None:
        changed = {
            column: value
            for column, value in fields.items()
            if getattr(instance, column) != value
        }
        if changed:
            await repo.update(instance, **changed)
            result.flags_updated += 1
