# Hey future me - this is the "put files where the naming scheme says" toolbox!
# Two jobs:
# 1. Manual imports of single files/folders into a KNOWN album (import_file /
#    import_directory). Same per-file logic as the download importer, so matching and
#    naming can't drift apart.
# 2. Renames: after the user changes naming patterns (or fixes a title), preview_rename_*
#    shows what would move and rename_* moves it. Emptied folders are removed up to,
#    but never including, the root folder.
"""File organizer service for manual imports and library renames."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    MUSIC_IMPORT_POLICY,
    OsDirectoryLister,
    collect_files,
    list_dir_with_timeout,
    move_file,
    remove_empty_parents,
    stat_with_timeout,
)
from mediarr.application.services.import_base import file_error
from mediarr.application.services.music_import_service import AlbumTarget, MusicImportService
from mediarr.config.settings import Settings
from mediarr.domain.entities import ImportResult, OrganizeResult, RenamePreviewItem
from mediarr.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    NoFilesFoundException,
    PathInaccessibleException,
    ValidationException,
)
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, IEventSink, IMediaProbe
from mediarr.domain.value_objects.naming import NamingService
from mediarr.infrastructure.observability.logging import set_operation_id
from mediarr.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    AuthorRepository,
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


class FileOrganizerService:
    """Manual imports into known albums plus rename previews/renames for every media type."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: IMediaProbe,
        naming: NamingService | None = None,
        events: IEventSink | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.naming = naming or NamingService(settings.naming.to_patterns())
        self.lister = lister
        self.music_importer = MusicImportService(
            session, settings, probe, naming=self.naming, events=events, lister=lister
        )

        self.root_folder_repo = RootFolderRepository(session)
        self.artist_repo = ArtistRepository(session)
        self.album_repo = AlbumRepository(session)
        self.track_repo = TrackRepository(session)
        self.track_file_repo = TrackFileRepository(session)
        self.movie_repo = MovieRepository(session)
        self.movie_file_repo = MovieFileRepository(session)
        self.show_repo = TvShowRepository(session)
        self.episode_repo = EpisodeRepository(session)
        self.episode_file_repo = EpisodeFileRepository(session)
        self.author_repo = AuthorRepository(session)
        self.book_repo = BookRepository(session)
        self.book_file_repo = BookFileRepository(session)

    @property
    def path_timeout(self) -> float:
        return self.settings.imports.path_timeout_seconds

    # =========================================================================
    # MANUAL IMPORTS
    # =========================================================================

    async def import_file(
        self,
        source_path: Path | str,
        album_id: str,
        delete_source: bool = True,
        overwrite_existing: bool = False,
    ) -> ImportResult:
        """Import one audio file into a known album."""
        set_operation_id(prefix="organize")
        source = Path(source_path)
        result = ImportResult(entity_id=album_id)
        try:
            target = await self._album_target(album_id)
            await self._import_one(source, target, result, delete_source, overwrite_existing)
        except DomainException as e:
            result.errors.append(e.message)
        result.success = result.files_imported > 0
        await self.music_importer.emit_result(result, source_path=str(source))
        return result

    async def import_directory(
        self,
        directory: Path | str,
        album_id: str,
        recursive: bool = True,
        delete_source: bool = True,
    ) -> ImportResult:
        """Import every audio file of a folder into a known album."""
        set_operation_id(prefix="organize")
        source = Path(directory)
        result = ImportResult(entity_id=album_id)
        try:
            target = await self._album_target(album_id)
            files = await self._audio_files(source, recursive)
            if not files:
                raise NoFilesFoundException("No audio files found")
            for entry in files:
                await self._import_one(entry.path, target, result, delete_source, False)
        except DomainException as e:
            result.errors.append(e.message)

        result.success = result.files_imported > 0
        await self.music_importer.emit_result(result, source_path=str(source))
        logger.info(
            "Organized %s: %d imported, %d errors",
            source,
            result.files_imported,
            len(result.errors),
        )
        return result

    async def _audio_files(self, directory: Path, recursive: bool) -> list[DirectoryEntry]:
        timeout = self.settings.imports.listing_timeout_seconds
        if recursive:
            return await collect_files(directory, MUSIC_IMPORT_POLICY, self.lister, timeout)
        lister = self.lister or OsDirectoryLister()
        try:
            entries = await list_dir_with_timeout(lister, directory, timeout)
        except OSError as e:
            raise PathInaccessibleException(str(directory)) from e
        return sorted(
            (
                entry
                for entry in entries
                if not entry.is_dir and MUSIC_IMPORT_POLICY.should_include(entry.name)
            ),
            key=lambda entry: entry.name.lower(),
        )

    async def _import_one(
        self,
        source: Path,
        target: AlbumTarget,
        result: ImportResult,
        delete_source: bool,
        overwrite_existing: bool,
    ) -> None:
        try:
            try:
                await stat_with_timeout(source, self.path_timeout)
            except PathInaccessibleException:
                raise ValidationException("Source file not found") from None
            relative_path = await self.music_importer.import_audio_file(
                source,
                target,
                keep_source=not delete_source,
                overwrite_existing=overwrite_existing,
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            result.files_skipped += 1
            result.errors.append(file_error(source, e))
            logger.warning("Failed to organize %s: %s", source.name, e)
            return

        if relative_path is None:
            result.files_skipped += 1
            return
        result.files_imported += 1
        result.imported_paths.append(relative_path)

        album = await self.album_repo.find(target.album_id)
        if album is not None and not album.has_file:
            album.has_file = True
            await self.session.commit()

    async def _album_target(self, album_id: str) -> AlbumTarget:
        album = await self.album_repo.find(album_id)
        artist = await self.artist_repo.find(album.artist_id) if album else None
        root_folder = (
            await self.root_folder_repo.find(artist.root_folder_id)
            if artist and artist.root_folder_id
            else None
        )
        if album is None or artist is None or root_folder is None:
            raise ValidationException("Album, artist, and root folder are required")
        return AlbumTarget.build(album, artist, root_folder)

    # =========================================================================
    # MOVING EXISTING FILES
    # =========================================================================

    async def _relocate(self, root_path: str, current_path: str, new_path: str) -> None:
        """Move root/current -> root/new and prune the emptied source folders."""
        root = Path(root_path)
        source = root / current_path
        destination = root / new_path
        await stat_with_timeout(source, self.path_timeout)
        if destination != source and await asyncio.to_thread(destination.exists):
            raise ValidationException("Destination file already exists")
        await asyncio.to_thread(move_file, source, destination)
        await asyncio.to_thread(remove_empty_parents, source.parent, root)

    async def move_track_file(self, track_file_id: str, new_relative_path: str) -> bool:
        """Move one track file within its root folder and update its record."""
        track_file = await self.track_file_repo.find(track_file_id)
        if track_file is None:
            return False
        target = await self._album_target(track_file.album_id)
        current_path = track_file.relative_path
        if current_path == new_relative_path:
            return True
        try:
            await self._relocate(target.root_path, current_path, new_relative_path)
            await self.track_file_repo.update(track_file, relative_path=new_relative_path)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.warning("Failed to move %s: %s", current_path, e)
            return False
        logger.info("Moved %s -> %s", current_path, new_relative_path)
        return True

    async def _apply(
        self,
        items: Sequence[RenamePreviewItem],
        root_path: str,
        repo: SqlAlchemyRepository[Any],
        describe_error: Callable[[RenamePreviewItem, Exception], str],
    ) -> OrganizeResult:
        result = OrganizeResult()
        for item in items:
            if not item.will_change:
                continue
            try:
                await self._relocate(root_path, item.current_path, item.new_path)
                record = await repo.get(item.file_id)
                await repo.update(record, relative_path=item.new_path)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                result.errors.append(describe_error(item, e))
                logger.warning("Rename of %s failed: %s", item.current_path, e)
                continue
            result.moved += 1
        logger.info("Renamed %d files (%d errors)", result.moved, len(result.errors))
        return result

    # =========================================================================
    # MUSIC
    # =========================================================================

    async def _album_previews(self, album_id: str, target: AlbumTarget) -> list[RenamePreviewItem]:
        items = []
        for track_file in await self.track_file_repo.list_for_album(album_id):
            track = await self.track_repo.find(track_file.track_id) if track_file.track_id else None
            if track is None:
                continue
            new_path = self.naming.track_path(
                target.artist_name,
                target.album_title,
                target.release_date,
                track.title,
                track.track_number,
                track.disc_number,
                Path(track_file.relative_path).suffix,
            )
            items.append(RenamePreviewItem(track_file.id, track_file.relative_path, new_path))
        return items

    async def organize_album(self, album_id: str) -> OrganizeResult:
        """Move every file of an album to where the naming scheme wants it."""
        set_operation_id(prefix="organize")
        try:
            target = await self._album_target(album_id)
        except DomainException as e:
            return OrganizeResult(errors=[e.message])
        items = await self._album_previews(album_id, target)
        return await self._apply(
            items,
            target.root_path,
            self.track_file_repo,
            lambda item, _error: f"Failed to move: {item.current_path}",
        )

    async def preview_rename_artist(self, artist_id: str) -> list[RenamePreviewItem]:
        """Current vs. new path of every track file of an artist.

        Raises:
            EntityNotFoundException: Artist or its root folder missing
        """
        artist = await self.artist_repo.find(artist_id)
        if artist is None or not artist.root_folder_id:
            raise EntityNotFoundException(
                "Artist", artist_id, "Artist or root folder not configured"
            )
        items: list[RenamePreviewItem] = []
        for album in await self.album_repo.list_by(artist_id=artist_id):
            target = await self._album_target(album.id)
            items.extend(await self._album_previews(album.id, target))
        return items

    async def rename_artist(self, artist_id: str) -> OrganizeResult:
        set_operation_id(prefix="rename")
        try:
            items = await self.preview_rename_artist(artist_id)
            root_path = await self._root_path_for(self.artist_repo, artist_id)
        except DomainException as e:
            return OrganizeResult(errors=[e.message])
        return await self._apply(
            items,
            root_path,
            self.track_file_repo,
            lambda item, error: f"{item.current_path}: {_message(error)}",
        )

    # =========================================================================
    # MOVIES
    # =========================================================================

    async def preview_rename_movie(self, movie_id: str) -> list[RenamePreviewItem]:
        movie = await self.movie_repo.find(movie_id)
        movie_file = await self.movie_file_repo.find_by(movie_id=movie_id) if movie else None
        if movie is None or movie_file is None or not movie.root_folder_id:
            raise EntityNotFoundException(
                "Movie", movie_id, "Movie, file, or root folder not found"
            )
        new_path = self.naming.movie_path(
            movie.title,
            movie.year,
            movie_file.quality,
            Path(movie_file.relative_path).suffix,
        )
        return [RenamePreviewItem(movie_file.id, movie_file.relative_path, new_path)]

    async def rename_movie(self, movie_id: str) -> OrganizeResult:
        set_operation_id(prefix="rename")
        try:
            items = await self.preview_rename_movie(movie_id)
            root_path = await self._root_path_for(self.movie_repo, movie_id)
        except DomainException as e:
            return OrganizeResult(errors=[e.message])
        return await self._apply(
            items,
            root_path,
            self.movie_file_repo,
            lambda _item, error: f"Failed to rename: {_message(error)}",
        )

    # =========================================================================
    # TV
    # =========================================================================

    async def preview_rename_episodes(self, show_id: str) -> list[RenamePreviewItem]:
        show = await self.show_repo.find(show_id)
        if show is None or not show.root_folder_id:
            raise EntityNotFoundException("TvShow", show_id, "TV show or root folder not found")
        items = []
        for episode_file in await self.episode_file_repo.list_by(tv_show_id=show_id):
            episode = await self.episode_repo.find(episode_file.episode_id)
            if episode is None:
                continue
            new_path = self.naming.episode_path(
                show.title,
                show.year,
                episode.season_number,
                episode.episode_number,
                episode.title,
                Path(episode_file.relative_path).suffix,
                episode_file.quality,
            )
            items.append(RenamePreviewItem(episode_file.id, episode_file.relative_path, new_path))
        return items

    async def rename_episodes(self, show_id: str) -> OrganizeResult:
        set_operation_id(prefix="rename")
        try:
            items = await self.preview_rename_episodes(show_id)
            root_path = await self._root_path_for(self.show_repo, show_id)
        except DomainException as e:
            return OrganizeResult(errors=[e.message])

        labels: dict[str, str] = {}
        for item in items:
            episode_file = await self.episode_file_repo.find(item.file_id)
            if episode_file is None:
                continue
            episode = await self.episode_repo.find(episode_file.episode_id)
            if episode is not None:
                labels[item.file_id] = (
                    f"S{episode.season_number:02d}E{episode.episode_number:02d}"
                )
        return await self._apply(
            items,
            root_path,
            self.episode_file_repo,
            lambda item, error: f"{labels.get(item.file_id, item.current_path)}: {_message(error)}",
        )

    # =========================================================================
    # BOOKS
    # =========================================================================

    async def preview_rename_books(self, author_id: str) -> list[RenamePreviewItem]:
        author = await self.author_repo.find(author_id)
        if author is None or not author.root_folder_id:
            raise EntityNotFoundException(
                "Author", author_id, "Author or root folder not configured"
            )
        items = []
        for book in await self.book_repo.list_by(author_id=author_id):
            book_file = await self.book_file_repo.find_by(book_id=book.id)
            if book_file is None:
                continue
            new_path = self.naming.book_path(
                author.name, book.title, book.release_date, Path(book_file.relative_path).suffix
            )
            items.append(RenamePreviewItem(book_file.id, book_file.relative_path, new_path))
        return items

    async def rename_books(self, author_id: str) -> OrganizeResult:
        set_operation_id(prefix="rename")
        try:
            items = await self.preview_rename_books(author_id)
            root_path = await self._root_path_for(self.author_repo, author_id)
        except DomainException as e:
            return OrganizeResult(errors=[e.message])

        titles: dict[str, str] = {}
        for book in await self.book_repo.list_by(author_id=author_id):
            book_file = await self.book_file_repo.find_by(book_id=book.id)
            if book_file is not None:
                titles[book_file.id] = book.title
        return await self._apply(
            items,
            root_path,
            self.book_file_repo,
            lambda item, error: (
                f'"{titles.get(item.file_id, item.current_path)}": {_message(error)}'
            ),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _root_path_for(self, repo: SqlAlchemyRepository[Any], entity_id: str) -> str:
        entity = await repo.get(entity_id)
        root_folder = await self.root_folder_repo.find(entity.root_folder_id)
        if root_folder is None:
            raise EntityNotFoundException(
                "RootFolder", entity.root_folder_id, "Root folder not found"
            )
        return root_folder.path


def _message(error: Exception) -> str:
    return error.message if isinstance(error, DomainException) else str(error)
