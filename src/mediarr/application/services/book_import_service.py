"""Book download import service."""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    BOOK_IMPORT_POLICY,
    BOOK_JUNK_EXTENSIONS,
    stat_with_timeout,
)
from mediarr.application.services.import_base import BaseImportService, file_error
from mediarr.config.settings import Settings
from mediarr.domain.entities import ImportPhase, ImportProgressCallback, ImportResult, MediaType
from mediarr.domain.exceptions import EntityNotFoundException
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, IEventSink
from mediarr.domain.value_objects.naming import NamingService, book_format, file_extension
from mediarr.infrastructure.persistence.models import DownloadModel
from mediarr.infrastructure.persistence.repositories import (
    AuthorRepository,
    BookFileRepository,
    BookRepository,
)

logger = logging.getLogger(__name__)

# Most to least preferred. A book has ONE file, the rest of a multi-format release stays put.
BOOK_FORMAT_PRIORITY: tuple[str, ...] = (
    ".epub",
    ".mobi",
    ".azw3",
    ".azw",
    ".pdf",
    ".fb2",
    ".djvu",
    ".cbz",
    ".cbr",
)


def preferred_book_file(files: list[DirectoryEntry]) -> DirectoryEntry:
    """Pick the file in the best format; the larger file wins within one format."""

    def rank(entry: DirectoryEntry) -> tuple[int, int]:
        extension = file_extension(entry.name)
        priority = (
            BOOK_FORMAT_PRIORITY.index(extension)
            if extension in BOOK_FORMAT_PRIORITY
            else len(BOOK_FORMAT_PRIORITY)
        )
        return priority, -entry.size

    return min(files, key=rank)


class BookImportService(BaseImportService):
    """Imports the preferred file of a book download to "Author/Title (Year).ext"."""

    media_type = MediaType.BOOKS
    skip_policy = BOOK_IMPORT_POLICY
    junk_extensions = BOOK_JUNK_EXTENSIONS
    no_files_message = "No book files found in download"

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        naming: NamingService | None = None,
        events: IEventSink | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        super().__init__(session, settings, naming, events, lister)
        self.author_repo = AuthorRepository(session)
        self.book_repo = BookRepository(session)
        self.book_file_repo = BookFileRepository(session)

    async def _import_download(
        self,
        download: DownloadModel,
        source: Path,
        result: ImportResult,
        on_progress: ImportProgressCallback | None,
    ) -> None:
        book = await self.book_repo.find(download.book_id) if download.book_id else None
        if book is None:
            raise EntityNotFoundException("Book", download.book_id, "Book not found for download")
        author = await self.author_repo.find(book.author_id)
        if author is None:
            raise EntityNotFoundException("Author", book.author_id, "Author not found")
        root_folder = await self.get_root_folder(author.root_folder_id)

        book_id, title, release_date = book.id, book.title, book.release_date
        author_name, root_path = author.name, root_folder.path
        result.entity_id = book_id

        self.report(on_progress, ImportPhase.SCANNING)
        files = await self.discover(source)
        chosen = preferred_book_file(files)
        result.files_skipped += len(files) - 1

        self.report(on_progress, ImportPhase.IMPORTING, 1, 1, chosen.name)
        relative_path = self.naming.book_path(author_name, title, release_date, chosen.path.suffix)
        file_format = book_format(chosen.name)

        try:
            destination = await self.move_into_library(chosen.path, root_path, relative_path)
            size_bytes = (await stat_with_timeout(destination, self.path_timeout)).st_size

            fields = {
                "relative_path": relative_path,
                "size_bytes": size_bytes,
                "format": file_format,
                "quality": file_format,
            }
            existing = await self.book_file_repo.find_by(book_id=book_id)
            if existing:
                await self.book_file_repo.update(existing, **fields)
            else:
                await self.book_file_repo.create(book_id=book_id, **fields)

            book = await self.book_repo.get(book_id)
            await self.book_repo.update(book, has_file=True)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            result.files_skipped += 1
            result.errors.append(file_error(chosen.path, e))
            logger.warning("Failed to import %s: %s", chosen.name, e)
            return

        result.files_imported += 1
        result.imported_paths.append(relative_path)
        logger.info("Imported %s (%s) -> %s", chosen.name, file_format, relative_path)

        await self.cleanup(source, result, on_progress)
        self.report(on_progress, ImportPhase.COMPLETE, 1, 1)
