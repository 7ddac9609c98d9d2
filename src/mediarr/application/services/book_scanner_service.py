"""Book library scanner."""

import logging
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.book_import_service import BOOK_FORMAT_PRIORITY
from mediarr.application.services.filesystem import BOOK_SCAN_POLICY
from mediarr.application.services.scanner_base import (
    BaseLibraryScanner,
    ScanContext,
    ScanGroup,
    ScannedFile,
    match_by_title,
    size_unchanged,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import MediaType
from mediarr.domain.ports import (
    AuthorCandidate,
    BookCandidate,
    IBookMetadataProvider,
    IDirectoryLister,
)
from mediarr.domain.value_objects.naming import UNKNOWN_NAME, file_extension, sort_title
from mediarr.domain.value_objects.release_parsing import (
    ParsedBookInfo,
    normalize_title,
    parse_book_path,
)
from mediarr.infrastructure.persistence.models import BookModel
from mediarr.infrastructure.persistence.repositories import (
    AuthorRepository,
    BookFileRepository,
    BookRepository,
)

logger = logging.getLogger(__name__)


def author_sort_name(name: str) -> str:
    """"Stephen King" -> "King, Stephen" (single names and "Last, First" stay as they are)."""
    if "," in name:
        return name
    parts = name.split()
    if len(parts) < 2:
        return name
    return f"{parts[-1]}, {' '.join(parts[:-1])}"


def format_rank(file_name: str) -> int:
    extension = file_extension(file_name)
    if extension in BOOK_FORMAT_PRIORITY:
        return BOOK_FORMAT_PRIORITY.index(extension)
    return len(BOOK_FORMAT_PRIORITY)


class BookScannerService(BaseLibraryScanner[ParsedBookInfo]):
    """Reconciles an Author/Title book tree with authors, books and book files.

    Hey future me - files are grouped per AUTHOR (normalized), books are resolved per
    file inside the author. A book has exactly one file: when a scan finds a second copy
    (say the .pdf next to the .epub) the better format keeps the record and the other
    copy is recorded as unmatched. Unknown authors/books degrade to needs_review rows,
    files with no author at all go to the unmatched list.
    """

    media_type = MediaType.BOOKS
    scan_policy = BOOK_SCAN_POLICY

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        book_provider: IBookMetadataProvider | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        super().__init__(session, settings, lister)
        self.book_provider = book_provider
        self.author_repo = AuthorRepository(session)
        self.book_repo = BookRepository(session)
        self.book_file_repo = BookFileRepository(session)

    def parse(self, relative_path: str) -> ParsedBookInfo:
        return parse_book_path(relative_path)

    def group_key(self, scanned: ScannedFile[ParsedBookInfo]) -> tuple[Any, ...]:
        return (normalize_title(scanned.parsed.author_name),)

    # =========================================================================
    # AUTHOR
    # =========================================================================

    async def resolve(self, context: ScanContext, group: ScanGroup[ParsedBookInfo]) -> str | None:
        name = group.first.author_name
        if not name or name == UNKNOWN_NAME:
            for scanned in group.files:
                await self.record_unmatched(
                    context, scanned, {"reason": "no author", "title": scanned.parsed.title}
                )
            return None

        existing = match_by_title(
            await self.author_repo.list_for_root_folder(context.root_folder_id),
            name,
            None,
            title_of=lambda author: author.name,
        )
        if existing is not None:
            return existing.id

        candidate = await self._search_author(name)
        if candidate is not None:
            by_openlibrary = await self.author_repo.find_by(
                openlibrary_id=candidate.openlibrary_id, root_folder_id=context.root_folder_id
            )
            if by_openlibrary is not None:
                return by_openlibrary.id
            author = await self.author_repo.create(
                name=candidate.name,
                sort_name=author_sort_name(candidate.name),
                openlibrary_id=candidate.openlibrary_id,
                root_folder_id=context.root_folder_id,
            )
            logger.info(
                "Created author %s (OpenLibrary %s)", candidate.name, candidate.openlibrary_id
            )
        else:
            author = await self.author_repo.create(
                name=name,
                sort_name=author_sort_name(name),
                needs_review=True,
                root_folder_id=context.root_folder_id,
            )
            logger.info("No OpenLibrary match for author %s, needs review", name)

        context.result.entities_created += 1
        return author.id

    async def _search_author(self, name: str) -> AuthorCandidate | None:
        if self.book_provider is None:
            return None
        candidates = await self.lookup(
            f"OpenLibrary author '{name}'", self.book_provider.search_authors(name)
        )
        wanted = normalize_title(name)
        for candidate in candidates or []:
            if normalize_title(candidate.name) == wanted:
                return candidate
        return None

    # =========================================================================
    # BOOKS
    # =========================================================================

    async def record(
        self, context: ScanContext, entity_id: str, scanned: ScannedFile[ParsedBookInfo]
    ) -> None:
        entry = scanned.entry
        existing = await self.book_file_repo.find_in_root(
            context.root_folder_id, scanned.relative_path
        )
        if existing is not None:
            if size_unchanged(existing.size_bytes, entry.size):
                return
            await self.book_file_repo.update(existing, size_bytes=entry.size)
            context.result.entities_updated += 1
            return

        book = await self._book_for(context, entity_id, scanned.parsed)
        book_file = await self.book_file_repo.find_by(book_id=book.id)
        fields = {
            "relative_path": scanned.relative_path,
            "size_bytes": entry.size,
            "format": scanned.parsed.format,
            "quality": scanned.parsed.format,
        }
        if book_file is None:
            await self.book_file_repo.create(book_id=book.id, **fields)
        elif format_rank(entry.name) < format_rank(book_file.relative_path):
            logger.info("%s replaces %s as the book's file", entry.name, book_file.relative_path)
            await self.book_file_repo.update(book_file, **fields)
        else:
            await self.record_unmatched(
                context, scanned, {"reason": "duplicate", "book_id": book.id}
            )
            return

        if not book.has_file:
            await self.book_repo.update(book, has_file=True)
        context.result.entities_updated += 1

    async def _book_for(
        self, context: ScanContext, author_id: str, parsed: ParsedBookInfo
    ) -> BookModel:
        existing = match_by_title(
            await self.book_repo.list_by(author_id=author_id), parsed.title, None
        )
        if existing is not None:
            return existing

        author = await self.author_repo.get(author_id)
        candidate = await self._search_book(parsed.title, author.name)
        year = parsed.year or (candidate.year if candidate else None)
        book = await self.book_repo.create(
            author_id=author_id,
            title=candidate.title if candidate else parsed.title,
            sort_title=sort_title(candidate.title if candidate else parsed.title),
            openlibrary_id=candidate.openlibrary_id if candidate else None,
            isbn=candidate.isbn[0] if candidate and candidate.isbn else None,
            release_date=date(year, 1, 1) if year else None,
            series_name=parsed.series_name,
            series_position=parsed.series_position,
            needs_review=candidate is None,
        )
        context.result.entities_created += 1
        return book

    async def _search_book(self, title: str, author_name: str) -> BookCandidate | None:
        if self.book_provider is None:
            return None
        candidates = await self.lookup(
            f"OpenLibrary book '{title}'", self.book_provider.search_books(title, author_name)
        )
        wanted = normalize_title(title)
        for candidate in candidates or []:
            if normalize_title(candidate.title) == wanted:
                return candidate
        return None
