# Hey future me - every cold scanner runs the same five phases:
#   DISCOVERING  walk the root folder (lazy walk, scan skip policy)
#   PARSING      parse each file's relative path and GROUP by normalized identity
#   METADATA     per group: existing entity -> metadata provider -> needs_review placeholder
#   IMPORTING    per file: unchanged size = no-op, changed size = update, new = record
#   COMPLETE     aggregates recounted, counters logged
# Grouping BEFORE touching the database is what keeps "The Office (2005)" and
# "the.office.2005" from becoming two shows. Subclasses implement parse, group_key, resolve and
# record; this base owns the root folder checks, the progress reporting and the error policy.
"""Shared plumbing for the per-media-type library scanners."""

import logging
import time
from abc import abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    SkipPolicy,
    WalkStats,
    access_with_timeout,
    walk_files,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import (
    MediaType,
    ScanPhase,
    ScanProgress,
    ScanProgressCallback,
    ScanResult,
)
from mediarr.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    ValidationException,
)
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, ILibraryScanner
from mediarr.domain.value_objects.release_parsing import normalize_title
from mediarr.infrastructure.observability.logging import set_operation_id
from mediarr.infrastructure.persistence.repositories import (
    RootFolderRepository,
    UnmatchedFileRepository,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ParsedT = TypeVar("ParsedT")


@dataclass
class ScannedFile(Generic[ParsedT]):
    """One discovered file plus what its path told us."""

    entry: DirectoryEntry
    relative_path: str
    parsed: ParsedT


@dataclass
class ScanGroup(Generic[ParsedT]):
    """Files that belong to the same library entity (same normalized identity)."""

    key: tuple[Any, ...]
    files: list[ScannedFile[ParsedT]] = field(default_factory=list)
    entity_id: str | None = None

    @property
    def first(self) -> ParsedT:
        return self.files[0].parsed


@dataclass
class ScanContext:
    """Per-run values the scanners need after the root folder row may have expired."""

    root_folder_id: str
    root_path: Path
    result: ScanResult
    on_progress: ScanProgressCallback | None = None


class BaseLibraryScanner(ILibraryScanner, Generic[ParsedT]):
    """Template for a cold scan of one root folder."""

    media_type: MediaType
    scan_policy: SkipPolicy

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        lister: IDirectoryLister | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.lister = lister
        self.root_folder_repo = RootFolderRepository(session)
        self.unmatched_repo = UnmatchedFileRepository(session)

    async def scan(
        self, root_folder_id: str, on_progress: ScanProgressCallback | None = None
    ) -> ScanResult:
        """Walk a root folder and reconcile what's on disk with the database.

        Never raises for expected failures: a missing root folder, a dead mount or a
        media type mismatch end up in result.errors with success=False.
        """
        set_operation_id(prefix="scan")
        started = time.monotonic()
        result = ScanResult(root_folder_id=root_folder_id, media_type=self.media_type)

        try:
            context = await self._prepare(root_folder_id, result, on_progress)
            files = await self._discover(context)
            await self.begin(context)
            groups = self._group(context, files)
            await self._resolve_groups(context, groups)
            await self._record_groups(context, groups)
            await self.finish(context)
        except DomainException as e:
            result.errors.append(e.message)
            logger.warning("Scan of root folder %s aborted: %s", root_folder_id, e.message)
        except Exception as e:
            await self.session.rollback()
            result.errors.append(f"Scan failed: {e}")
            logger.exception("Scan of root folder %s failed", root_folder_id)

        result.success = not result.errors
        result.duration_ms = int((time.monotonic() - started) * 1000)
        self.report(
            on_progress, ScanPhase.COMPLETE, result.files_found, result.files_found
        )
        logger.info(
            "Scanned %s root %s: %d files, %d created, %d updated, %d unmatched, "
            "%d errors in %dms",
            self.media_type.value,
            root_folder_id,
            result.files_found,
            result.entities_created,
            result.entities_updated,
            result.unmatched_files,
            len(result.errors),
            result.duration_ms,
        )
        return result

    # =========================================================================
    # PHASES
    # =========================================================================

    async def _prepare(
        self,
        root_folder_id: str,
        result: ScanResult,
        on_progress: ScanProgressCallback | None,
    ) -> ScanContext:
        root_folder = await self.root_folder_repo.find(root_folder_id)
        if root_folder is None:
            raise EntityNotFoundException("RootFolder", root_folder_id, "Root folder not found")
        if root_folder.media_type != self.media_type.value:
            raise ValidationException(
                f"Root folder is not configured for {self.media_type.value}"
            )
        root_path = Path(root_folder.path)
        await access_with_timeout(root_path, self.settings.imports.path_timeout_seconds)
        return ScanContext(root_folder.id, root_path, result, on_progress)

    async def _discover(self, context: ScanContext) -> list[ScannedFile[ParsedT]]:
        self.report(context.on_progress, ScanPhase.DISCOVERING)
        stats = WalkStats()
        files: list[ScannedFile[ParsedT]] = []
        async for entry in walk_files(
            context.root_path,
            self.scan_policy,
            self.lister,
            self.settings.imports.listing_timeout_seconds,
            stats,
        ):
            relative_path = entry.path.relative_to(context.root_path).as_posix()
            files.append(ScannedFile(entry, relative_path, self.parse(relative_path)))
            context.result.files_found += 1
            if context.result.files_found % 100 == 0:
                self.report(
                    context.on_progress,
                    ScanPhase.DISCOVERING,
                    current=context.result.files_found,
                    current_item=entry.name,
                )

        if stats.unreadable:
            logger.warning(
                "%d directories under %s could not be read",
                len(stats.unreadable),
                context.root_path,
            )
        logger.debug(
            "Discovered %d files in %d directories", len(files), stats.directories
        )
        return files

    def _group(
        self, context: ScanContext, files: list[ScannedFile[ParsedT]]
    ) -> list[ScanGroup[ParsedT]]:
        total = len(files)
        self.report(context.on_progress, ScanPhase.PARSING, total, 0)
        groups: dict[tuple[Any, ...], ScanGroup[ParsedT]] = {}
        for scanned in files:
            key = self.group_key(scanned)
            groups.setdefault(key, ScanGroup(key)).files.append(scanned)
        self.report(context.on_progress, ScanPhase.PARSING, total, total)
        return list(groups.values())

    async def _resolve_groups(
        self, context: ScanContext, groups: list[ScanGroup[ParsedT]]
    ) -> None:
        total = len(groups)
        for index, group in enumerate(groups, start=1):
            self.report(context.on_progress, ScanPhase.METADATA, total, index, str(group.key))
            try:
                group.entity_id = await self.resolve(context, group)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                group.entity_id = None
                context.result.errors.append(f"{group.files[0].relative_path}: {_message(e)}")
                logger.warning("Could not resolve %s: %s", group.key, e)

    async def _record_groups(
        self, context: ScanContext, groups: list[ScanGroup[ParsedT]]
    ) -> None:
        total = sum(len(group.files) for group in groups if group.entity_id)
        current = 0
        for group in groups:
            if group.entity_id is None:
                continue
            for scanned in group.files:
                current += 1
                self.report(
                    context.on_progress, ScanPhase.IMPORTING, total, current, scanned.entry.name
                )
                try:
                    await self.record(context, group.entity_id, scanned)
                    await self.session.commit()
                except Exception as e:
                    await self.session.rollback()
                    context.result.errors.append(f"{scanned.relative_path}: {_message(e)}")
                    logger.warning("Failed to record %s: %s", scanned.relative_path, e)

    # =========================================================================
    # SUBCLASS HOOKS
    # =========================================================================

    @abstractmethod
    def parse(self, relative_path: str) -> ParsedT:
        """Media-identifying signals of one file path."""

    @abstractmethod
    def group_key(self, scanned: ScannedFile[ParsedT]) -> tuple[Any, ...]:
        """Normalized identity; files with equal keys share one entity."""

    @abstractmethod
    async def resolve(self, context: ScanContext, group: ScanGroup[ParsedT]) -> str | None:
        """Find or create the group's entity, None to leave the group unmatched."""

    @abstractmethod
    async def record(
        self, context: ScanContext, entity_id: str, scanned: ScannedFile[ParsedT]
    ) -> None:
        """Reconcile one file with its entity."""

    async def begin(self, context: ScanContext) -> None:
        """Reset per-run caches before grouping starts."""

    async def finish(self, context: ScanContext) -> None:
        """Recompute cached aggregates after all files are recorded."""

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def record_unmatched(
        self,
        context: ScanContext,
        scanned: ScannedFile[Any],
        parsed_info: dict[str, Any] | None = None,
    ) -> None:
        """Keep a file we couldn't attach to anything for manual review."""
        await self.unmatched_repo.record(
            root_folder_id=context.root_folder_id,
            relative_path=scanned.relative_path,
            file_name=scanned.entry.name,
            media_type=self.media_type.value,
            file_size_bytes=scanned.entry.size,
            parsed_info=parsed_info,
        )
        context.result.unmatched_files += 1

    async def lookup(self, description: str, call: Awaitable[T]) -> T | None:
        """Await a metadata provider call, treating any failure as "no data"."""
        try:
            return await call
        except Exception as e:
            logger.warning("%s lookup failed: %s", description, e)
            return None

    @staticmethod
    def report(
        on_progress: ScanProgressCallback | None,
        phase: ScanPhase,
        total: int = 0,
        current: int = 0,
        current_item: str | None = None,
    ) -> None:
        if on_progress is None:
            return
        try:
            on_progress(ScanProgress(phase, total, current, current_item))
        except Exception as e:
            logger.debug("Scan progress callback failed: %s", e)


def size_unchanged(existing_size: int | None, size: int) -> bool:
    return existing_size is not None and existing_size == size


def _message(error: Exception) -> str:
    return error.message if isinstance(error, DomainException) else str(error)


# =============================================================================
# METADATA CANDIDATES
# =============================================================================

TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/w500"

CandidateT = TypeVar("CandidateT")


def poster_url(poster_path: str | None) -> str | None:
    return f"{TMDB_IMAGE_BASE_URL}{poster_path}" if poster_path else None


def pick_candidate(
    with_year: list[CandidateT] | None,
    without_year: list[CandidateT] | None,
    year: int | None,
) -> CandidateT | None:
    """First hit of the year-narrowed search, else the same-year hit of the open search.

    Falls back to the open search's first hit when nothing there has the parsed year.
    """
    if with_year:
        return with_year[0]
    if not without_year:
        return None
    if year is not None:
        for candidate in without_year:
            if getattr(candidate, "year", None) == year:
                return candidate
    return without_year[0]


def match_by_title(
    entities: Iterable[T],
    title: str,
    year: int | None,
    title_of: Callable[[T], str] | None = None,
) -> T | None:
    """Exact (case-insensitive) then normalized title match, year-aware.

    A missing year on either side matches any year.
    """

    def year_ok(entity: T) -> bool:
        entity_year = getattr(entity, "year", None)
        return year is None or entity_year is None or entity_year == year

    def name(entity: T) -> str:
        return getattr(entity, "title") if title_of is None else title_of(entity)

    candidates = [entity for entity in entities if year_ok(entity)]
    for entity in candidates:
        if name(entity).lower() == title.lower():
            return entity
    wanted = normalize_title(title)
    for entity in candidates:
        if normalize_title(name(entity)) == wanted:
            return entity
    return None
