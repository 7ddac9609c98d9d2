"""Shared plumbing of the per-media-type download importers."""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    REMOTE_PATH_HINT,
    SkipPolicy,
    access_with_timeout,
    apply_remote_path_mapping,
    cleanup_source,
    collect_files,
    copy_file,
    move_file,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import (
    ImportPhase,
    ImportProgress,
    ImportProgressCallback,
    ImportResult,
    MediaType,
)
from mediarr.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    NoFilesFoundException,
    ValidationException,
)
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, IEventSink
from mediarr.domain.value_objects.naming import NamingService
from mediarr.infrastructure.notifications.event_emitter import (
    IMPORT_COMPLETED,
    IMPORT_FAILED,
    NullEventSink,
)
from mediarr.infrastructure.observability.logging import set_operation_id
from mediarr.infrastructure.persistence.models import DownloadModel, RootFolderModel
from mediarr.infrastructure.persistence.repositories import (
    DownloadClientRepository,
    RootFolderRepository,
)

logger = logging.getLogger(__name__)


class BaseImportService(ABC):
    """Template for "import a completed download".

    Hey future me - the common contract lives HERE, the subclasses only say which entity a
    download points to and what to do with each file:

        1. output path present -> remote path mapping -> bounded accessibility probe
        2. subclass resolves the target entity (missing = abort, no guessing)
        3. discover files for the media type (zero = abort)
        4. subclass imports files; per-file failures land in result.errors
        5. clean the source ONLY if something was imported
        6. emit import.completed / import.failed

    Expected failures (DomainException) end up in result.errors with their message
    verbatim. The download's status is NOT touched - the caller decides what a partial
    result means for it.
    """

    media_type: MediaType
    skip_policy: SkipPolicy
    junk_extensions: frozenset[str]
    no_files_message: str

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        naming: NamingService | None = None,
        events: IEventSink | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.naming = naming or NamingService(settings.naming.to_patterns())
        self.events = events or NullEventSink()
        self.lister = lister
        self.root_folder_repo = RootFolderRepository(session)
        self.download_client_repo = DownloadClientRepository(session)

    @property
    def path_timeout(self) -> float:
        return self.settings.imports.path_timeout_seconds

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def import_download(
        self, download: DownloadModel, on_progress: ImportProgressCallback | None = None
    ) -> ImportResult:
        """Import all files of a completed download into the library."""
        set_operation_id(prefix="import")
        # Plain copy: a rollback expires ORM attributes, and reading an expired one is IO
        download_id = download.id
        result = ImportResult(download_id=download_id)
        logger.info(
            "Importing %s download %s (%s)", self.media_type.value, download_id, download.title
        )

        try:
            source = await self.resolve_source_path(download)
            await self._import_download(download, source, result, on_progress)
        except DomainException as e:
            logger.warning("Import of download %s aborted: %s", download_id, e.message)
            result.errors.append(e.message)
        except Exception as e:
            logger.exception("Import of download %s failed unexpectedly", download_id)
            await self.session.rollback()
            result.errors.append(f"Import failed: {e}")

        result.success = result.files_imported > 0
        await self.emit_result(result)
        logger.info(
            "Import of download %s finished: %d imported, %d skipped, %d errors",
            download_id,
            result.files_imported,
            result.files_skipped,
            len(result.errors),
        )
        return result

    @abstractmethod
    async def _import_download(
        self,
        download: DownloadModel,
        source: Path,
        result: ImportResult,
        on_progress: ImportProgressCallback | None,
    ) -> None:
        """Resolve the target entity and import the files found under source."""

    # =========================================================================
    # SHARED STEPS
    # =========================================================================

    async def resolve_source_path(self, download: DownloadModel) -> Path:
        """Download output path, remote-mapped and probed.

        Raises:
            ValidationException: Download has no output path
            PathTimeoutException / PathInaccessibleException: Probe failed
        """
        if not download.output_path:
            raise ValidationException("Download has no output path")

        mappings: list[tuple[str | None, str | None]] = []
        if download.download_client_id:
            client = await self.download_client_repo.find(download.download_client_id)
            if client:
                mappings.append((client.remote_path, client.local_path))
        # Longest remote prefix first so nested mappings win
        configured = sorted(
            self.settings.imports.remote_path_mappings,
            key=lambda mapping: len(mapping.remote_path),
            reverse=True,
        )
        mappings.extend((mapping.remote_path, mapping.local_path) for mapping in configured)

        local_path = apply_remote_path_mapping(download.output_path, mappings)
        if local_path != download.output_path:
            logger.debug("Mapped download path %s -> %s", download.output_path, local_path)

        path = Path(local_path)
        await access_with_timeout(path, self.path_timeout, REMOTE_PATH_HINT)
        return path

    async def get_root_folder(self, root_folder_id: str | None) -> RootFolderModel:
        root_folder = await self.root_folder_repo.find(root_folder_id) if root_folder_id else None
        if root_folder is None:
            raise EntityNotFoundException("RootFolder", root_folder_id, "Root folder not found")
        return root_folder

    async def discover(self, source: Path, message: str | None = None) -> list[DirectoryEntry]:
        files = await collect_files(
            source,
            self.skip_policy,
            self.lister,
            self.settings.imports.listing_timeout_seconds,
        )
        if not files:
            raise NoFilesFoundException(message or self.no_files_message)
        logger.debug("Found %d %s files in %s", len(files), self.media_type.value, source)
        return files

    async def move_into_library(
        self, source: Path, root_path: str, relative_path: str, keep_source: bool = False
    ) -> Path:
        """Move (or copy) source to root_path/relative_path; returns the destination."""
        destination = Path(root_path) / relative_path
        if source != destination:
            await asyncio.to_thread(copy_file if keep_source else move_file, source, destination)
        return destination

    async def cleanup(
        self, source: Path, result: ImportResult, on_progress: ImportProgressCallback | None
    ) -> None:
        """Delete junk and empty folders from the source, only after a successful import."""
        if result.files_imported == 0 or not self.settings.imports.delete_source_junk:
            return
        self.report(on_progress, ImportPhase.CLEANING, result.files_imported, result.files_imported)
        try:
            await asyncio.to_thread(cleanup_source, source, self.junk_extensions)
        except OSError as e:
            # The import itself succeeded, a leftover folder is cosmetic
            logger.warning("Source cleanup of %s failed: %s", source, e)

    def report(
        self,
        on_progress: ImportProgressCallback | None,
        phase: ImportPhase,
        total: int = 0,
        current: int = 0,
        current_file: str | None = None,
    ) -> None:
        """Hand a progress snapshot to the callback. Advisory only - callback errors are ignored."""
        if on_progress is None:
            return
        try:
            on_progress(
                ImportProgress(
                    phase=phase, total=total, current=current, current_file=current_file
                )
            )
        except Exception as e:
            logger.debug("Progress callback failed: %s", e)

    async def emit_result(self, result: ImportResult, **extra: Any) -> None:
        payload: dict[str, Any] = {
            "media_type": self.media_type.value,
            "download_id": result.download_id,
            "entity_id": result.entity_id,
            "files_imported": result.files_imported,
            "files_skipped": result.files_skipped,
            "imported_paths": list(result.imported_paths),
            "errors": list(result.errors),
            **extra,
        }
        try:
            await self.events.emit(IMPORT_COMPLETED if result.success else IMPORT_FAILED, payload)
        except Exception as e:
            logger.warning("Event sink failed: %s", e)


def file_error(file_path: Path, error: Exception) -> str:
    """"01 - Song.flac: Could not read media info" - per-file error attribution."""
    if isinstance(error, DomainException):
        message = error.message
    else:
        message = str(error) or type(error).__name__
    return f"{file_path.name}: {message}"
