# Hey future me - this is the ONE entry point for cold scans!
# The coordinator owns the per-root-folder state machine:
#   idle -> scanning -> completed | failed      (persisted on root_folders.scan_status)
# plus an in-memory ScanRegistry that rejects a second scan of the SAME root folder while
# one is running. It never queues or waits - the caller gets "already in progress" and
# retries later. Different root folders may scan concurrently; scan_all_root_folders()
# still walks them one after another to keep disk and database load predictable.
# The registry is lost on restart, which is fine: a restart means the scan is dead anyway
# (a root stuck in "scanning" is just scanned again).
"""Scan coordinator dispatching root folders to the per-media-type scanners."""

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediarr.domain.entities import MediaType, ScanProgressCallback, ScanResult, ScanStatus
from mediarr.domain.ports import ILibraryScanner
from mediarr.infrastructure.persistence.models import utc_now
from mediarr.infrastructure.persistence.repositories import RootFolderRepository

logger = logging.getLogger(__name__)

ScannerFactory = Callable[[AsyncSession], ILibraryScanner]

ALREADY_SCANNING = "Scan already in progress for this folder"


class ScanRegistry:
    """In-memory set of root folder IDs that are being scanned right now."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def try_acquire(self, root_folder_id: str) -> bool:
        """Mark a root folder as scanning; False when it already is."""
        if root_folder_id in self._active:
            return False
        self._active.add(root_folder_id)
        return True

    def release(self, root_folder_id: str) -> None:
        self._active.discard(root_folder_id)

    def is_scanning(self, root_folder_id: str) -> bool:
        return root_folder_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._active))


@dataclass(frozen=True)
class RootFolderScanStatus:
    """Persisted and live scan state of one root folder."""

    root_folder_id: str
    status: ScanStatus
    in_progress: bool
    last_scanned_at: datetime | None = None


class ScanCoordinator:
    """Dispatches scans to the scanner registered for a root folder's media type.

    Each scan gets its own session from session_factory, so two root folders can be
    scanned concurrently without sharing a transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scanners: Mapping[MediaType, ScannerFactory],
        registry: ScanRegistry | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.scanners = dict(scanners)
        self.registry = registry if registry is not None else ScanRegistry()

    async def scan_root_folder(
        self, root_folder_id: str, on_progress: ScanProgressCallback | None = None
    ) -> ScanResult:
        """Scan one root folder, rejecting (not queueing) a concurrent scan of it."""
        # Acquire before the first await so two callers can't both get past this point
        if not self.registry.try_acquire(root_folder_id):
            logger.info("Scan of root folder %s rejected: already in progress", root_folder_id)
            return ScanResult(root_folder_id=root_folder_id, errors=[ALREADY_SCANNING])

        try:
            return await self._run_scan(root_folder_id, on_progress)
        except Exception as e:
            logger.exception("Scan of root folder %s crashed", root_folder_id)
            await self._mark_failed(root_folder_id)
            return ScanResult(root_folder_id=root_folder_id, errors=[f"Scan failed: {e}"])
        finally:
            self.registry.release(root_folder_id)

    async def _run_scan(
        self, root_folder_id: str, on_progress: ScanProgressCallback | None
    ) -> ScanResult:
        async with self.session_factory() as session:
            repo = RootFolderRepository(session)
            root_folder = await repo.find(root_folder_id)
            if root_folder is None:
                return ScanResult(root_folder_id=root_folder_id, errors=["Root folder not found"])

            factory = None
            media_type = None
            if root_folder.media_type in {member.value for member in MediaType}:
                media_type = MediaType(root_folder.media_type)
                factory = self.scanners.get(media_type)
            if factory is None:
                return ScanResult(
                    root_folder_id=root_folder_id,
                    media_type=media_type,
                    errors=[f"Unsupported media type: {root_folder.media_type}"],
                )

            await repo.update(root_folder, scan_status=ScanStatus.SCANNING.value)
            await session.commit()
            logger.info("Scanning %s root folder %s", root_folder.media_type, root_folder.path)

            result = await factory(session).scan(root_folder_id, on_progress)

            status = ScanStatus.COMPLETED if not result.errors else ScanStatus.FAILED
            root_folder = await repo.get(root_folder_id)
            await repo.update(
                root_folder, scan_status=status.value, last_scanned_at=utc_now()
            )
            await session.commit()
            return result

    async def _mark_failed(self, root_folder_id: str) -> None:
        try:
            async with self.session_factory() as session:
                repo = RootFolderRepository(session)
                root_folder = await repo.find(root_folder_id)
                if root_folder is not None:
                    await repo.update(
                        root_folder,
                        scan_status=ScanStatus.FAILED.value,
                        last_scanned_at=utc_now(),
                    )
                    await session.commit()
        except Exception as e:
            logger.error("Could not mark root folder %s as failed: %s", root_folder_id, e)

    async def scan_all_root_folders(
        self, on_progress: ScanProgressCallback | None = None
    ) -> list[ScanResult]:
        """Scan every accessible root folder, one after another."""
        async with self.session_factory() as session:
            root_folder_ids = [
                root_folder.id
                for root_folder in await RootFolderRepository(session).list_accessible()
            ]

        results = []
        for root_folder_id in root_folder_ids:
            results.append(await self.scan_root_folder(root_folder_id, on_progress))

        failed = sum(1 for result in results if not result.success)
        logger.info("Scanned %d root folders (%d failed)", len(results), failed)
        return results

    async def get_scan_status(self, root_folder_id: str) -> RootFolderScanStatus | None:
        """Persisted status plus whether a scan is live in this process (None if unknown)."""
        async with self.session_factory() as session:
            root_folder = await RootFolderRepository(session).find(root_folder_id)
            if root_folder is None:
                return None
            return RootFolderScanStatus(
                root_folder_id=root_folder_id,
                status=ScanStatus(root_folder.scan_status),
                in_progress=self.registry.is_scanning(root_folder_id),
                last_scanned_at=root_folder.last_scanned_at,
            )

    def is_any_scan_in_progress(self) -> bool:
        return len(self.registry) > 0
