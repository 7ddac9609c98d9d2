"""Application services - download imports, file organization and library scans."""

from mediarr.application.services.book_import_service import BookImportService
from mediarr.application.services.book_scanner_service import BookScannerService
from mediarr.application.services.episode_import_service import EpisodeImportService
from mediarr.application.services.file_organizer_service import FileOrganizerService
from mediarr.application.services.library_reconciliation_service import (
    LibraryReconciliationService,
    ReconciliationResult,
)

# Hey future me - ScanCoordinator is the only thing callers should use to start a scan!
# Calling a *ScannerService directly skips the re-entrancy guard and the persisted status.
from mediarr.application.services.library_scanner_service import (
    RootFolderScanStatus,
    ScanCoordinator,
    ScanRegistry,
)
from mediarr.application.services.movie_import_service import MovieImportService
from mediarr.application.services.movie_scanner_service import MovieScannerService
from mediarr.application.services.music_import_service import MusicImportService
from mediarr.application.services.music_scanner_service import MusicScannerService
from mediarr.application.services.tv_show_scanner_service import TvShowScannerService

__all__ = [
    "BookImportService",
    "BookScannerService",
    "EpisodeImportService",
    "FileOrganizerService",
    "LibraryReconciliationService",
    "MovieImportService",
    "MovieScannerService",
    "MusicImportService",
    "MusicScannerService",
    "ReconciliationResult",
    "RootFolderScanStatus",
    "ScanCoordinator",
    "ScanRegistry",
    "TvShowScannerService",
]
