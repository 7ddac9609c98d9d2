"""Composition root wiring settings, database, providers and services together."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services import (
    BookImportService,
    BookScannerService,
    EpisodeImportService,
    FileOrganizerService,
    LibraryReconciliationService,
    MovieImportService,
    MovieScannerService,
    MusicImportService,
    MusicScannerService,
    ScanCoordinator,
    ScanRegistry,
    TvShowScannerService,
)
from mediarr.application.services.import_base import BaseImportService
from mediarr.config import Settings, get_settings
from mediarr.domain.entities import MediaType
from mediarr.domain.ports import IEventSink
from mediarr.domain.value_objects.naming import NamingService
from mediarr.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from mediarr.infrastructure.integrations.openlibrary_client import OpenLibraryClient
from mediarr.infrastructure.integrations.tmdb_client import TmdbClient
from mediarr.infrastructure.media.mutagen_probe import MutagenMediaProbe
from mediarr.infrastructure.notifications.event_emitter import EventEmitter
from mediarr.infrastructure.observability import configure_logging
from mediarr.infrastructure.persistence.database import Database

logger = logging.getLogger(__name__)


class LibraryServices:
    """Long-lived collaborators plus factories for the per-session services.

    Hey future me - clients (httpx pools), the event emitter and the scan registry live
    as long as the process; import/scan services are cheap and bound to ONE session, so
    they're built per operation. The host (worker, CLI, web layer) owns one instance and
    calls close() on shutdown. TMDB is optional: without an API key the video scanners
    simply create needs_review entries.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        database: Database | None = None,
        events: IEventSink | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.database = database or Database(self.settings)
        self.events = events or EventEmitter()
        self.naming = NamingService(self.settings.naming.to_patterns())
        self.probe = MutagenMediaProbe()
        self.musicbrainz = MusicBrainzClient(self.settings.musicbrainz)
        self.openlibrary = OpenLibraryClient(self.settings.openlibrary)
        self.tmdb = TmdbClient(self.settings.tmdb) if self.settings.tmdb.api_key else None
        if self.tmdb is None:
            logger.info("TMDB API key not configured, movie/TV lookups disabled")
        self.scan_registry = ScanRegistry()

    async def start(self, create_tables: bool = True) -> None:
        """Startup hook for the host: logging first, then the schema."""
        configure_logging(
            log_level=self.settings.log_level,
            json_format=self.settings.log_json,
            app_name=self.settings.app_name,
        )
        logger.info("Starting %s", self.settings.app_name)
        if create_tables:
            await self.database.create_tables()
            logger.info("Database initialized: %s", self.settings.database.url)

    # =========================================================================
    # IMPORTS
    # =========================================================================

    def importer_for(self, session: AsyncSession, media_type: MediaType) -> BaseImportService:
        """Download importer for a media type, bound to one session."""
        if media_type == MediaType.MUSIC:
            return MusicImportService(
                session,
                self.settings,
                self.probe,
                music_provider=self.musicbrainz,
                naming=self.naming,
                events=self.events,
            )
        if media_type == MediaType.MOVIES:
            return MovieImportService(session, self.settings, self.naming, self.events)
        if media_type == MediaType.TV:
            return EpisodeImportService(session, self.settings, self.naming, self.events)
        return BookImportService(session, self.settings, self.naming, self.events)

    def file_organizer(self, session: AsyncSession) -> FileOrganizerService:
        return FileOrganizerService(
            session, self.settings, self.probe, naming=self.naming, events=self.events
        )

    def reconciliation(self, session: AsyncSession) -> LibraryReconciliationService:
        return LibraryReconciliationService(session, self.settings)

    # =========================================================================
    # SCANS
    # =========================================================================

    def scan_coordinator(self) -> ScanCoordinator:
        """Coordinator sharing this instance's registry (one guard per process)."""
        return ScanCoordinator(
            self.database.session_factory,
            {
                MediaType.MUSIC: lambda session: MusicScannerService(
                    session, self.settings, self.probe, music_provider=self.musicbrainz
                ),
                MediaType.MOVIES: lambda session: MovieScannerService(
                    session, self.settings, movie_provider=self.tmdb
                ),
                MediaType.TV: lambda session: TvShowScannerService(
                    session, self.settings, tv_provider=self.tmdb
                ),
                MediaType.BOOKS: lambda session: BookScannerService(
                    session, self.settings, book_provider=self.openlibrary
                ),
            },
            self.scan_registry,
        )

    async def close(self) -> None:
        """Close HTTP clients and the database engine."""
        await self.musicbrainz.close()
        await self.openlibrary.close()
        if self.tmdb is not None:
            await self.tmdb.close()
        await self.database.close()
