# Hey future me - this imports completed MUSIC downloads into the library!
# Flow per download: find album/artist/root folder from the download record -> find audio
# files -> (optionally) backfill the album's tracklist from MusicBrainz -> for each file:
# probe tags, match to a track slot (or create one), move to
# "{root}/Artist/[Year] Album/NN - Title.ext", upsert the TrackFile -> clean the source.
# Each file is committed on its own, so one broken file can't take the others down.
"""Music download import service."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    MUSIC_IMPORT_POLICY,
    MUSIC_JUNK_EXTENSIONS,
    access_with_timeout,
    stat_with_timeout,
)
from mediarr.application.services.import_base import BaseImportService, file_error
from mediarr.application.services.track_matching import (
    TrackMatcher,
    TrackSignals,
    default_matchers,
    match_track,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import (
    AudioMediaInfo,
    ImportPhase,
    ImportProgressCallback,
    ImportResult,
    MediaType,
    media_info_to_dict,
)
from mediarr.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    NoMatchFoundException,
    ValidationException,
)
from mediarr.domain.ports import (
    DirectoryEntry,
    IDirectoryLister,
    IEventSink,
    IMediaProbe,
    IMusicMetadataProvider,
)
from mediarr.domain.value_objects.naming import NamingService
from mediarr.domain.value_objects.quality import classify_audio
from mediarr.domain.value_objects.release_parsing import parse_artist_album_folder
from mediarr.infrastructure.observability.logging import set_operation_id
from mediarr.infrastructure.persistence.models import (
    AlbumModel,
    ArtistModel,
    DownloadModel,
    RootFolderModel,
    TrackModel,
)
from mediarr.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackFileRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)

# How many files we probe when guessing the album of an arbitrary path
TAG_SAMPLE_SIZE = 5


@dataclass(frozen=True)
class AlbumTarget:
    """Plain snapshot of where a download goes.

    Per-file failures roll the session back, which expires every loaded model. Reading an
    expired attribute on an AsyncSession is implicit IO (MissingGreenlet), so the loop
    works from this snapshot and reloads models by id.
    """

    album_id: str
    album_title: str
    release_date: date | None
    release_group_id: str | None
    artist_id: str
    artist_name: str
    root_folder_id: str
    root_path: str

    @classmethod
    def build(
        cls, album: AlbumModel, artist: ArtistModel, root_folder: RootFolderModel
    ) -> "AlbumTarget":
        return cls(
            album_id=album.id,
            album_title=album.title,
            release_date=album.release_date,
            release_group_id=album.musicbrainz_release_group_id,
            artist_id=artist.id,
            artist_name=artist.name,
            root_folder_id=root_folder.id,
            root_path=root_folder.path,
        )


class MusicImportService(BaseImportService):
    """Imports audio files into album track slots."""

    media_type = MediaType.MUSIC
    skip_policy = MUSIC_IMPORT_POLICY
    junk_extensions = MUSIC_JUNK_EXTENSIONS
    no_files_message = "No audio files found in download"

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: IMediaProbe,
        music_provider: IMusicMetadataProvider | None = None,
        naming: NamingService | None = None,
        events: IEventSink | None = None,
        lister: IDirectoryLister | None = None,
        matchers: list[TrackMatcher] | None = None,
    ) -> None:
        """Initialize the importer.

        Args:
            session: Database session (committed once per imported file)
            settings: Application settings
            probe: Reads tags/technical info from audio files
            music_provider: MusicBrainz-like provider for tracklist backfill (optional)
            naming: Path renderer (defaults to the configured naming patterns)
            events: Outcome event sink
            lister: Directory lister used for discovery (tests pass fakes)
            matchers: Track matching strategies in priority order
        """
        super().__init__(session, settings, naming, events, lister)
        self.probe = probe
        self.music_provider = music_provider
        self.matchers = (
            matchers
            if matchers is not None
            else default_matchers(settings.imports.fuzzy_title_threshold)
        )
        self.artist_repo = ArtistRepository(session)
        self.album_repo = AlbumRepository(session)
        self.track_repo = TrackRepository(session)
        self.track_file_repo = TrackFileRepository(session)

    # =========================================================================
    # DOWNLOAD IMPORT
    # =========================================================================

    async def _import_download(
        self,
        download: DownloadModel,
        source: Path,
        result: ImportResult,
        on_progress: ImportProgressCallback | None,
    ) -> None:
        album = await self.album_repo.find(download.album_id) if download.album_id else None
        if album is None:
            raise EntityNotFoundException(
                "Album", download.album_id, "Album not found for download"
            )
        artist = await self.artist_repo.find(album.artist_id)
        if artist is None:
            raise EntityNotFoundException("Artist", album.artist_id, "Artist not found")
        root_folder = await self.get_root_folder(artist.root_folder_id)

        target = AlbumTarget.build(album, artist, root_folder)
        result.entity_id = target.album_id

        self.report(on_progress, ImportPhase.SCANNING)
        files = await self.discover(source)
        await self.import_files(files, target, result, on_progress)
        await self.cleanup(source, result, on_progress)
        self.report(on_progress, ImportPhase.COMPLETE, len(files), len(files))

    # =========================================================================
    # IMPORT FROM ARBITRARY PATH
    # =========================================================================

    async def import_from_path(
        self, path: Path | str, on_progress: ImportProgressCallback | None = None
    ) -> ImportResult:
        """Import a folder (or single file) that has no download record.

        The album is inferred: embedded artist/album tags first, then an
        "Artist - Album (Year)" folder name. Anything ambiguous is a no-match - importing
        into the wrong album is worse than not importing at all.
        """
        set_operation_id(prefix="import")
        source = Path(path)
        result = ImportResult()
        try:
            await access_with_timeout(source, self.path_timeout)
            self.report(on_progress, ImportPhase.SCANNING)
            files = await self.discover(source, "No audio files found")

            album = await self._infer_album(source, files)
            artist = await self.artist_repo.find(album.artist_id)
            if artist is None:
                raise EntityNotFoundException("Artist", album.artist_id, "Artist not found")
            root_folder = await self.get_root_folder(artist.root_folder_id)
            target = AlbumTarget.build(album, artist, root_folder)
            result.entity_id = target.album_id

            await self.import_files(files, target, result, on_progress)
            await self.cleanup(source, result, on_progress)
            self.report(on_progress, ImportPhase.COMPLETE, len(files), len(files))
        except DomainException as e:
            logger.warning("Import of %s aborted: %s", source, e.message)
            result.errors.append(e.message)
        except Exception as e:
            logger.exception("Import of %s failed unexpectedly", source)
            await self.session.rollback()
            result.errors.append(f"Import failed: {e}")

        result.success = result.files_imported > 0
        await self.emit_result(result, source_path=str(source))
        return result

    async def _infer_album(self, source: Path, files: list[DirectoryEntry]) -> AlbumModel:
        matches: dict[str, AlbumModel] = {}
        for entry in files[:TAG_SAMPLE_SIZE]:
            info = await self.probe.read_tags(entry.path)
            if info is None or not info.album:
                continue
            album = await self._find_album(info.album_artist or info.artist, info.album)
            if album is not None:
                matches[album.id] = album

        if len(matches) == 1:
            album = next(iter(matches.values()))
            logger.info("Matched %s to album %s via tags", source.name, album.title)
            return album
        if len(matches) > 1:
            logger.warning(
                "Tags of %s point to %d different albums, trying folder name",
                source.name,
                len(matches),
            )

        folder_name = source.name if files and files[0].path != source else source.parent.name
        parsed = parse_artist_album_folder(folder_name)
        if parsed is not None:
            album = await self._find_album(parsed.artist, parsed.album)
            if album is not None:
                logger.info("Matched %s to album %s via folder name", source.name, album.title)
                return album

        raise NoMatchFoundException(
            f"Could not match to any album in library. Folder: {folder_name}"
        )

    async def _find_album(self, artist_name: str | None, album_title: str) -> AlbumModel | None:
        if not artist_name:
            return None
        artist = await self.artist_repo.find_by_name(artist_name.strip())
        if artist is None:
            return None
        return await self.album_repo.find_by_title(artist.id, album_title.strip())

    # =========================================================================
    # PER-FILE IMPORT
    # =========================================================================

    async def import_files(
        self,
        files: list[DirectoryEntry],
        target: AlbumTarget,
        result: ImportResult,
        on_progress: ImportProgressCallback | None = None,
    ) -> None:
        """Import each file on its own; failures are collected, not raised."""
        await self.ensure_album_has_tracks(target.album_id, target.release_group_id)

        total = len(files)
        for index, entry in enumerate(files, start=1):
            self.report(on_progress, ImportPhase.IMPORTING, total, index, entry.name)
            try:
                relative_path = await self.import_audio_file(entry.path, target)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                result.files_skipped += 1
                result.errors.append(file_error(entry.path, e))
                logger.warning("Failed to import %s: %s", entry.name, e)
                continue

            if relative_path is None:
                result.files_skipped += 1
                continue
            result.files_imported += 1
            result.imported_paths.append(relative_path)

        if result.files_imported:
            album = await self.album_repo.find(target.album_id)
            if album is not None and not album.has_file:
                album.has_file = True
                await self.session.commit()

    async def import_audio_file(
        self,
        file_path: Path,
        target: AlbumTarget,
        keep_source: bool = False,
        overwrite_existing: bool = True,
    ) -> str | None:
        """Move one audio file into its track slot.

        Args:
            file_path: Audio file to import
            target: Album it belongs to
            keep_source: Copy instead of move
            overwrite_existing: Replace a different file already at the destination

        Returns:
            The file's path relative to the root folder, or None when it already sits there
            and is recorded (nothing to do)

        Raises:
            ValidationException: Tags can't be read, or the destination is taken and
                overwrite_existing is False
            OSError: The move failed
        """
        info = await self.probe.read_tags(file_path)
        if info is None:
            raise ValidationException("Could not read media info")

        track = await self._match_or_create_track(file_path, info, target.album_id)
        relative_path = self.naming.track_path(
            target.artist_name,
            target.album_title,
            target.release_date,
            track.title,
            track.track_number,
            track.disc_number,
            file_path.suffix,
        )
        destination = Path(target.root_path) / relative_path
        existing = await self.track_file_repo.find_by(track_id=track.id)

        if destination == file_path and existing and existing.relative_path == relative_path:
            logger.debug("%s already imported", relative_path)
            return None

        if not overwrite_existing and destination != file_path:
            if await asyncio.to_thread(destination.exists):
                raise ValidationException("Destination file already exists")

        await self.move_into_library(file_path, target.root_path, relative_path, keep_source)
        size_bytes = (await stat_with_timeout(destination, self.path_timeout)).st_size

        fields = {
            "album_id": target.album_id,
            "relative_path": relative_path,
            "size_bytes": size_bytes,
            "quality": classify_audio(info).name,
            "media_info": media_info_to_dict(info),
        }
        if existing:
            track_file = await self.track_file_repo.update(existing, **fields)
        else:
            track_file = await self.track_file_repo.create(track_id=track.id, **fields)

        await self.track_repo.update(track, has_file=True, track_file_id=track_file.id)
        logger.info("Imported %s -> %s", file_path.name, relative_path)
        return relative_path

    async def _match_or_create_track(
        self, file_path: Path, info: AudioMediaInfo, album_id: str
    ) -> TrackModel:
        tracks = await self.track_repo.list_for_album(album_id)
        signals = TrackSignals.from_file(file_path.name, info)

        matched = match_track(signals, tracks, self.matchers)
        if matched is not None:
            track, strategy = matched
            logger.debug("Matched %s to track %s via %s", file_path.name, track.id, strategy)
            return track

        disc_number = signals.disc_number or 1
        track_number = signals.track_number or await self.track_repo.next_track_number(
            album_id, disc_number
        )
        track = await self.track_repo.create(
            album_id=album_id,
            title=signals.title or file_path.stem,
            track_number=track_number,
            disc_number=disc_number,
            duration_ms=int(info.duration * 1000) if info.duration else None,
        )
        logger.info("Created track %d for unmatched file %s", track_number, file_path.name)
        return track

    # =========================================================================
    # TRACKLIST BACKFILL
    # =========================================================================

    async def ensure_album_has_tracks(self, album_id: str, release_group_id: str | None) -> int:
        """Create track slots from MusicBrainz when the album has none yet.

        Returns:
            Number of tracks created (0 when not needed or not possible)
        """
        if self.music_provider is None or not release_group_id:
            return 0
        if await self.track_repo.count_by(album_id=album_id) > 0:
            return 0

        try:
            tracklist = await self.music_provider.get_tracklist(release_group_id)
        except Exception as e:
            logger.warning("Tracklist lookup for %s failed: %s", release_group_id, e)
            return 0

        for entry in tracklist:
            await self.track_repo.create(
                album_id=album_id,
                title=entry.title or f"Track {entry.track_number}",
                track_number=entry.track_number,
                disc_number=entry.disc_number,
                duration_ms=entry.duration_ms,
                musicbrainz_id=entry.recording_id,
            )
        if tracklist:
            await self.session.commit()
            logger.info(
                "Created %d tracks for album %s from MusicBrainz", len(tracklist), album_id
            )
        return len(tracklist)
