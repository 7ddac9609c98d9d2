"""Music library scanner.

Hey future me - the music root follows the Lidarr layout:

    Artist/[2020] Album/01 - Song.flac
    Artist/Album (2020)/CD1/1-01 - Song.flac    (deeper folders belong to the album)
    Artist/Loose Song.mp3                        (goes to the artist's "Singles" album)

Artist and album come from the FOLDERS, not from tags - a tagged "feat." artist must not
spawn a new artist folder entry. Tags are only read for new files (track number, title,
technical info for the quality label). Files directly in the root folder can't be
attributed to an artist and are recorded as unmatched.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import MUSIC_SCAN_POLICY
from mediarr.application.services.scanner_base import (
    BaseLibraryScanner,
    ScanContext,
    ScanGroup,
    ScannedFile,
    match_by_title,
    size_unchanged,
)
from mediarr.application.services.track_matching import (
    TrackMatcher,
    TrackSignals,
    default_matchers,
    match_track,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import AudioMediaInfo, MediaType, media_info_to_dict
from mediarr.domain.ports import IDirectoryLister, IMediaProbe, IMusicMetadataProvider
from mediarr.domain.value_objects.naming import sort_title
from mediarr.domain.value_objects.quality import classify_audio
from mediarr.domain.value_objects.release_parsing import normalize_title, parse_album_folder
from mediarr.infrastructure.persistence.models import TrackModel
from mediarr.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackFileRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)

SINGLES_ALBUM = "Singles"


@dataclass(frozen=True)
class MusicPathInfo:
    """Artist/album a file belongs to according to its folders."""

    artist: str
    album: str
    year: int | None = None


def parse_music_path(relative_path: str) -> MusicPathInfo | None:
    """Artist and album of a path relative to a music root (None for root-level files)."""
    parts = [part for part in relative_path.split("/") if part]
    if len(parts) < 2:
        return None
    if len(parts) == 2:
        return MusicPathInfo(artist=parts[0], album=SINGLES_ALBUM)
    album = parse_album_folder(parts[1])
    return MusicPathInfo(artist=parts[0], album=album.title, year=album.year)


class MusicScannerService(BaseLibraryScanner[MusicPathInfo | None]):
    """Reconciles an Artist/Album/Track folder tree with the database."""

    media_type = MediaType.MUSIC
    scan_policy = MUSIC_SCAN_POLICY

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: IMediaProbe,
        music_provider: IMusicMetadataProvider | None = None,
        lister: IDirectoryLister | None = None,
        matchers: list[TrackMatcher] | None = None,
    ) -> None:
        super().__init__(session, settings, lister)
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
        # normalized artist name -> artist id, one scan only
        self._artist_ids: dict[str, str] = {}

    def parse(self, relative_path: str) -> MusicPathInfo | None:
        return parse_music_path(relative_path)

    def group_key(self, scanned: ScannedFile[MusicPathInfo | None]) -> tuple[Any, ...]:
        info = scanned.parsed
        if info is None:
            return ("",)
        return (normalize_title(info.artist), normalize_title(info.album))

    async def begin(self, context: ScanContext) -> None:
        self._artist_ids.clear()

    # =========================================================================
    # ARTIST / ALBUM
    # =========================================================================

    async def resolve(
        self, context: ScanContext, group: ScanGroup[MusicPathInfo | None]
    ) -> str | None:
        info = group.first
        if info is None:
            for scanned in group.files:
                await self.record_unmatched(context, scanned, {"reason": "no artist folder"})
            return None

        artist_id = await self._artist_for(context, info.artist)
        try:
            return await self._album_for(context, artist_id, info)
        except Exception:
            # The group's rollback may take a just-created artist with it
            self._artist_ids.pop(normalize_title(info.artist), None)
            raise

    async def _artist_for(self, context: ScanContext, name: str) -> str:
        key = normalize_title(name)
        if key in self._artist_ids:
            return self._artist_ids[key]

        artist = await self.artist_repo.find_by_name(name, context.root_folder_id)
        if artist is None:
            artist = match_by_title(
                await self.artist_repo.list_by(root_folder_id=context.root_folder_id),
                name,
                None,
                title_of=lambda candidate: candidate.name,
            )
        if artist is None:
            artist = await self.artist_repo.create(
                name=name,
                sort_name=sort_title(name),
                root_folder_id=context.root_folder_id,
            )
            context.result.entities_created += 1
            logger.info("Created artist %s from folder", name)

        self._artist_ids[key] = artist.id
        return artist.id

    async def _album_for(
        self, context: ScanContext, artist_id: str, info: MusicPathInfo
    ) -> str:
        album = await self.album_repo.find_by_title(artist_id, info.album)
        if album is None:
            existing = await self.album_repo.list_by(artist_id=artist_id)
            album = match_by_title(existing, info.album, None)
        if album is not None:
            return album.id

        release_group_id = None
        release_date = date(info.year, 1, 1) if info.year else None
        if self.music_provider is not None and info.album != SINGLES_ALBUM:
            artist = await self.artist_repo.get(artist_id)
            candidates = await self.lookup(
                f"MusicBrainz album '{info.album}'",
                self.music_provider.search_albums(artist.name, info.album),
            )
            wanted = normalize_title(info.album)
            for candidate in candidates or []:
                if normalize_title(candidate.title) == wanted:
                    release_group_id = candidate.release_group_id
                    if release_date is None and candidate.year:
                        release_date = date(candidate.year, 1, 1)
                    break

        album = await self.album_repo.create(
            artist_id=artist_id,
            title=info.album,
            album_type="single" if info.album == SINGLES_ALBUM else "album",
            release_date=release_date,
            musicbrainz_release_group_id=release_group_id,
        )
        context.result.entities_created += 1
        logger.info("Created album %s (release group %s)", info.album, release_group_id)
        return album.id

    # =========================================================================
    # TRACK FILES
    # =========================================================================

    async def record(
        self,
        context: ScanContext,
        entity_id: str,
        scanned: ScannedFile[MusicPathInfo | None],
    ) -> None:
        entry = scanned.entry
        existing = await self.track_file_repo.find_in_root(
            context.root_folder_id, scanned.relative_path
        )
        if existing is not None:
            if size_unchanged(existing.size_bytes, entry.size):
                return
            await self.track_file_repo.update(existing, size_bytes=entry.size)
            context.result.entities_updated += 1
            return

        album_id = entity_id
        info = await self.probe.read_tags(entry.path)
        signals = TrackSignals.from_file(entry.name, info)
        tracks = await self.track_repo.list_for_album(album_id)
        matched = match_track(signals, tracks, self.matchers)

        if matched is not None:
            track = matched[0]
            if track.track_file_id is not None:
                other = await self.track_file_repo.find(track.track_file_id)
                if other is not None and other.relative_path != scanned.relative_path:
                    if not (context.root_path / other.relative_path).exists():
                        # Renamed or moved on disk: the old row follows the file
                        await self.track_file_repo.update(
                            other,
                            album_id=album_id,
                            relative_path=scanned.relative_path,
                            size_bytes=entry.size,
                            quality=classify_audio(info).name if info else None,
                            media_info=media_info_to_dict(info) if info else None,
                        )
                        context.result.entities_updated += 1
                        return
                    await self.record_unmatched(
                        context,
                        scanned,
                        {"reason": "duplicate", "track_id": track.id},
                    )
                    return
            context.result.entities_updated += 1
        else:
            track = await self._create_track(album_id, signals, info, entry.path.stem)
            context.result.entities_created += 1

        track_file = await self.track_file_repo.create(
            track_id=track.id,
            album_id=album_id,
            relative_path=scanned.relative_path,
            size_bytes=entry.size,
            quality=classify_audio(info).name if info else None,
            media_info=media_info_to_dict(info) if info else None,
        )
        await self.track_repo.update(track, has_file=True, track_file_id=track_file.id)
        album = await self.album_repo.get(album_id)
        if not album.has_file:
            await self.album_repo.update(album, has_file=True)

    async def _create_track(
        self, album_id: str, signals: TrackSignals, info: AudioMediaInfo | None, stem: str
    ) -> TrackModel:
        disc_number = signals.disc_number or 1
        track_number = signals.track_number or await self.track_repo.next_track_number(
            album_id, disc_number
        )
        duration = info.duration if info else None
        return await self.track_repo.create(
            album_id=album_id,
            title=signals.title or stem,
            track_number=track_number,
            disc_number=disc_number,
            duration_ms=int(duration * 1000) if duration else None,
        )
