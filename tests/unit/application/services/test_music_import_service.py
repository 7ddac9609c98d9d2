"""Unit tests for MusicImportService.

Hey future me - these run against a real SQLite file and real directories under tmp_path.
Only the tag probe is faked (FakeProbe from conftest), so the moves, the junk cleanup and
the path probes are the real thing.
"""

import time
from datetime import date
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services import filesystem
from mediarr.application.services.music_import_service import MusicImportService
from mediarr.config import Settings
from mediarr.config.settings import RemotePathMapping
from mediarr.domain.entities import AudioMediaInfo, ImportPhase, ImportProgress, MediaType
from mediarr.domain.ports import TracklistEntry
from mediarr.infrastructure.notifications.event_emitter import (
    IMPORT_COMPLETED,
    IMPORT_FAILED,
    EventEmitter,
)
from mediarr.infrastructure.persistence.models import (
    AlbumModel,
    DownloadClientModel,
    RootFolderModel,
)
from mediarr.infrastructure.persistence.repositories import (
    TrackFileRepository,
    TrackRepository,
)

from conftest import FakeProbe, LibrarySeeder

EXPECTED_PATH = "Artist/[2020] Album/01 - Song.flac"


@pytest.fixture
async def library(tmp_path: Path, seed: LibrarySeeder) -> dict[str, Any]:
    """Music root with one artist and one (track-less) album."""
    root = await seed.root_folder(tmp_path / "music", MediaType.MUSIC)
    artist = await seed.artist("Artist", root)
    album = await seed.album(artist, "Album", date(2020, 1, 1))
    return {"root": root, "artist": artist, "album": album}


@pytest.fixture
def download_dir(tmp_path: Path, make_file: Any) -> Path:
    """Completed download: one track plus release clutter."""
    folder = tmp_path / "downloads" / "Artist - Album (2020)"
    make_file(folder / "01 - Song.flac", size=128)
    make_file(folder / "readme.nfo")
    return folder


def make_service(
    session: AsyncSession, settings: Settings, probe: FakeProbe, **kwargs: Any
) -> MusicImportService:
    return MusicImportService(session, settings, probe, **kwargs)


class TestImportDownload:
    """Tests for importing a completed download."""

    async def test_imports_into_library_layout(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test the happy path: file moved, rows written, source cleaned up."""
        root: RootFolderModel = library["root"]
        album: AlbumModel = library["album"]
        download = await seed.download("Artist - Album (2020)", download_dir, album_id=album.id)

        result = await make_service(session, settings, probe).import_download(download)

        assert result.success is True
        assert result.download_id == download.id
        assert result.entity_id == album.id
        assert result.files_imported == 1
        assert result.errors == []
        assert result.imported_paths == [EXPECTED_PATH]

        assert (Path(root.path) / EXPECTED_PATH).stat().st_size == 128
        assert not download_dir.exists()

        await session.refresh(album)
        assert album.has_file is True
        track_files = await TrackFileRepository(session).list_for_album(album.id)
        assert [track_file.relative_path for track_file in track_files] == [EXPECTED_PATH]
        assert track_files[0].quality == "Lossless"
        assert track_files[0].size_bytes == 128
        tracks = await TrackRepository(session).list_for_album(album.id)
        assert len(tracks) == 1
        assert tracks[0].title == "Song"
        assert tracks[0].has_file is True
        assert tracks[0].track_file_id == track_files[0].id

    async def test_partial_failure_keeps_good_files(
        self,
        session: AsyncSession,
        settings: Settings,
        seed: LibrarySeeder,
        library: dict[str, Any],
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test that one unreadable file doesn't fail the whole download."""
        album: AlbumModel = library["album"]
        folder = tmp_path / "downloads" / "Artist - Album (2020)"
        make_file(folder / "01 - Good.flac")
        bad = make_file(folder / "02 - Bad.flac")
        download = await seed.download("Artist - Album", folder, album_id=album.id)
        probe = FakeProbe(tags={"02 - Bad.flac": None})

        result = await make_service(session, settings, probe).import_download(download)

        assert result.success is True
        assert result.files_imported == 1
        assert result.files_skipped == 1
        assert result.errors == ["02 - Bad.flac: Could not read media info"]
        assert result.imported_paths == ["Artist/[2020] Album/01 - Good.flac"]
        assert bad.exists()
        await session.refresh(album)
        assert album.has_file is True

    async def test_reimport_is_idempotent(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that importing a file already in place changes nothing."""
        root: RootFolderModel = library["root"]
        album: AlbumModel = library["album"]
        service = make_service(session, settings, probe)
        first = await seed.download("first", download_dir, album_id=album.id)
        await service.import_download(first)

        library_dir = Path(root.path) / "Artist" / "[2020] Album"
        again = await seed.download("again", library_dir, album_id=album.id)
        result = await service.import_download(again)

        assert result.files_imported == 0
        assert result.files_skipped == 1
        assert result.errors == []
        assert result.success is False
        assert (library_dir / "01 - Song.flac").exists()
        assert await TrackFileRepository(session).count_by(album_id=album.id) == 1
        assert await TrackRepository(session).count_by(album_id=album.id) == 1

    async def test_progress_phases(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that progress goes scanning -> importing -> cleaning -> complete."""
        download = await seed.download("dl", download_dir, album_id=library["album"].id)
        snapshots: list[ImportProgress] = []

        await make_service(session, settings, probe).import_download(download, snapshots.append)

        phases = [snapshot.phase for snapshot in snapshots]
        assert phases == [
            ImportPhase.SCANNING,
            ImportPhase.IMPORTING,
            ImportPhase.CLEANING,
            ImportPhase.COMPLETE,
        ]
        assert snapshots[1].current_file == "01 - Song.flac"

    async def test_broken_progress_callback_is_ignored(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that progress reporting is advisory."""
        download = await seed.download("dl", download_dir, album_id=library["album"].id)

        def explode(progress: ImportProgress) -> None:
            raise RuntimeError("UI went away")

        result = await make_service(session, settings, probe).import_download(download, explode)

        assert result.success is True


class TestImportDownloadFailures:
    """Tests for downloads that can't be imported."""

    async def test_no_output_path(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
    ) -> None:
        """Test a download without an output path."""
        download = await seed.download("dl", None, album_id=library["album"].id)

        result = await make_service(session, settings, probe).import_download(download)

        assert result.success is False
        assert result.errors == ["Download has no output path"]

    async def test_album_not_linked(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that a download without an album is not guessed."""
        download = await seed.download("dl", download_dir)

        result = await make_service(session, settings, probe).import_download(download)

        assert result.errors == ["Album not found for download"]
        assert (download_dir / "01 - Song.flac").exists()

    async def test_no_audio_files(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test a download containing only clutter."""
        folder = tmp_path / "downloads" / "empty"
        make_file(folder / "readme.nfo")
        download = await seed.download("dl", folder, album_id=library["album"].id)

        result = await make_service(session, settings, probe).import_download(download)

        assert result.errors == ["No audio files found in download"]
        assert (folder / "readme.nfo").exists()

    async def test_missing_path_suggests_remote_mapping(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        tmp_path: Path,
    ) -> None:
        """Test that a missing path is reported with the remote path mapping hint."""
        download = await seed.download("dl", tmp_path / "nope", album_id=library["album"].id)

        result = await make_service(session, settings, probe).import_download(download)

        assert len(result.errors) == 1
        assert result.errors[0].startswith("Path not accessible:")
        assert "Remote Path Mapping" in result.errors[0]
        assert probe.calls == []

    async def test_hanging_path_reports_timeout(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
        mocker: MockerFixture,
    ) -> None:
        """Test that an unresponsive mount is "not responding", not "not accessible"."""
        settings.imports.path_timeout_seconds = 0.05
        mocker.patch.object(filesystem, "_probe", side_effect=lambda path: time.sleep(0.5))
        download = await seed.download("dl", download_dir, album_id=library["album"].id)

        started = time.monotonic()
        result = await make_service(session, settings, probe).import_download(download)

        assert time.monotonic() - started < 0.5
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Path not responding:")
        assert (download_dir / "01 - Song.flac").exists()


class TestRemotePathMapping:
    """Tests for download path translation."""

    async def test_settings_mapping(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test a mapping from settings."""
        settings.imports.remote_path_mappings = [
            RemotePathMapping(remote_path="/remote", local_path="/elsewhere"),
            RemotePathMapping(
                remote_path="/remote/downloads", local_path=str(download_dir.parent)
            ),
        ]
        download = await seed.download(
            "dl", "/remote/downloads/Artist - Album (2020)", album_id=library["album"].id
        )

        result = await make_service(session, settings, probe).import_download(download)

        assert result.imported_paths == [EXPECTED_PATH]

    async def test_download_client_mapping_wins(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that the download client's own mapping is tried first."""
        settings.imports.remote_path_mappings = [
            RemotePathMapping(remote_path="/data", local_path="/wrong")
        ]
        client = DownloadClientModel(
            name="qbit",
            type="qbittorrent",
            remote_path="/data",
            local_path=str(download_dir.parent),
        )
        session.add(client)
        await session.commit()
        download = await seed.download(
            "dl",
            "/data/Artist - Album (2020)",
            album_id=library["album"].id,
            download_client_id=client.id,
        )

        result = await make_service(session, settings, probe).import_download(download)

        assert result.imported_paths == [EXPECTED_PATH]


class TestEvents:
    """Tests for import outcome events."""

    async def test_completed_event(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test that a successful import emits import.completed."""
        events = EventEmitter()
        received: list[tuple[str, dict[str, Any]]] = []

        async def handler(event: str, payload: dict[str, Any]) -> None:
            received.append((event, payload))

        events.subscribe("*", handler)
        download = await seed.download("dl", download_dir, album_id=library["album"].id)

        await make_service(session, settings, probe, events=events).import_download(download)

        assert len(received) == 1
        event, payload = received[0]
        assert event == IMPORT_COMPLETED
        assert payload["media_type"] == "music"
        assert payload["download_id"] == download.id
        assert payload["files_imported"] == 1
        assert payload["imported_paths"] == [EXPECTED_PATH]

    async def test_failed_event_and_broken_subscriber(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
    ) -> None:
        """Test import.failed, and that a raising subscriber doesn't break the import."""
        events = EventEmitter()
        failed: list[dict[str, Any]] = []

        async def broken(event: str, payload: dict[str, Any]) -> None:
            raise RuntimeError("webhook down")

        async def collect(event: str, payload: dict[str, Any]) -> None:
            failed.append(payload)

        events.subscribe(IMPORT_FAILED, broken)
        events.subscribe(IMPORT_FAILED, collect)
        download = await seed.download("dl", None, album_id=library["album"].id)

        result = await make_service(session, settings, probe, events=events).import_download(
            download
        )

        assert result.errors == ["Download has no output path"]
        assert failed[0]["errors"] == ["Download has no output path"]


class TestImportFromPath:
    """Tests for importing a folder without a download record."""

    async def test_matches_album_by_folder_name(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        library: dict[str, Any],
        download_dir: Path,
    ) -> None:
        """Test the "Artist - Album (Year)" folder fallback."""
        result = await make_service(session, settings, probe).import_from_path(download_dir)

        assert result.success is True
        assert result.entity_id == library["album"].id
        assert result.imported_paths == [EXPECTED_PATH]

    async def test_matches_album_by_tags(
        self,
        session: AsyncSession,
        settings: Settings,
        library: dict[str, Any],
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test that embedded tags win (case-insensitively) over a useless folder name."""
        make_file(tmp_path / "incoming" / "stuff" / "track.flac")
        probe = FakeProbe(
            default=AudioMediaInfo(
                codec="mp3", bitrate=320_000, artist="ARTIST", album="album", title="Song",
                track_number=1,
            )
        )

        result = await make_service(session, settings, probe).import_from_path(
            tmp_path / "incoming" / "stuff"
        )

        assert result.imported_paths == ["Artist/[2020] Album/01 - Song.flac"]

    async def test_no_match(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        library: dict[str, Any],
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test that an unknown album is a no-match, never a guess."""
        folder = tmp_path / "incoming" / "Unknown - Nothing"
        song = make_file(folder / "01 - Song.flac")

        result = await make_service(session, settings, probe).import_from_path(folder)

        assert result.success is False
        assert result.errors == [
            "Could not match to any album in library. Folder: Unknown - Nothing"
        ]
        assert song.exists()


class TestTracklistBackfill:
    """Tests for creating track slots from the metadata provider."""

    async def test_creates_tracks_before_matching(
        self,
        session: AsyncSession,
        settings: Settings,
        seed: LibrarySeeder,
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test that an album without tracks gets its tracklist first."""
        root = await seed.root_folder(tmp_path / "music", MediaType.MUSIC)
        artist = await seed.artist("Artist", root)
        album = await seed.album(artist, "Album", date(2020, 1, 1), release_group_id="rg-1")
        folder = tmp_path / "downloads" / "dl"
        make_file(folder / "song.flac")
        download = await seed.download("dl", folder, album_id=album.id)

        provider = AsyncMock()
        provider.get_tracklist.return_value = [
            TracklistEntry(title="Intro", track_number=1),
            TracklistEntry(title="Song", track_number=2, duration_ms=200_000),
        ]
        probe = FakeProbe(default=AudioMediaInfo(codec="flac", title="Song"))

        result = await make_service(
            session, settings, probe, music_provider=provider
        ).import_download(download)

        provider.get_tracklist.assert_awaited_once_with("rg-1")
        assert result.imported_paths == ["Artist/[2020] Album/02 - Song.flac"]
        tracks = await TrackRepository(session).list_for_album(album.id)
        assert [(track.track_number, track.has_file) for track in tracks] == [
            (1, False),
            (2, True),
        ]

    async def test_provider_failure_falls_back_to_file(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        tmp_path: Path,
        make_file: Any,
    ) -> None:
        """Test that a failing provider doesn't block the import."""
        root = await seed.root_folder(tmp_path / "music", MediaType.MUSIC)
        artist = await seed.artist("Artist", root)
        album = await seed.album(artist, "Album", release_group_id="rg-1")
        folder = tmp_path / "downloads" / "dl"
        make_file(folder / "03 - Song.flac")
        download = await seed.download("dl", folder, album_id=album.id)
        provider = AsyncMock()
        provider.get_tracklist.side_effect = RuntimeError("503")

        result = await make_service(
            session, settings, probe, music_provider=provider
        ).import_download(download)

        assert result.imported_paths == ["Artist/Album/03 - Song.flac"]

    async def test_existing_tracks_skip_provider(
        self,
        session: AsyncSession,
        settings: Settings,
        probe: FakeProbe,
        seed: LibrarySeeder,
        library: dict[str, Any],
    ) -> None:
        """Test that albums with tracks are not backfilled."""
        album: AlbumModel = library["album"]
        await seed.track(album, "Song", 1)
        provider = AsyncMock()
        service = make_service(session, settings, probe, music_provider=provider)

        assert await service.ensure_album_has_tracks(album.id, "rg-1") == 0
        provider.get_tracklist.assert_not_awaited()
