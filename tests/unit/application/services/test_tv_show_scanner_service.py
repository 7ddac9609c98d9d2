"""Unit tests for TvShowScannerService.

Hey future me - the first test mixes the three layouts a real TV root ends up with
(show/season/file, show/file, loose scene file). All of them must land in ONE show.
"""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.tv_show_scanner_service import TvShowScannerService
from mediarr.config import Settings
from mediarr.domain.entities import MediaType
from mediarr.domain.ports import EpisodeCandidate, TvShowCandidate
from mediarr.infrastructure.persistence.models import RootFolderModel
from mediarr.infrastructure.persistence.repositories import (
    EpisodeFileRepository,
    EpisodeRepository,
    SeasonRepository,
    TvShowRepository,
    UnmatchedFileRepository,
)

from conftest import LibrarySeeder

SHOW = "Breaking Bad (2008)"
SCENE_EPISODE = f"{SHOW}/Season 01/Breaking.Bad.S01E02.720p.HDTV.mkv"


@pytest.fixture
async def root(tmp_path: Path, seed: LibrarySeeder) -> RootFolderModel:
    return await seed.root_folder(tmp_path / "tv", MediaType.TV)


class TestTvScan:
    """Tests for scanning a TV root folder."""

    async def test_layouts_group_into_one_show(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test grouping, season creation, episode titles and the recount."""
        base = Path(root.path)
        make_file(base / SHOW / "Season 01" / "Breaking Bad - S01E01 - Pilot.mkv")
        make_file(base / SCENE_EPISODE)
        make_file(base / "Breaking.Bad.2008.S02E01.720p.HDTV.mkv")
        make_file(base / SHOW / "Specials" / "Breaking Bad - S00E01 - Minisode.mkv")
        make_file(base / SHOW / "Extras" / "behind-the-scenes.mkv")
        make_file(base / SHOW / "random.mkv")

        result = await TvShowScannerService(session, settings).scan(root.id)

        assert result.success is True
        assert result.files_found == 5
        # 1 show + 4 episodes
        assert result.entities_created == 5
        assert result.unmatched_files == 1

        shows = await TvShowRepository(session).list_for_root_folder(root.id)
        assert len(shows) == 1
        show = shows[0]
        assert (show.title, show.year, show.needs_review) == ("Breaking Bad", 2008, True)
        await session.refresh(show)
        assert show.episode_count == 4
        assert show.season_count == 3

        episodes = EpisodeRepository(session)
        pilot = await episodes.find_by(tv_show_id=show.id, season_number=1, episode_number=1)
        assert pilot is not None
        assert pilot.title == "Pilot"
        assert pilot.has_file is True
        second = await episodes.find_by(tv_show_id=show.id, season_number=1, episode_number=2)
        assert second is not None
        assert second.title == "Episode 2"

        specials = await SeasonRepository(session).find_by(tv_show_id=show.id, season_number=0)
        assert specials is not None
        assert specials.title == "Specials"

        scene_file = await EpisodeFileRepository(session).find_in_root(root.id, SCENE_EPISODE)
        assert scene_file is not None
        assert scene_file.quality == "HDTV-720p"

        unmatched = await UnmatchedFileRepository(session).find_by(root_folder_id=root.id)
        assert unmatched is not None
        assert unmatched.relative_path == f"{SHOW}/random.mkv"

    async def test_rescan_is_noop(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test that a second scan of the same tree changes nothing."""
        make_file(Path(root.path) / SCENE_EPISODE)
        service = TvShowScannerService(session, settings)
        await service.scan(root.id)

        result = await service.scan(root.id)

        assert (result.entities_created, result.entities_updated) == (0, 0)
        assert await EpisodeFileRepository(session).count_by() == 1

    async def test_existing_episodes_matched(
        self,
        session: AsyncSession,
        settings: Settings,
        seed: LibrarySeeder,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test that known shows and episodes get the file attached."""
        show = await seed.show("Breaking Bad", 2008, root)
        pilot = await seed.episode(show, 1, 1, "Pilot")
        make_file(Path(root.path) / "Breaking Bad" / "Breaking.Bad.S01E01.mkv")

        result = await TvShowScannerService(session, settings).scan(root.id)

        assert result.entities_created == 0
        await session.refresh(pilot)
        assert pilot.has_file is True
        assert pilot.episode_file_id is not None

    async def test_transport_stream_quality(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test that a ".ts" episode gets its resolution-inferred quality, not CAM."""
        relative_path = f"{SHOW}/Season 01/Breaking.Bad.S01E03.1080p.ts"
        make_file(Path(root.path) / relative_path)

        await TvShowScannerService(session, settings).scan(root.id)

        episode_file = await EpisodeFileRepository(session).find_in_root(root.id, relative_path)
        assert episode_file is not None
        assert episode_file.quality == "WEB-1080p"

    async def test_multi_episode_file_attached_to_first(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test that "S01E01-E02" becomes one file on episode 1."""
        make_file(Path(root.path) / "Show (2020)" / "Season 01" / "Show - S01E01-E02.mkv")

        await TvShowScannerService(session, settings).scan(root.id)

        episodes = await EpisodeRepository(session).list_by()
        assert [(e.season_number, e.episode_number) for e in episodes] == [(1, 1)]
        assert episodes[0].has_file is True


class TestTmdbLookup:
    """Tests for show and episode title lookups."""

    async def test_show_and_episode_titles(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test that TMDB supplies the show row and missing episode titles."""
        provider = AsyncMock()
        provider.search_shows.return_value = [
            TvShowCandidate(1396, "Breaking Bad", 2008, poster_path="/bb.jpg")
        ]
        provider.get_season_episodes.return_value = [
            EpisodeCandidate(1, 1, "Pilot"),
            EpisodeCandidate(1, 2, "Cat's in the Bag..."),
        ]
        make_file(Path(root.path) / SCENE_EPISODE)

        await TvShowScannerService(session, settings, tv_provider=provider).scan(root.id)

        provider.search_shows.assert_awaited_once_with("Breaking Bad", 2008)
        provider.get_season_episodes.assert_awaited_once_with(1396, 1)
        show = await TvShowRepository(session).find_by(tmdb_id="1396")
        assert show is not None
        assert show.needs_review is False
        assert show.poster_url == "https://image.tmdb.org/t/p/w500/bb.jpg"
        episode = await EpisodeRepository(session).find_by(tv_show_id=show.id, episode_number=2)
        assert episode is not None
        assert episode.title == "Cat's in the Bag..."

    async def test_season_lookup_failure_falls_back(
        self,
        session: AsyncSession,
        settings: Settings,
        root: RootFolderModel,
        make_file: Any,
    ) -> None:
        """Test the generic title when the season lookup fails."""
        provider = AsyncMock()
        provider.search_shows.return_value = [TvShowCandidate(1396, "Breaking Bad", 2008)]
        provider.get_season_episodes.side_effect = RuntimeError("429")
        make_file(Path(root.path) / SCENE_EPISODE)

        result = await TvShowScannerService(session, settings, tv_provider=provider).scan(
            root.id
        )

        assert result.success is True
        episode = await EpisodeRepository(session).find_by(episode_number=2)
        assert episode is not None
        assert episode.title == "Episode 2"
