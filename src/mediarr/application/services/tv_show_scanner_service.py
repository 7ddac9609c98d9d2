# Hey future me - the TV scanner is the one where grouping REALLY matters!
# "Show (2020)/Season 01/S01E01.mkv" and "Show.2020.S01E02.720p.mkv" must end up in the
# same show, so files are grouped by normalize_title(show) + year before any lookup.
# Per file we need BOTH a season and an episode number; a file without them is recorded
# as unmatched (kept for review), never guessed. Seasons/episodes are created on demand
# (season 0 = Specials is allowed) and the cached counts are RECOUNTED at the end.
"""TV show library scanner."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import VIDEO_SCAN_POLICY
from mediarr.application.services.movie_import_service import best_video_info
from mediarr.application.services.scanner_base import (
    BaseLibraryScanner,
    ScanContext,
    ScanGroup,
    ScannedFile,
    match_by_title,
    pick_candidate,
    poster_url,
    size_unchanged,
)
from mediarr.config.settings import Settings
from mediarr.domain.entities import MediaType, media_info_to_dict
from mediarr.domain.ports import IDirectoryLister, ITvMetadataProvider, TvShowCandidate
from mediarr.domain.value_objects.naming import sort_title
from mediarr.domain.value_objects.quality import classify
from mediarr.domain.value_objects.release_parsing import (
    ParsedTvInfo,
    normalize_title,
    parse_tv_path,
)
from mediarr.infrastructure.persistence.models import EpisodeModel
from mediarr.infrastructure.persistence.repositories import (
    EpisodeFileRepository,
    EpisodeRepository,
    SeasonRepository,
    TvShowRepository,
)

logger = logging.getLogger(__name__)


class TvShowScannerService(BaseLibraryScanner[ParsedTvInfo]):
    """Reconciles a TV root folder with shows, seasons, episodes and episode files."""

    media_type = MediaType.TV
    scan_policy = VIDEO_SCAN_POLICY

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        tv_provider: ITvMetadataProvider | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        super().__init__(session, settings, lister)
        self.tv_provider = tv_provider
        self.show_repo = TvShowRepository(session)
        self.season_repo = SeasonRepository(session)
        self.episode_repo = EpisodeRepository(session)
        self.episode_file_repo = EpisodeFileRepository(session)
        # (tmdb_id, season) -> {episode_number: title}
        self._episode_titles: dict[tuple[int, int], dict[int, str]] = {}

    def parse(self, relative_path: str) -> ParsedTvInfo:
        return parse_tv_path(relative_path)

    def group_key(self, scanned: ScannedFile[ParsedTvInfo]) -> tuple[Any, ...]:
        return (normalize_title(scanned.parsed.show_title), scanned.parsed.year)

    async def begin(self, context: ScanContext) -> None:
        self._episode_titles.clear()

    # =========================================================================
    # SHOW
    # =========================================================================

    async def resolve(self, context: ScanContext, group: ScanGroup[ParsedTvInfo]) -> str | None:
        parsed = group.first
        existing = match_by_title(
            await self.show_repo.list_for_root_folder(context.root_folder_id),
            parsed.show_title,
            parsed.year,
        )
        if existing is not None:
            return existing.id

        candidate = await self._search(parsed)
        if candidate is not None:
            by_tmdb = await self.show_repo.find_by(
                tmdb_id=str(candidate.tmdb_id), root_folder_id=context.root_folder_id
            )
            if by_tmdb is not None:
                return by_tmdb.id
            show = await self.show_repo.create(
                tmdb_id=str(candidate.tmdb_id),
                title=candidate.title,
                sort_title=sort_title(candidate.title),
                year=candidate.year or parsed.year,
                overview=candidate.overview,
                poster_url=poster_url(candidate.poster_path),
                root_folder_id=context.root_folder_id,
            )
            logger.info("Created show %s (TMDB %s)", candidate.title, candidate.tmdb_id)
        else:
            show = await self.show_repo.create(
                title=parsed.show_title,
                sort_title=sort_title(parsed.show_title),
                year=parsed.year,
                needs_review=True,
                root_folder_id=context.root_folder_id,
            )
            logger.info("No TMDB match for show %s, needs review", parsed.show_title)

        context.result.entities_created += 1
        return show.id

    async def _search(self, parsed: ParsedTvInfo) -> TvShowCandidate | None:
        if self.tv_provider is None:
            return None
        description = f"TMDB show '{parsed.show_title}'"
        with_year = None
        if parsed.year is not None:
            with_year = await self.lookup(
                description, self.tv_provider.search_shows(parsed.show_title, parsed.year)
            )
        without_year = None
        if not with_year:
            without_year = await self.lookup(
                description, self.tv_provider.search_shows(parsed.show_title)
            )
        return pick_candidate(with_year, without_year, parsed.year)

    # =========================================================================
    # EPISODE FILES
    # =========================================================================

    async def record(
        self, context: ScanContext, entity_id: str, scanned: ScannedFile[ParsedTvInfo]
    ) -> None:
        parsed = scanned.parsed
        entry = scanned.entry
        if parsed.season_number is None or parsed.episode_number is None:
            await self.record_unmatched(
                context,
                scanned,
                {"reason": "no episode number", "show_title": parsed.show_title},
            )
            return

        existing = await self.episode_file_repo.find_in_root(
            context.root_folder_id, scanned.relative_path
        )
        if existing is not None:
            if size_unchanged(existing.size_bytes, entry.size):
                return
            await self.episode_file_repo.update(existing, size_bytes=entry.size)
            context.result.entities_updated += 1
            return

        episode = await self._episode_for(context, entity_id, parsed)
        info = best_video_info(entry.name, None)
        fields = {
            "tv_show_id": entity_id,
            "relative_path": scanned.relative_path,
            "size_bytes": entry.size,
            "quality": classify(info).name,
            "media_info": media_info_to_dict(info),
        }
        episode_file = await self.episode_file_repo.find_by(episode_id=episode.id)
        if episode_file is not None:
            episode_file = await self.episode_file_repo.update(episode_file, **fields)
        else:
            episode_file = await self.episode_file_repo.create(episode_id=episode.id, **fields)
        await self.episode_repo.update(episode, has_file=True, episode_file_id=episode_file.id)
        context.result.entities_updated += 1
        if parsed.is_multi_episode:
            logger.debug(
                "%s covers E%s-E%s, attached to the first episode",
                entry.name,
                parsed.episode_number,
                parsed.end_episode_number,
            )

    async def _episode_for(
        self, context: ScanContext, show_id: str, parsed: ParsedTvInfo
    ) -> EpisodeModel:
        season_number = parsed.season_number or 0
        episode_number = parsed.episode_number or 0
        episode = await self.episode_repo.find_by(
            tv_show_id=show_id, season_number=season_number, episode_number=episode_number
        )
        if episode is not None:
            return episode

        season = await self.season_repo.get_or_create(show_id, season_number)
        title = parsed.episode_title or await self._provider_episode_title(
            show_id, season_number, episode_number
        )
        episode = await self.episode_repo.create(
            tv_show_id=show_id,
            season_id=season.id,
            season_number=season_number,
            episode_number=episode_number,
            title=title or f"Episode {episode_number}",
        )
        context.result.entities_created += 1
        return episode

    async def _provider_episode_title(
        self, show_id: str, season_number: int, episode_number: int
    ) -> str | None:
        if self.tv_provider is None:
            return None
        show = await self.show_repo.get(show_id)
        if not show.tmdb_id:
            return None
        key = (int(show.tmdb_id), season_number)
        if key not in self._episode_titles:
            episodes = await self.lookup(
                f"TMDB season {season_number} of {show.title}",
                self.tv_provider.get_season_episodes(key[0], season_number),
            )
            self._episode_titles[key] = {
                candidate.episode_number: candidate.title
                for candidate in episodes or []
                if candidate.title
            }
        return self._episode_titles[key].get(episode_number)

    async def finish(self, context: ScanContext) -> None:
        for show in await self.show_repo.list_for_root_folder(context.root_folder_id):
            await self.show_repo.recount(show)
        await self.session.commit()
