"""Movie library scanner."""

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
from mediarr.domain.ports import IDirectoryLister, IMovieMetadataProvider, MovieCandidate
from mediarr.domain.value_objects.naming import sort_title
from mediarr.domain.value_objects.quality import classify
from mediarr.domain.value_objects.release_parsing import (
    ParsedMovieInfo,
    normalize_title,
    parse_movie_path,
)
from mediarr.infrastructure.persistence.repositories import MovieFileRepository, MovieRepository

logger = logging.getLogger(__name__)


class MovieScannerService(BaseLibraryScanner[ParsedMovieInfo]):
    """Reconciles a movie root folder with the database.

    Hey future me - one folder = one movie. "Movie (2020)/Movie.mkv" plus
    "Movie (2020)/Featurette.mkv" is still ONE movie: the largest file is the movie,
    the rest are recorded as unmatched extras. Loose files directly in the root are grouped
    by their parsed title + year instead.

    Lookup order per movie: existing row in this root (exact, then normalized title+year),
    TMDB with the parsed year, TMDB without a year preferring a same-year hit, and finally
    a needs_review movie built from the folder name alone. A scan never fails because TMDB
    doesn't know a movie.
    """

    media_type = MediaType.MOVIES
    scan_policy = VIDEO_SCAN_POLICY

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        movie_provider: IMovieMetadataProvider | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        super().__init__(session, settings, lister)
        self.movie_provider = movie_provider
        self.movie_repo = MovieRepository(session)
        self.movie_file_repo = MovieFileRepository(session)

    def parse(self, relative_path: str) -> ParsedMovieInfo:
        return parse_movie_path(relative_path)

    def group_key(self, scanned: ScannedFile[ParsedMovieInfo]) -> tuple[Any, ...]:
        folder, _, _ = scanned.relative_path.rpartition("/")
        if folder:
            return ("folder", folder.split("/")[0].lower())
        return ("file", normalize_title(scanned.parsed.title), scanned.parsed.year)

    # =========================================================================
    # MOVIE
    # =========================================================================

    async def resolve(self, context: ScanContext, group: ScanGroup[ParsedMovieInfo]) -> str | None:
        main = max(group.files, key=lambda scanned: scanned.entry.size)
        for extra in group.files:
            if extra is not main:
                await self.record_unmatched(
                    context, extra, {"reason": "extra", "movie_file": main.relative_path}
                )
        group.files = [main]

        parsed = main.parsed
        existing = match_by_title(
            await self.movie_repo.list_for_root_folder(context.root_folder_id),
            parsed.title,
            parsed.year,
        )
        if existing is not None:
            return existing.id

        candidate = await self._search(parsed)
        if candidate is not None:
            by_tmdb = await self.movie_repo.find_by(
                tmdb_id=str(candidate.tmdb_id), root_folder_id=context.root_folder_id
            )
            if by_tmdb is not None:
                return by_tmdb.id
            movie = await self.movie_repo.create(
                tmdb_id=str(candidate.tmdb_id),
                title=candidate.title,
                sort_title=sort_title(candidate.title),
                year=candidate.year or parsed.year,
                overview=candidate.overview,
                poster_url=poster_url(candidate.poster_path),
                root_folder_id=context.root_folder_id,
            )
            logger.info("Created movie %s (TMDB %s)", candidate.title, candidate.tmdb_id)
        else:
            movie = await self.movie_repo.create(
                title=parsed.title,
                sort_title=sort_title(parsed.title),
                year=parsed.year,
                needs_review=True,
                root_folder_id=context.root_folder_id,
            )
            logger.info("No TMDB match for %s (%s), needs review", parsed.title, parsed.year)

        context.result.entities_created += 1
        return movie.id

    async def _search(self, parsed: ParsedMovieInfo) -> MovieCandidate | None:
        if self.movie_provider is None:
            return None
        description = f"TMDB movie '{parsed.title}'"
        with_year = None
        if parsed.year is not None:
            with_year = await self.lookup(
                description, self.movie_provider.search_movies(parsed.title, parsed.year)
            )
        without_year = None
        if not with_year:
            without_year = await self.lookup(
                description, self.movie_provider.search_movies(parsed.title)
            )
        return pick_candidate(with_year, without_year, parsed.year)

    # =========================================================================
    # MOVIE FILE
    # =========================================================================

    async def record(
        self, context: ScanContext, entity_id: str, scanned: ScannedFile[ParsedMovieInfo]
    ) -> None:
        entry = scanned.entry
        existing = await self.movie_file_repo.find_in_root(
            context.root_folder_id, scanned.relative_path
        )
        if existing is not None:
            if size_unchanged(existing.size_bytes, entry.size):
                return
            await self.movie_file_repo.update(existing, size_bytes=entry.size)
            context.result.entities_updated += 1
            return

        folder = scanned.relative_path.split("/")[0]
        info = best_video_info(entry.name, folder if folder != entry.name else None)
        fields = {
            "relative_path": scanned.relative_path,
            "size_bytes": entry.size,
            "quality": classify(info).name,
            "media_info": media_info_to_dict(info),
        }
        # One file per movie: a file renamed outside the app replaces the old record
        movie_file = await self.movie_file_repo.find_by(movie_id=entity_id)
        if movie_file is not None:
            await self.movie_file_repo.update(movie_file, **fields)
        else:
            await self.movie_file_repo.create(movie_id=entity_id, **fields)

        movie = await self.movie_repo.get(entity_id)
        if not movie.has_file:
            await self.movie_repo.update(movie, has_file=True)
        context.result.entities_updated += 1
