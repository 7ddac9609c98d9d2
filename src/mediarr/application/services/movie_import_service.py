"""Movie download import service."""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    VIDEO_IMPORT_POLICY,
    VIDEO_JUNK_EXTENSIONS,
    stat_with_timeout,
)
from mediarr.application.services.import_base import BaseImportService, file_error
from mediarr.config.settings import Settings
from mediarr.domain.entities import (
    ImportPhase,
    ImportProgressCallback,
    ImportResult,
    MediaType,
    VideoMediaInfo,
    media_info_to_dict,
)
from mediarr.domain.exceptions import EntityNotFoundException
from mediarr.domain.ports import IDirectoryLister, IEventSink
from mediarr.domain.value_objects.naming import VIDEO_EXTENSIONS, NamingService
from mediarr.domain.value_objects.quality import classify, parse_video_quality
from mediarr.infrastructure.persistence.models import DownloadModel
from mediarr.infrastructure.persistence.repositories import (
    MovieFileRepository,
    MovieRepository,
)

logger = logging.getLogger(__name__)


def video_info_from_name(name: str) -> VideoMediaInfo:
    """Quality signals of a release/file name as video media info."""
    # The container extension is not a quality token (".ts" would read as telesync)
    path = Path(name)
    if path.suffix.lower() in VIDEO_EXTENSIONS:
        name = path.stem
    signals = parse_video_quality(name)
    return VideoMediaInfo(
        resolution=signals.resolution,
        source=signals.source,
        codec=signals.codec,
        audio_codec=signals.audio,
        is_remux=signals.is_remux,
    )


def best_video_info(file_name: str, release_name: str | None) -> VideoMediaInfo:
    """File name signals, or the release name's when the file name has none."""
    info = video_info_from_name(file_name)
    if info.resolution is None and info.source is None and release_name:
        return video_info_from_name(release_name)
    return info


class MovieImportService(BaseImportService):
    """Imports the main video file of a movie download.

    Hey future me - a movie download is ONE movie. Only the largest non-sample video file
    is imported ("Movie (2020)/Movie (2020) - Bluray-1080p.mkv"); trailers and extras that
    survive the skip policy are left behind and counted as skipped. The MovieFile row is
    upserted, a re-import replaces the old record instead of adding one.
    """

    media_type = MediaType.MOVIES
    skip_policy = VIDEO_IMPORT_POLICY
    junk_extensions = VIDEO_JUNK_EXTENSIONS
    no_files_message = "No video files found in download"

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        naming: NamingService | None = None,
        events: IEventSink | None = None,
        lister: IDirectoryLister | None = None,
    ) -> None:
        super().__init__(session, settings, naming, events, lister)
        self.movie_repo = MovieRepository(session)
        self.movie_file_repo = MovieFileRepository(session)

    async def _import_download(
        self,
        download: DownloadModel,
        source: Path,
        result: ImportResult,
        on_progress: ImportProgressCallback | None,
    ) -> None:
        movie = await self.movie_repo.find(download.movie_id) if download.movie_id else None
        if movie is None:
            raise EntityNotFoundException(
                "Movie", download.movie_id, "Movie not found for download"
            )
        root_folder = await self.get_root_folder(movie.root_folder_id)
        movie_id, title, year = movie.id, movie.title, movie.year
        root_path = root_folder.path
        release_name = download.title
        result.entity_id = movie_id

        self.report(on_progress, ImportPhase.SCANNING)
        files = await self.discover(source)
        main_file = max(files, key=lambda entry: entry.size)
        result.files_skipped += len(files) - 1
        if len(files) > 1:
            logger.debug("Picked %s as main file out of %d videos", main_file.name, len(files))

        self.report(on_progress, ImportPhase.IMPORTING, 1, 1, main_file.name)
        info = best_video_info(main_file.name, release_name)
        quality_name = classify(info).name
        relative_path = self.naming.movie_path(title, year, quality_name, main_file.path.suffix)

        try:
            destination = await self.move_into_library(main_file.path, root_path, relative_path)
            size_bytes = (await stat_with_timeout(destination, self.path_timeout)).st_size

            fields = {
                "relative_path": relative_path,
                "size_bytes": size_bytes,
                "quality": quality_name,
                "media_info": media_info_to_dict(info),
            }
            existing = await self.movie_file_repo.find_by(movie_id=movie_id)
            if existing:
                await self.movie_file_repo.update(existing, **fields)
            else:
                await self.movie_file_repo.create(movie_id=movie_id, **fields)

            movie = await self.movie_repo.get(movie_id)
            await self.movie_repo.update(movie, has_file=True)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            result.files_skipped += 1
            result.errors.append(file_error(main_file.path, e))
            logger.warning("Failed to import %s: %s", main_file.name, e)
            return

        result.files_imported += 1
        result.imported_paths.append(relative_path)
        logger.info("Imported %s -> %s", main_file.name, relative_path)

        await self.cleanup(source, result, on_progress)
        self.report(on_progress, ImportPhase.COMPLETE, 1, 1)
