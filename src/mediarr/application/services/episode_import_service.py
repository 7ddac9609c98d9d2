# Hey future me - TV downloads can be ONE episode or a whole season pack!
# A download may point at a single episode (episode_id set) or just at the show. Each video
# file is matched on its own:
#   1. download.episode_id, when the download has exactly one video file
#   2. SxxEyy / NxNN parsed from the file name, looked up in the show's episodes
# Files that match nothing become per-file errors ("Could not match to episode") - we
# never create episodes from a download, the show's episode list comes from the scanner
# or the metadata provider.
"""TV episode download import service."""

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from mediarr.application.services.filesystem import (
    VIDEO_IMPORT_POLICY,
    VIDEO_JUNK_EXTENSIONS,
    stat_with_timeout,
)
from mediarr.application.services.import_base import BaseImportService, file_error
from mediarr.application.services.movie_import_service import best_video_info
from mediarr.config.settings import Settings
from mediarr.domain.entities import (
    ImportPhase,
    ImportProgressCallback,
    ImportResult,
    MediaType,
    media_info_to_dict,
)
from mediarr.domain.exceptions import EntityNotFoundException, NoMatchFoundException
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister, IEventSink
from mediarr.domain.value_objects.naming import NamingService
from mediarr.domain.value_objects.quality import classify
from mediarr.domain.value_objects.release_parsing import parse_episode_filename
from mediarr.infrastructure.persistence.models import DownloadModel, EpisodeModel
from mediarr.infrastructure.persistence.repositories import (
    EpisodeFileRepository,
    EpisodeRepository,
    TvShowRepository,
)

logger = logging.getLogger(__name__)


class EpisodeImportService(BaseImportService):
    """Imports video files of a TV download into episode slots."""

    media_type = MediaType.TV
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
        self.show_repo = TvShowRepository(session)
        self.episode_repo = EpisodeRepository(session)
        self.episode_file_repo = EpisodeFileRepository(session)

    async def _import_download(
        self,
        download: DownloadModel,
        source: Path,
        result: ImportResult,
        on_progress: ImportProgressCallback | None,
    ) -> None:
        show_id = download.tv_show_id
        known_episode_id = download.episode_id
        if show_id is None and known_episode_id:
            episode = await self.episode_repo.find(known_episode_id)
            show_id = episode.tv_show_id if episode else None

        show = await self.show_repo.find(show_id) if show_id else None
        if show is None:
            raise EntityNotFoundException("TvShow", show_id, "TV show not found for download")
        root_folder = await self.get_root_folder(show.root_folder_id)
        show_title, show_year, root_path = show.title, show.year, root_folder.path
        release_name = download.title
        result.entity_id = show_id

        self.report(on_progress, ImportPhase.SCANNING)
        files = await self.discover(source)
        # The known episode only identifies the file when there's no ambiguity
        single_episode_id = known_episode_id if len(files) == 1 else None

        total = len(files)
        for index, entry in enumerate(files, start=1):
            self.report(on_progress, ImportPhase.IMPORTING, total, index, entry.name)
            try:
                relative_path = await self._import_episode_file(
                    entry,
                    show_id,
                    show_title,
                    show_year,
                    root_path,
                    single_episode_id,
                    release_name,
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                result.files_skipped += 1
                result.errors.append(file_error(entry.path, e))
                logger.warning("Failed to import %s: %s", entry.name, e)
                continue
            result.files_imported += 1
            result.imported_paths.append(relative_path)

        if result.files_imported:
            show = await self.show_repo.get(show_id)
            await self.show_repo.recount(show)
            await self.session.commit()

        await self.cleanup(source, result, on_progress)
        self.report(on_progress, ImportPhase.COMPLETE, total, total)

    async def _find_episode(
        self, entry: DirectoryEntry, show_id: str, known_episode_id: str | None
    ) -> EpisodeModel:
        if known_episode_id:
            episode = await self.episode_repo.find(known_episode_id)
            if episode is not None:
                return episode

        parsed = parse_episode_filename(entry.name)
        if parsed is not None:
            episode = await self.episode_repo.find_by(
                tv_show_id=show_id,
                season_number=parsed.season_number,
                episode_number=parsed.episode_number,
            )
            if episode is not None:
                return episode
        raise NoMatchFoundException("Could not match to episode")

    async def _import_episode_file(
        self,
        entry: DirectoryEntry,
        show_id: str,
        show_title: str,
        show_year: int | None,
        root_path: str,
        known_episode_id: str | None,
        release_name: str | None,
    ) -> str:
        episode = await self._find_episode(entry, show_id, known_episode_id)
        info = best_video_info(entry.name, release_name)
        quality_name = classify(info).name

        relative_path = self.naming.episode_path(
            show_title,
            show_year,
            episode.season_number,
            episode.episode_number,
            episode.title,
            entry.path.suffix,
        )
        destination = await self.move_into_library(entry.path, root_path, relative_path)
        size_bytes = (await stat_with_timeout(destination, self.path_timeout)).st_size

        fields = {
            "tv_show_id": show_id,
            "relative_path": relative_path,
            "size_bytes": size_bytes,
            "quality": quality_name,
            "media_info": media_info_to_dict(info),
        }
        existing = await self.episode_file_repo.find_by(episode_id=episode.id)
        if existing:
            episode_file = await self.episode_file_repo.update(existing, **fields)
        else:
            episode_file = await self.episode_file_repo.create(episode_id=episode.id, **fields)

        await self.episode_repo.update(episode, has_file=True, episode_file_id=episode_file.id)
        logger.info("Imported %s -> %s", entry.name, relative_path)
        return relative_path
