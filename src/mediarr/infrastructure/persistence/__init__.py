"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    AlbumModel,
    ArtistModel,
    AuthorModel,
    Base,
    BookFileModel,
    BookModel,
    DownloadClientModel,
    DownloadModel,
    EpisodeFileModel,
    EpisodeModel,
    MovieFileModel,
    MovieModel,
    RootFolderModel,
    SeasonModel,
    TrackFileModel,
    TrackModel,
    TvShowModel,
    UnmatchedFileModel,
)

__all__ = [
    "AlbumModel",
    "ArtistModel",
    "AuthorModel",
    "Base",
    "BookFileModel",
    "BookModel",
    "Database",
    "DownloadClientModel",
    "DownloadModel",
    "EpisodeFileModel",
    "EpisodeModel",
    "MovieFileModel",
    "MovieModel",
    "RootFolderModel",
    "SeasonModel",
    "TrackFileModel",
    "TrackModel",
    "TvShowModel",
    "UnmatchedFileModel",
]
