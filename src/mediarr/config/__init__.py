"""Configuration package."""

from mediarr.config.settings import (
    DatabaseSettings,
    ImportSettings,
    MusicBrainzSettings,
    NamingSettings,
    OpenLibrarySettings,
    RemotePathMapping,
    Settings,
    TmdbSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "ImportSettings",
    "MusicBrainzSettings",
    "NamingSettings",
    "OpenLibrarySettings",
    "RemotePathMapping",
    "Settings",
    "TmdbSettings",
    "get_settings",
]
