"""Application settings loaded from environment / .env.

Hey future me - nested groups are addressed with a double underscore:

    MEDIARR_DATABASE__URL=sqlite+aiosqlite:///./mediarr.db
    MEDIARR_IMPORTS__PATH_TIMEOUT_SECONDS=5
    MEDIARR_NAMING__ALBUM_FOLDER="{album_title} ({year})"
    MEDIARR_TMDB__API_KEY=...

Remote path mappings are a JSON list because they're structured:

    MEDIARR_IMPORTS__REMOTE_PATH_MAPPINGS='[{"remote_path": "/downloads", "local_path": "/mnt/dl"}]'

Per-download-client mappings live on the download_clients table and win over these.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediarr import __version__
from mediarr.domain.value_objects.naming_templates import DEFAULT_PATTERNS, NamingPatterns


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///./mediarr.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_pre_ping: bool = True


class RemotePathMapping(BaseModel):
    """Download client path prefix -> local path prefix."""

    remote_path: str
    local_path: str


class ImportSettings(BaseModel):
    """Import and scan behaviour."""

    path_timeout_seconds: float = Field(default=3.0, gt=0)
    """Bound for accessibility probes - long enough for a spun-down disk, short
    enough that a dead NFS mount is reported instead of hanging the import."""

    listing_timeout_seconds: float = Field(default=5.0, gt=0)
    remote_path_mappings: list[RemotePathMapping] = Field(default_factory=list)
    fuzzy_title_threshold: int = Field(default=90, ge=0, le=100)
    """rapidfuzz ratio (0-100) a title must reach to count as a match."""

    delete_source_junk: bool = True


class NamingSettings(BaseModel):
    """User naming patterns; defaults reproduce the built-in layout."""

    artist_folder: str = DEFAULT_PATTERNS.artist_folder
    album_folder: str = DEFAULT_PATTERNS.album_folder
    track_file: str = DEFAULT_PATTERNS.track_file
    movie_folder: str = DEFAULT_PATTERNS.movie_folder
    movie_file: str = DEFAULT_PATTERNS.movie_file
    series_folder: str = DEFAULT_PATTERNS.series_folder
    season_folder: str = DEFAULT_PATTERNS.season_folder
    episode_file: str = DEFAULT_PATTERNS.episode_file
    author_folder: str = DEFAULT_PATTERNS.author_folder
    book_file: str = DEFAULT_PATTERNS.book_file

    def to_patterns(self) -> NamingPatterns:
        return NamingPatterns(**self.model_dump())


class MusicBrainzSettings(BaseModel):
    """MusicBrainz API settings (no key, but a descriptive User-Agent is mandatory)."""

    base_url: str = "https://musicbrainz.org/ws/2"
    app_name: str = "Mediarr"
    app_version: str = __version__
    contact: str = "mediarr@example.com"
    timeout: float = 10.0
    rate_limit_delay: float = 1.0


class TmdbSettings(BaseModel):
    """TMDB API settings."""

    api_key: str | None = None
    base_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"
    timeout: float = 10.0


class OpenLibrarySettings(BaseModel):
    """Open Library API settings."""

    base_url: str = "https://openlibrary.org"
    timeout: float = 10.0


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="MEDIARR_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "mediarr"
    log_level: str = "INFO"
    log_json: bool = False

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    imports: ImportSettings = Field(default_factory=ImportSettings)
    naming: NamingSettings = Field(default_factory=NamingSettings)
    musicbrainz: MusicBrainzSettings = Field(default_factory=MusicBrainzSettings)
    tmdb: TmdbSettings = Field(default_factory=TmdbSettings)
    openlibrary: OpenLibrarySettings = Field(default_factory=OpenLibrarySettings)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings (cached; tests build Settings() directly)."""
    return Settings()
