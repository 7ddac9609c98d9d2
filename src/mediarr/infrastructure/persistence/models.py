"""SQLAlchemy ORM models for the media library."""

import uuid
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Datetimes come back naive even
# though we stored UTC. Use this before comparing with datetime.now(UTC).
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - there are deliberately NO relationship() attributes in this module!
# With AsyncSession a lazy load outside an awaited query raises MissingGreenlet, and the
# import/scan services only ever need "children of X" which is one explicit select(). Foreign
# keys still CASCADE at the database level (PRAGMA foreign_keys=ON, see database.py).
class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


# =============================================================================
# ROOT FOLDERS / DOWNLOADS
# =============================================================================


class RootFolderModel(TimestampMixin, Base):
    """A filesystem root dedicated to exactly one media type.

    scan_status is the PERSISTED half of the scan state machine
    (idle -> scanning -> completed | failed). The in-memory re-entrancy guard lives in
    ScanRegistry and is lost on restart - a root stuck in "scanning" after a crash is
    simply rescanned.
    """

    __tablename__ = "root_folders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    media_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    accessible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    scan_status: Mapped[str] = mapped_column(String(20), default="idle", nullable=False)
    last_scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    free_space_bytes: Mapped[int | None] = mapped_column(BigInteger)
    total_space_bytes: Mapped[int | None] = mapped_column(BigInteger)


class DownloadClientModel(TimestampMixin, Base):
    """A download client (SABnzbd, NZBGet, ...) and its remote path mapping.

    remote_path/local_path: the client reports "/downloads/complete/x" from inside its
    container, we see it as "/mnt/downloads/complete/x". Plain prefix replacement.
    """

    __tablename__ = "download_clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    remote_path: Mapped[str | None] = mapped_column(String(1024))
    local_path: Mapped[str | None] = mapped_column(String(1024))


class DownloadModel(TimestampMixin, Base):
    """One acquisition, linked to the library entity it was grabbed for."""

    __tablename__ = "downloads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    download_client_id: Mapped[str | None] = mapped_column(
        ForeignKey("download_clients.id", ondelete="SET NULL")
    )
    external_id: Mapped[str | None] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False, index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    size_bytes: Mapped[int | None] = mapped_column(BigInteger)
    output_path: Mapped[str | None] = mapped_column(String(1024))
    error_message: Mapped[str | None] = mapped_column(Text)
    album_id: Mapped[str | None] = mapped_column(ForeignKey("albums.id", ondelete="SET NULL"))
    movie_id: Mapped[str | None] = mapped_column(ForeignKey("movies.id", ondelete="SET NULL"))
    tv_show_id: Mapped[str | None] = mapped_column(
        ForeignKey("tv_shows.id", ondelete="SET NULL")
    )
    episode_id: Mapped[str | None] = mapped_column(
        ForeignKey("episodes.id", ondelete="SET NULL")
    )
    book_id: Mapped[str | None] = mapped_column(ForeignKey("books.id", ondelete="SET NULL"))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


# =============================================================================
# MUSIC
# =============================================================================


class ArtistModel(TimestampMixin, Base):
    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sort_name: Mapped[str | None] = mapped_column(String(255))
    musicbrainz_id: Mapped[str | None] = mapped_column(String(36), index=True)
    root_folder_id: Mapped[str | None] = mapped_column(
        ForeignKey("root_folders.id", ondelete="SET NULL"), index=True
    )
    monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


class AlbumModel(TimestampMixin, Base):
    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    artist_id: Mapped[str] = mapped_column(
        ForeignKey("artists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    musicbrainz_id: Mapped[str | None] = mapped_column(String(36))
    musicbrainz_release_group_id: Mapped[str | None] = mapped_column(String(36), index=True)
    album_type: Mapped[str] = mapped_column(String(20), default="album", nullable=False)
    release_date: Mapped[date | None] = mapped_column(Date)
    monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class TrackModel(TimestampMixin, Base):
    """A track slot of an album.

    track_file_id is a plain column (no FK) - track_files already points back here via
    track_id and a cycle of FKs makes SQLite inserts order-dependent.
    """

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    musicbrainz_id: Mapped[str | None] = mapped_column(String(36))
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    disc_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    track_number: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    has_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    track_file_id: Mapped[str | None] = mapped_column(String(36))


class TrackFileModel(TimestampMixin, Base):
    __tablename__ = "track_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    track_id: Mapped[str | None] = mapped_column(
        ForeignKey("tracks.id", ondelete="SET NULL"), index=True
    )
    album_id: Mapped[str] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    quality: Mapped[str | None] = mapped_column(String(50))
    media_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


# =============================================================================
# BOOKS
# =============================================================================


class AuthorModel(TimestampMixin, Base):
    __tablename__ = "authors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sort_name: Mapped[str | None] = mapped_column(String(255))
    openlibrary_id: Mapped[str | None] = mapped_column(String(50), index=True)
    root_folder_id: Mapped[str | None] = mapped_column(
        ForeignKey("root_folders.id", ondelete="SET NULL"), index=True
    )
    monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


class BookModel(TimestampMixin, Base):
    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    author_id: Mapped[str] = mapped_column(
        ForeignKey("authors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    openlibrary_id: Mapped[str | None] = mapped_column(String(50))
    isbn: Mapped[str | None] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    sort_title: Mapped[str | None] = mapped_column(String(512))
    release_date: Mapped[date | None] = mapped_column(Date)
    series_name: Mapped[str | None] = mapped_column(String(255))
    series_position: Mapped[int | None] = mapped_column(Integer)
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


class BookFileModel(TimestampMixin, Base):
    """The one file of a book (upserted on re-import, never accumulated)."""

    __tablename__ = "book_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    book_id: Mapped[str] = mapped_column(
        ForeignKey("books.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    format: Mapped[str | None] = mapped_column(String(10))
    quality: Mapped[str | None] = mapped_column(String(50))
    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


# =============================================================================
# MOVIES
# =============================================================================


class MovieModel(TimestampMixin, Base):
    __tablename__ = "movies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tmdb_id: Mapped[str | None] = mapped_column(String(20), index=True)
    imdb_id: Mapped[str | None] = mapped_column(String(20))
    title: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    original_title: Mapped[str | None] = mapped_column(String(512))
    sort_title: Mapped[str | None] = mapped_column(String(512))
    overview: Mapped[str | None] = mapped_column(Text)
    year: Mapped[int | None] = mapped_column(Integer)
    poster_url: Mapped[str | None] = mapped_column(String(512))
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    has_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    root_folder_id: Mapped[str | None] = mapped_column(
        ForeignKey("root_folders.id", ondelete="SET NULL"), index=True
    )
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


class MovieFileModel(TimestampMixin, Base):
    __tablename__ = "movie_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    movie_id: Mapped[str] = mapped_column(
        ForeignKey("movies.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    quality: Mapped[str | None] = mapped_column(String(50))
    media_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


# =============================================================================
# TV
# =============================================================================


class TvShowModel(TimestampMixin, Base):
    """A TV show. season_count/episode_count are RECOUNTED after scans, never incremented."""

    __tablename__ = "tv_shows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tmdb_id: Mapped[str | None] = mapped_column(String(20), index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    sort_title: Mapped[str | None] = mapped_column(String(512))
    overview: Mapped[str | None] = mapped_column(Text)
    year: Mapped[int | None] = mapped_column(Integer)
    poster_url: Mapped[str | None] = mapped_column(String(512))
    season_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    episode_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    root_folder_id: Mapped[str | None] = mapped_column(
        ForeignKey("root_folders.id", ondelete="SET NULL"), index=True
    )
    added_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


class SeasonModel(TimestampMixin, Base):
    __tablename__ = "seasons"
    __table_args__ = (UniqueConstraint("tv_show_id", "season_number"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tv_show_id: Mapped[str] = mapped_column(
        ForeignKey("tv_shows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255))
    episode_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wanted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class EpisodeModel(TimestampMixin, Base):
    __tablename__ = "episodes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tv_show_id: Mapped[str] = mapped_column(
        ForeignKey("tv_shows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_id: Mapped[str] = mapped_column(
        ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_number: Mapped[int] = mapped_column(Integer, nullable=False)
    episode_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(512))
    air_date: Mapped[date | None] = mapped_column(Date)
    wanted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    episode_file_id: Mapped[str | None] = mapped_column(String(36))


class EpisodeFileModel(TimestampMixin, Base):
    __tablename__ = "episode_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    episode_id: Mapped[str] = mapped_column(
        ForeignKey("episodes.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    tv_show_id: Mapped[str] = mapped_column(
        ForeignKey("tv_shows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    quality: Mapped[str | None] = mapped_column(String(50))
    media_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=utc_now)


# =============================================================================
# UNMATCHED
# =============================================================================


class UnmatchedFileModel(TimestampMixin, Base):
    """A file a scan found but couldn't attach to any entity (kept for manual review)."""

    __tablename__ = "unmatched_files"
    __table_args__ = (UniqueConstraint("root_folder_id", "relative_path"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    root_folder_id: Mapped[str] = mapped_column(
        ForeignKey("root_folders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    media_type: Mapped[str] = mapped_column(String(20), nullable=False)
    file_size_bytes: Mapped[int | None] = mapped_column(BigInteger)
    parsed_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
