"""Domain entities, enums and result types for the import/scan pipeline."""

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar


class MediaType(str, Enum):
    """Media type a root folder is dedicated to."""

    MUSIC = "music"
    MOVIES = "movies"
    TV = "tv"
    BOOKS = "books"


class ScanStatus(str, Enum):
    """Persisted scan state of a root folder: idle -> scanning -> completed | failed."""

    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportPhase(str, Enum):
    """Phases reported while importing a download."""

    SCANNING = "scanning"
    IMPORTING = "importing"
    CLEANING = "cleaning"
    COMPLETE = "complete"


class ScanPhase(str, Enum):
    """Phases reported while scanning a root folder."""

    DISCOVERING = "discovering"
    PARSING = "parsing"
    METADATA = "metadata"
    IMPORTING = "importing"
    COMPLETE = "complete"


# Hey future me - mediaInfo used to be a free-form dict. Now it's a tagged union:
# AudioMediaInfo for tracks, VideoMediaInfo for movies/episodes. The quality classifier
# dispatches on the type, so a typo'd key can't silently classify as "Unknown" anymore.
# Both are frozen - probe once, pass around, never mutate.
@dataclass(frozen=True)
class AudioMediaInfo:
    """Technical info and embedded tags of an audio file."""

    kind: ClassVar[str] = "audio"

    codec: str | None = None
    bitrate: int | None = None
    """Bits per second (320000, not 320)."""
    sample_rate: int | None = None
    channels: int | None = None
    bit_depth: int | None = None
    duration: float | None = None
    """Seconds."""
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    album_artist: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    year: int | None = None
    genre: str | None = None
    has_cover: bool = False


@dataclass(frozen=True)
class VideoMediaInfo:
    """Quality signals of a video file, usually parsed from its release name."""

    kind: ClassVar[str] = "video"

    resolution: str | None = None
    source: str | None = None
    codec: str | None = None
    audio_codec: str | None = None
    is_remux: bool = False
    duration: float | None = None
    width: int | None = None
    height: int | None = None


MediaInfo = AudioMediaInfo | VideoMediaInfo


def media_info_to_dict(info: MediaInfo | None) -> dict[str, Any] | None:
    """Serialize media info for the file record's JSON column (None values dropped)."""
    if info is None:
        return None
    data = {key: value for key, value in asdict(info).items() if value is not None}
    data["kind"] = info.kind
    return data


@dataclass
class ImportProgress:
    """Progress snapshot handed to an import's on_progress callback."""

    phase: ImportPhase
    total: int = 0
    current: int = 0
    current_file: str | None = None


ImportProgressCallback = Callable[[ImportProgress], None]


@dataclass
class ImportResult:
    """Outcome of importing one download or path.

    Partial success is a valid outcome: success is True when at least one file
    was imported, and errors still lists every file that failed.
    """

    success: bool = False
    download_id: str | None = None
    entity_id: str | None = None
    files_imported: int = 0
    files_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    imported_paths: list[str] = field(default_factory=list)


@dataclass
class ScanProgress:
    """Progress snapshot handed to a scan's on_progress callback."""

    phase: ScanPhase
    total: int = 0
    current: int = 0
    current_item: str | None = None


ScanProgressCallback = Callable[[ScanProgress], None]


@dataclass
class ScanResult:
    """Outcome of scanning one root folder."""

    root_folder_id: str
    media_type: MediaType | None = None
    success: bool = False
    files_found: int = 0
    entities_created: int = 0
    entities_updated: int = 0
    unmatched_files: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0


@dataclass
class RenamePreviewItem:
    """One file whose current path may differ from what the naming scheme produces."""

    file_id: str
    current_path: str
    new_path: str

    @property
    def will_change(self) -> bool:
        return self.current_path != self.new_path


@dataclass
class OrganizeResult:
    """Outcome of a rename/organize run."""

    moved: int = 0
    errors: list[str] = field(default_factory=list)


__all__ = [
    "AudioMediaInfo",
    "ImportPhase",
    "ImportProgress",
    "ImportProgressCallback",
    "ImportResult",
    "MediaInfo",
    "MediaType",
    "OrganizeResult",
    "RenamePreviewItem",
    "ScanPhase",
    "ScanProgress",
    "ScanProgressCallback",
    "ScanResult",
    "ScanStatus",
    "VideoMediaInfo",
    "media_info_to_dict",
]
