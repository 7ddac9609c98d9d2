# Hey future me - EVERY filesystem touch of the import/scan pipeline goes through here!
# Download folders and libraries often live on NFS/SMB shares. A dead mount doesn't fail,
# it HANGS - os.stat() just never returns. So:
# 1. Accessibility probes run in a worker thread under asyncio.wait_for() and report
#    "not responding" (PathTimeoutException) separately from "not there"
#    (PathInaccessibleException). Users fix those two very differently!
# 2. The walker lists one directory level at a time through the IDirectoryLister port,
#    each listing bounded by the same timeout, and yields files lazily.
# 3. Moves try os.rename first and fall back to copy+delete, because download and library
#    volumes are usually different filesystems (EXDEV).
"""Filesystem helpers shared by importers and scanners."""

import asyncio
import errno
import logging
import os
import re
import shutil
import stat
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from mediarr.domain.exceptions import PathInaccessibleException, PathTimeoutException
from mediarr.domain.ports import DirectoryEntry, IDirectoryLister
from mediarr.domain.value_objects.naming import (
    file_extension,
    is_audio_file,
    is_book_file,
    is_video_file,
)

logger = logging.getLogger(__name__)

REMOTE_PATH_HINT = (
    "If the download client runs in Docker or on another machine, configure a "
    "Remote Path Mapping in the download client settings."
)

SAMPLE_FILE_PATTERN = re.compile(r"(?:^|[\W_])sample(?:$|[\W_])", re.IGNORECASE)

# Clutter that ships with releases. Deleted from the SOURCE after a successful import.
COMMON_JUNK_EXTENSIONS = frozenset({".nfo", ".sfv", ".txt", ".url", ".nzb"})
MUSIC_JUNK_EXTENSIONS = COMMON_JUNK_EXTENSIONS | {".m3u", ".m3u8", ".cue", ".log", ".accurip"}
VIDEO_JUNK_EXTENSIONS = COMMON_JUNK_EXTENSIONS | {".srt", ".sub", ".idx", ".m3u", ".cue", ".log"}
BOOK_JUNK_EXTENSIONS = COMMON_JUNK_EXTENSIONS
JUNK_FILE_NAMES = frozenset({"thumbs.db", ".ds_store", "desktop.ini"})


# =============================================================================
# SKIP POLICIES
# =============================================================================


@dataclass(frozen=True)
class SkipPolicy:
    """Which directories the walker descends into and which files it yields.

    Directory names are compared lowercased against skip_dirs. Tests hand in their
    own policy instead of monkeypatching lists.
    """

    accept_file: Callable[[str], bool]
    skip_dirs: frozenset[str] = frozenset()
    skip_hidden: bool = False
    skip_samples: bool = False

    def should_descend(self, dir_name: str) -> bool:
        if self.skip_hidden and dir_name.startswith("."):
            return False
        return dir_name.lower() not in self.skip_dirs

    def should_include(self, file_name: str) -> bool:
        if self.skip_hidden and file_name.startswith("."):
            return False
        if not self.accept_file(file_name):
            return False
        return not (self.skip_samples and is_sample_file(file_name))


def is_sample_file(file_name: str) -> bool:
    """"movie-sample.mkv" / "Sample.mkv" yes, "Sampler Vol 1.flac" no."""
    stem = file_name.rsplit(".", 1)[0] if "." in file_name else file_name
    return bool(SAMPLE_FILE_PATTERN.search(stem))


VIDEO_JUNK_DIRS = frozenset(
    {
        "sample",
        "samples",
        "proof",
        "sub",
        "subs",
        "subtitles",
        "extras",
        "featurettes",
        "behind the scenes",
        "deleted scenes",
    }
)
# NAS housekeeping folders (Synology, Windows, macOS)
SYSTEM_DIRS = frozenset({"@eadir", "#recycle", "$recycle.bin", "__macosx", "lost+found"})

# Imports: audio takes everything, videos skip junk folders and samples
MUSIC_IMPORT_POLICY = SkipPolicy(accept_file=is_audio_file)
VIDEO_IMPORT_POLICY = SkipPolicy(
    accept_file=is_video_file, skip_dirs=VIDEO_JUNK_DIRS, skip_samples=True
)
BOOK_IMPORT_POLICY = SkipPolicy(accept_file=is_book_file)

# Scans: same as imports plus hidden folders and NAS system folders
MUSIC_SCAN_POLICY = SkipPolicy(accept_file=is_audio_file, skip_dirs=SYSTEM_DIRS, skip_hidden=True)
VIDEO_SCAN_POLICY = SkipPolicy(
    accept_file=is_video_file,
    skip_dirs=VIDEO_JUNK_DIRS | SYSTEM_DIRS,
    skip_hidden=True,
    skip_samples=True,
)
BOOK_SCAN_POLICY = SkipPolicy(
    accept_file=is_book_file,
    skip_dirs=SYSTEM_DIRS | {"backup", "backups", "calibre", ".calibre"},
    skip_hidden=True,
)


# =============================================================================
# DIRECTORY LISTING
# =============================================================================


class OsDirectoryLister(IDirectoryLister):
    """IDirectoryLister over os.scandir (symlinks are followed)."""

    def list_dir(self, path: Path) -> list[DirectoryEntry]:
        entries: list[DirectoryEntry] = []
        with os.scandir(path) as iterator:
            for entry in iterator:
                try:
                    is_dir = entry.is_dir()
                    size = 0 if is_dir else entry.stat().st_size
                except OSError as e:
                    # Broken symlink or file vanished mid-listing
                    logger.debug("Skipping unreadable entry %s: %s", entry.path, e)
                    continue
                entries.append(
                    DirectoryEntry(name=entry.name, path=Path(entry.path), is_dir=is_dir, size=size)
                )
        return entries


@dataclass
class WalkStats:
    """Counters a walk leaves behind (unreadable subdirectories are skipped, not fatal)."""

    directories: int = 0
    unreadable: list[str] = field(default_factory=list)


async def list_dir_with_timeout(
    lister: IDirectoryLister, path: Path, timeout: float
) -> list[DirectoryEntry]:
    """One directory level, bounded by timeout.

    Raises:
        PathTimeoutException: Listing didn't finish in time
        OSError: Listing failed
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(lister.list_dir, path), timeout)
    except TimeoutError:
        raise PathTimeoutException(str(path), timeout) from None


async def walk_files(
    root: Path,
    policy: SkipPolicy,
    lister: IDirectoryLister | None = None,
    timeout: float = 5.0,
    stats: WalkStats | None = None,
) -> AsyncIterator[DirectoryEntry]:
    """Lazily yield every file under root that the policy accepts.

    Iterative depth-first walk, children sorted by name. Subdirectories that time out or
    can't be read are logged and skipped - the caller probes the ROOT beforehand, so a
    failure down here is one bad folder, not a dead mount.
    """
    lister = lister or OsDirectoryLister()
    stats = stats if stats is not None else WalkStats()
    pending = [root]

    while pending:
        directory = pending.pop()
        try:
            entries = await list_dir_with_timeout(lister, directory, timeout)
        except (OSError, PathTimeoutException) as e:
            logger.warning("Skipping unreadable directory %s: %s", directory, e)
            stats.unreadable.append(str(directory))
            continue
        stats.directories += 1

        subdirs: list[Path] = []
        for entry in sorted(entries, key=lambda item: item.name.lower()):
            if entry.is_dir:
                if policy.should_descend(entry.name):
                    subdirs.append(entry.path)
            elif policy.should_include(entry.name):
                yield entry
        # Reversed so the alphabetically first folder is popped first
        pending.extend(reversed(subdirs))


async def collect_files(
    path: Path,
    policy: SkipPolicy,
    lister: IDirectoryLister | None = None,
    timeout: float = 5.0,
) -> list[DirectoryEntry]:
    """All accepted files under path. A path pointing at a single file yields just that file."""
    stat_result = await stat_with_timeout(path, timeout)
    if not stat.S_ISDIR(stat_result.st_mode):
        if policy.should_include(path.name):
            size = stat_result.st_size
            return [DirectoryEntry(name=path.name, path=path, is_dir=False, size=size)]
        return []
    return [entry async for entry in walk_files(path, policy, lister, timeout)]


# =============================================================================
# ACCESSIBILITY PROBES
# =============================================================================


def _probe(path: Path) -> os.stat_result:
    stat_result = os.stat(path)
    if not os.access(path, os.R_OK):
        raise PermissionError(errno.EACCES, "Permission denied", str(path))
    return stat_result


async def access_with_timeout(
    path: Path, timeout: float, hint: str | None = None
) -> os.stat_result:
    """Check that path exists and is readable, within timeout seconds.

    Raises:
        PathTimeoutException: No answer in time (hung/unmounted network storage)
        PathInaccessibleException: Missing or permission denied
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(_probe, path), timeout)
    except TimeoutError:
        logger.warning("Path probe timed out after %ss: %s", timeout, path)
        raise PathTimeoutException(str(path), timeout) from None
    except OSError as e:
        logger.debug("Path probe failed for %s: %s", path, e)
        raise PathInaccessibleException(str(path), hint) from e


async def stat_with_timeout(path: Path, timeout: float) -> os.stat_result:
    """os.stat bounded by timeout (raises the same exceptions as access_with_timeout)."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(os.stat, path), timeout)
    except TimeoutError:
        raise PathTimeoutException(str(path), timeout) from None
    except OSError as e:
        raise PathInaccessibleException(str(path)) from e


# =============================================================================
# REMOTE PATH MAPPING
# =============================================================================


def apply_remote_path_mapping(
    path: str, mappings: Iterable[tuple[str | None, str | None]]
) -> str:
    """Swap the first matching remote prefix for its local prefix.

    Matches on path-segment boundaries: "/downloads" maps "/downloads/x" but not
    "/downloads-old/x". Mappings are tried in the given order.

    Example:
        >>> apply_remote_path_mapping("/downloads/Album", [("/downloads", "/mnt/dl")])
        '/mnt/dl/Album'
    """
    for remote, local in mappings:
        if not remote or not local:
            continue
        remote_prefix = remote.rstrip("/\\") or remote
        if path == remote_prefix:
            return local
        for separator in ("/", "\\"):
            if path.startswith(remote_prefix + separator):
                return local.rstrip("/\\") + "/" + path[len(remote_prefix) + 1 :].replace("\\", "/")
    return path


# =============================================================================
# MOVES AND CLEANUP (sync - callers run these via asyncio.to_thread)
# =============================================================================


def move_file(source: Path, destination: Path) -> None:
    """Move source to destination, creating parent directories.

    rename() is atomic on one filesystem. Across filesystems it fails with EXDEV (and some
    network shares refuse it with other errnos), so any rename failure except a missing
    source falls back to copy2 + unlink. A half-written copy is removed before re-raising.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.rename(source, destination)
        return
    except FileNotFoundError:
        raise
    except OSError as e:
        if e.errno != errno.EXDEV:
            logger.debug("rename failed for %s (%s), falling back to copy", source, e)

    try:
        shutil.copy2(source, destination)
    except OSError:
        destination.unlink(missing_ok=True)
        raise
    source.unlink()


def copy_file(source: Path, destination: Path) -> None:
    """Copy source to destination (metadata included), leaving the source in place."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        shutil.copy2(source, destination)
    except OSError:
        destination.unlink(missing_ok=True)
        raise


def is_junk_file(file_name: str, junk_extensions: frozenset[str]) -> bool:
    return file_name.lower() in JUNK_FILE_NAMES or file_extension(file_name) in junk_extensions


def cleanup_junk(directory: Path, junk_extensions: frozenset[str]) -> int:
    """Recursively delete junk files under directory. Returns number deleted."""
    deleted = 0
    for dirpath, _dirnames, filenames in os.walk(directory):
        for file_name in filenames:
            if not is_junk_file(file_name, junk_extensions):
                continue
            try:
                Path(dirpath, file_name).unlink()
                deleted += 1
            except OSError as e:
                logger.warning("Could not delete %s: %s", file_name, e)
    return deleted


def remove_empty_dirs(directory: Path, include_root: bool = True) -> int:
    """Remove empty directories bottom-up (and directory itself if it ends up empty)."""
    removed = 0
    for dirpath, _dirnames, _filenames in os.walk(directory, topdown=False):
        current = Path(dirpath)
        if current == directory and not include_root:
            continue
        try:
            current.rmdir()
            removed += 1
        except OSError:
            # Not empty - that's the common case
            continue
    return removed


def remove_empty_parents(start: Path, stop_at: Path) -> int:
    """Walk up from start removing empty directories, never touching stop_at or above."""
    removed = 0
    current = start
    try:
        current.relative_to(stop_at)
    except ValueError:
        return 0
    while current != stop_at and stop_at in current.parents:
        try:
            current.rmdir()
        except OSError:
            break
        removed += 1
        current = current.parent
    return removed


def cleanup_source(path: Path, junk_extensions: frozenset[str]) -> None:
    """Delete junk and empty folders left in a download directory (files are left alone)."""
    if not path.is_dir():
        return
    junk = cleanup_junk(path, junk_extensions)
    removed = remove_empty_dirs(path, include_root=True)
    logger.debug("Source cleanup of %s: %d junk files, %d folders removed", path, junk, removed)
