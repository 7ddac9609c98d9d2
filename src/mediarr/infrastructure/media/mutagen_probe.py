"""Audio tag probe backed by mutagen."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]

from mediarr.domain.entities import AudioMediaInfo
from mediarr.domain.ports import IMediaProbe

logger = logging.getLogger(__name__)

# mutagen FileType class name -> codec. MP4 is refined from info.codec (ALAC vs AAC).
CODEC_BY_FILE_TYPE: dict[str, str] = {
    "FLAC": "flac",
    "OggFLAC": "flac",
    "MP3": "mp3",
    "EasyMP3": "mp3",
    "MP4": "aac",
    "EasyMP4": "aac",
    "OggVorbis": "vorbis",
    "OggOpus": "opus",
    "WAVE": "wav",
    "AIFF": "pcm",
    "MonkeysAudio": "ape",
    "WavPack": "wavpack",
    "ASF": "wma",
    "DSF": "dsd",
    "DSDIFF": "dsd",
}

# When mutagen can open the file but we don't know its class (or it returns None)
CODEC_BY_EXTENSION: dict[str, str] = {
    ".flac": "flac",
    ".mp3": "mp3",
    ".m4a": "aac",
    ".aac": "aac",
    ".ogg": "vorbis",
    ".opus": "opus",
    ".wav": "wav",
    ".wma": "wma",
    ".alac": "alac",
    ".ape": "ape",
    ".wv": "wavpack",
    ".dsf": "dsd",
    ".dff": "dsd",
}

# Hey future me - TPE2 (Album Artist) matters for compilations, where TPE1 differs per
# track. ID3 (MP3), Vorbis comments (FLAC/OGG) and MP4 atoms all spell things differently,
# so one flat mapping covers them all. First key present wins for each field.
TAG_MAPPINGS: dict[str, tuple[str, ...]] = {
    "title": ("TIT2", "title", "©nam"),
    "artist": ("TPE1", "artist", "©ART"),
    "album_artist": ("TPE2", "albumartist", "album artist", "aART"),
    "album": ("TALB", "album", "©alb"),
    "track_number": ("TRCK", "tracknumber", "trkn"),
    "disc_number": ("TPOS", "discnumber", "disk"),
    "year": ("TDRC", "TYER", "date", "©day"),
    "genre": ("TCON", "genre", "©gen"),
}
COVER_TAG_PREFIXES = ("APIC", "covr", "metadata_block_picture")


class MutagenMediaProbe(IMediaProbe):
    """Reads technical info and common tags with mutagen.

    mutagen does blocking file IO, so every probe runs in a worker thread.
    """

    async def read_tags(self, file_path: Path) -> AudioMediaInfo | None:
        return await asyncio.to_thread(self.read_tags_sync, file_path)

    def read_tags_sync(self, file_path: Path) -> AudioMediaInfo | None:
        """Probe synchronously. None when the file can't be read at all."""
        try:
            audio = MutagenFile(file_path)
        except Exception as e:
            # mutagen raises a zoo of format-specific errors for corrupt files
            logger.warning("Could not read media info from %s: %s", file_path.name, e)
            return None
        if audio is None:
            logger.debug("mutagen does not recognize %s", file_path.name)
            return None

        info = audio.info
        tags = _extract_tags(audio.tags) if audio.tags else {}

        return AudioMediaInfo(
            codec=_codec(audio, file_path),
            bitrate=getattr(info, "bitrate", None) or None,
            sample_rate=getattr(info, "sample_rate", None) or None,
            channels=getattr(info, "channels", None) or None,
            bit_depth=getattr(info, "bits_per_sample", None) or None,
            duration=getattr(info, "length", None) or None,
            title=tags.get("title"),
            artist=tags.get("artist"),
            album=tags.get("album"),
            album_artist=tags.get("album_artist"),
            track_number=tags.get("track_number"),
            disc_number=tags.get("disc_number"),
            year=tags.get("year"),
            genre=tags.get("genre"),
            has_cover=_has_cover(audio),
        )


def _codec(audio: Any, file_path: Path) -> str | None:
    codec = CODEC_BY_FILE_TYPE.get(type(audio).__name__)
    mp4_codec = getattr(audio.info, "codec", None)
    if isinstance(mp4_codec, str) and mp4_codec.lower().startswith("alac"):
        return "alac"
    return codec or CODEC_BY_EXTENSION.get(file_path.suffix.lower())


def _first_value(value: Any) -> Any:
    if isinstance(value, list):
        value = value[0] if value else None
    if hasattr(value, "text"):
        text = value.text
        value = text[0] if isinstance(text, list) and text else text
    return value


def _to_number(value: Any) -> int | None:
    # "3/12" (ID3/Vorbis) or (3, 12) (MP4)
    if isinstance(value, tuple):
        value = value[0] if value else None
    if isinstance(value, str):
        value = value.split("/")[0].strip()
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _extract_tags(audio_tags: Any) -> dict[str, Any]:
    tags: dict[str, Any] = {}
    for field_name, keys in TAG_MAPPINGS.items():
        for key in keys:
            try:
                if key not in audio_tags:
                    continue
                raw = audio_tags[key]
            except (KeyError, ValueError, TypeError):
                # ID3 raises ValueError for keys that aren't frame IDs
                continue
            value = _first_value(raw)
            if field_name in ("track_number", "disc_number"):
                value = _to_number(value)
            elif field_name == "year":
                value = _to_number(str(value)[:4]) if value else None
            elif value is not None:
                value = str(value).strip() or None
            if value is not None:
                tags[field_name] = value
                break
    return tags


def _has_cover(audio: Any) -> bool:
    if getattr(audio, "pictures", None):
        return True
    if not audio.tags:
        return False
    try:
        keys = list(audio.tags.keys())
    except (AttributeError, TypeError):
        return False
    return any(str(key).startswith(COVER_TAG_PREFIXES) for key in keys)
