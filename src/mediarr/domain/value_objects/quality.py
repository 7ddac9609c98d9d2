"""Quality detection and classification for audio, video and book files.

Hey future me - this is TABLE-DRIVEN on purpose. Quality IDs are a closed enumeration
per media type (they match the quality profile items users configure), so:

    * a new source/resolution token must be added to the detection regex AND to
      VIDEO_QUALITY_TABLE / the inference rules together, and tested both ways
    * detection order is a compatibility contract. "Movie.1080p.720p.mkv" is 1080p
      because 1080p is checked first - don't reorder for "logical" priority, existing
      release names in the wild depend on this exact order.

Video IDs:  1 Bluray-2160p  2 Bluray-1080p  3 Bluray-720p
            4 WEB-2160p     5 WEB-1080p     6 WEB-720p
            7 HDTV-1080p    8 HDTV-720p     9 DVD
Music IDs:  1 FLAC  2 ALAC  3 WAV  4 MP3-320  5 MP3-V0  6 MP3-256  7 MP3-192
            8 AAC-256  9 OGG Vorbis
Book IDs:   1 EPUB  2 PDF  3 MOBI  4 AZW3  5 CBZ  6 CBR

CAM/TS releases never get an ID - they are "too low to rank", not "lowest rank".
"""

import re
from dataclasses import dataclass

from mediarr.domain.entities import AudioMediaInfo, MediaInfo, MediaType, VideoMediaInfo

UNKNOWN_QUALITY = "Unknown"

# Canonical source names used in the table
BLURAY = "BluRay"
WEB = "WEB"
HDTV = "HDTV"
DVD = "DVD"
CAM = "CAM"

# =============================================================================
# DETECTION PATTERNS (checked top to bottom, first match wins)
# =============================================================================

RESOLUTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"2160p|\b4k\b|\buhd\b", re.IGNORECASE), "2160p"),
    (re.compile(r"1080p", re.IGNORECASE), "1080p"),
    (re.compile(r"720p", re.IGNORECASE), "720p"),
    (re.compile(r"480p|\bsd\b", re.IGNORECASE), "480p"),
)

REMUX_PATTERN = re.compile(r"\bremux\b", re.IGNORECASE)

# "webm" is a container, not a WEB source - the \b guards handle "Movie.webm"
SOURCE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bblu[\s._-]?ray\b|\bbd[\s._-]?rip\b|\bbrrip\b", re.IGNORECASE), BLURAY),
    (re.compile(r"\bweb[\s._-]?dl\b|\bwebrip\b|\bweb\b", re.IGNORECASE), WEB),
    (re.compile(r"\bhdtv\b|\bpdtv\b", re.IGNORECASE), HDTV),
    (re.compile(r"\bdvd\b|\bdvdrip\b", re.IGNORECASE), DVD),
    (re.compile(r"\bcam\b|\bts\b|\btelesync\b|\bhd[\s._-]?cam\b", re.IGNORECASE), CAM),
)

VIDEO_CODEC_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bx264\b|\bh[\s._]?264\b|\bavc\b", re.IGNORECASE), "x264"),
    (re.compile(r"\bx265\b|\bh[\s._]?265\b|\bhevc\b", re.IGNORECASE), "x265"),
    (re.compile(r"\bav1\b", re.IGNORECASE), "AV1"),
    (re.compile(r"\bvp9\b", re.IGNORECASE), "VP9"),
    (re.compile(r"\bxvid\b|\bdivx\b", re.IGNORECASE), "XviD"),
)

VIDEO_AUDIO_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\batmos\b", re.IGNORECASE), "Atmos"),
    (re.compile(r"\btrue[\s._-]?hd\b", re.IGNORECASE), "TrueHD"),
    (re.compile(r"\bdts[\s._-]?hd[\s._-]?ma\b", re.IGNORECASE), "DTS-HD MA"),
    (re.compile(r"\bdts[\s._-]?hd\b", re.IGNORECASE), "DTS-HD"),
    (re.compile(r"\bdts\b", re.IGNORECASE), "DTS"),
    (re.compile(r"\bdd[\s._+]?5[\s._]?1\b|\bac[\s._-]?3\b|\bddp?\d", re.IGNORECASE), "DD5.1"),
    (re.compile(r"\bflac\b", re.IGNORECASE), "FLAC"),
    (re.compile(r"\baac\b", re.IGNORECASE), "AAC"),
)

# =============================================================================
# QUALITY TABLES
# =============================================================================

# (source, resolution) -> (id, name). DVD ignores resolution.
VIDEO_QUALITY_TABLE: dict[tuple[str, str | None], tuple[int, str]] = {
    (BLURAY, "2160p"): (1, "Bluray-2160p"),
    (BLURAY, "1080p"): (2, "Bluray-1080p"),
    (BLURAY, "720p"): (3, "Bluray-720p"),
    (WEB, "2160p"): (4, "WEB-2160p"),
    (WEB, "1080p"): (5, "WEB-1080p"),
    (WEB, "720p"): (6, "WEB-720p"),
    (HDTV, "1080p"): (7, "HDTV-1080p"),
    (HDTV, "720p"): (8, "HDTV-720p"),
    (DVD, None): (9, "DVD"),
}

# Inference when one half is missing:
#   resolution only -> 2160p/1080p assume WEB, anything lower assumes HDTV
#   source only     -> HDTV assumes 720p, BluRay/WEB assume 1080p
SOURCE_FOR_RESOLUTION: dict[str, str] = {
    "2160p": WEB,
    "1080p": WEB,
    "720p": HDTV,
    "480p": HDTV,
}
RESOLUTION_FOR_SOURCE: dict[str, str] = {
    BLURAY: "1080p",
    WEB: "1080p",
    HDTV: "720p",
}

MUSIC_QUALITY_TABLE: dict[str, int] = {
    "FLAC": 1,
    "ALAC": 2,
    "WAV": 3,
    "MP3-320": 4,
    "MP3-V0": 5,
    "MP3-256": 6,
    "MP3-192": 7,
    "AAC-256": 8,
    "OGG Vorbis": 9,
}

BOOK_QUALITY_TABLE: dict[str, int] = {
    "EPUB": 1,
    "PDF": 2,
    "MOBI": 3,
    "AZW3": 4,
    "CBZ": 5,
    "CBR": 6,
}

LOSSLESS_CODECS = ("flac", "alac", "wav", "ape", "wv", "wavpack", "pcm", "dsd")

# Lossy bitrate buckets (bits per second, descending)
AUDIO_BITRATE_BUCKETS: tuple[tuple[int, str], ...] = (
    (320_000, "320kbps"),
    (256_000, "256kbps"),
    (192_000, "192kbps"),
    (128_000, "128kbps"),
)


@dataclass(frozen=True)
class VideoQualitySignals:
    """Quality hints found in a video release/file name."""

    resolution: str | None = None
    source: str | None = None
    codec: str | None = None
    audio: str | None = None
    is_remux: bool = False


@dataclass(frozen=True)
class Quality:
    """Classification result.

    name is what gets stored on file records and used in file names. quality_id is the
    profile item ID, None when the quality can't be ranked (CAM, unknown).
    """

    name: str
    quality_id: int | None = None
    source: str | None = None
    resolution: str | None = None
    is_remux: bool = False

    def __str__(self) -> str:
        return self.name


def _first_match(
    patterns: tuple[tuple[re.Pattern[str], str], ...], text: str
) -> str | None:
    for pattern, value in patterns:
        if pattern.search(text):
            return value
    return None


def _normalize_release_text(text: str) -> str:
    # "Movie.Title.1080p.BluRay" -> word boundaries need separators, underscores aren't
    return text.replace("_", " ")


def parse_video_quality(name: str) -> VideoQualitySignals:
    """Extract resolution/source/codec/audio hints from a release or file name.

    Never raises; missing hints are None. REMUX implies a BluRay source.

    Example:
        >>> parse_video_quality("Movie.2020.1080p.BluRay.x264-GRP")
        VideoQualitySignals(resolution="1080p", source="BluRay", codec="x264", ...)
    """
    text = _normalize_release_text(name or "")
    is_remux = bool(REMUX_PATTERN.search(text))
    source = BLURAY if is_remux else _first_match(SOURCE_PATTERNS, text)
    return VideoQualitySignals(
        resolution=_first_match(RESOLUTION_PATTERNS, text),
        source=source,
        codec=_first_match(VIDEO_CODEC_PATTERNS, text),
        audio=_first_match(VIDEO_AUDIO_PATTERNS, text),
        is_remux=is_remux,
    )


def _normalize_source(source: str | None) -> tuple[str | None, bool]:
    """Map a free-form source token ("WEB-DL", "bdrip", "REMUX") to its canonical name."""
    if not source:
        return None, False
    text = _normalize_release_text(source)
    if REMUX_PATTERN.search(text):
        return BLURAY, True
    canonical = {name.lower(): name for name in (BLURAY, WEB, HDTV, DVD, CAM)}
    return canonical.get(source.lower()) or _first_match(SOURCE_PATTERNS, text), False


def _normalize_resolution(resolution: str | None) -> str | None:
    if not resolution:
        return None
    return _first_match(RESOLUTION_PATTERNS, resolution)


def video_quality(signals: VideoQualitySignals) -> Quality:
    """Pick the quality table entry for a set of video signals.

    Rules, in order:
      * DVD -> 9 regardless of resolution
      * CAM -> no ID
      * source + resolution -> exact table entry
      * resolution only -> infer source (WEB for 2160p/1080p, HDTV below)
      * source only -> infer resolution (720p for HDTV, 1080p otherwise)
    """
    source, remux_token = _normalize_source(signals.source)
    is_remux = signals.is_remux or remux_token
    resolution = _normalize_resolution(signals.resolution)

    if source == DVD:
        quality_id, name = VIDEO_QUALITY_TABLE[(DVD, None)]
        return Quality(name=name, quality_id=quality_id, source=DVD, resolution=resolution)

    if source == CAM:
        return Quality(name=CAM, quality_id=None, source=CAM, resolution=resolution)

    if source is None and resolution is not None:
        source = SOURCE_FOR_RESOLUTION.get(resolution)
    elif source is not None and resolution is None:
        resolution = RESOLUTION_FOR_SOURCE.get(source)

    entry = VIDEO_QUALITY_TABLE.get((source, resolution)) if source else None
    if entry is None:
        return Quality(
            name=UNKNOWN_QUALITY, source=source, resolution=resolution, is_remux=is_remux
        )

    quality_id, name = entry
    if is_remux:
        name = f"Remux-{resolution}"
    return Quality(
        name=name,
        quality_id=quality_id,
        source=source,
        resolution=resolution,
        is_remux=is_remux,
    )


def video_quality_id(signals: VideoQualitySignals) -> int | None:
    return video_quality(signals).quality_id


def video_quality_label(signals: VideoQualitySignals) -> str:
    """"Bluray-1080p", "Remux-2160p", "WEB-720p", "DVD", "CAM" or "Unknown"."""
    return video_quality(signals).name


def classify_audio(info: AudioMediaInfo) -> Quality:
    """Lossless codecs -> (Hi-Res) Lossless, lossy -> bitrate bucket.

    Hi-Res means bit depth > 16 OR sample rate > 48kHz.
    """
    codec = (info.codec or "").lower()

    if codec and any(lossless in codec for lossless in LOSSLESS_CODECS):
        hi_res = (info.bit_depth or 0) > 16 or (info.sample_rate or 0) > 48_000
        return Quality(
            name="Hi-Res Lossless" if hi_res else "Lossless",
            quality_id=_music_id_for_codec(codec),
        )

    if info.bitrate:
        for threshold, label in AUDIO_BITRATE_BUCKETS:
            if info.bitrate >= threshold:
                return Quality(name=label, quality_id=_music_id_for_lossy(codec, threshold))
        return Quality(name="Low Quality")

    return Quality(name=UNKNOWN_QUALITY)


def _music_id_for_codec(codec: str) -> int | None:
    if "flac" in codec:
        return MUSIC_QUALITY_TABLE["FLAC"]
    if "alac" in codec:
        return MUSIC_QUALITY_TABLE["ALAC"]
    if "wav" in codec or "pcm" in codec:
        return MUSIC_QUALITY_TABLE["WAV"]
    return None


def _music_id_for_lossy(codec: str, threshold: int) -> int | None:
    if "vorbis" in codec or "ogg" in codec:
        return MUSIC_QUALITY_TABLE["OGG Vorbis"]
    if "aac" in codec and threshold >= 256_000:
        return MUSIC_QUALITY_TABLE["AAC-256"]
    if "mp3" in codec:
        return MUSIC_QUALITY_TABLE.get(f"MP3-{threshold // 1000}")
    return None


def classify(info: MediaInfo) -> Quality:
    """Classify probed media info. Pure: same input, same answer."""
    if isinstance(info, AudioMediaInfo):
        return classify_audio(info)
    if isinstance(info, VideoMediaInfo):
        return video_quality(
            VideoQualitySignals(
                resolution=info.resolution,
                source=info.source,
                codec=info.codec,
                audio=info.audio_codec,
                is_remux=info.is_remux,
            )
        )
    return Quality(name=UNKNOWN_QUALITY)


# =============================================================================
# RELEASE-NAME PARSING FOR MUSIC AND BOOKS
# =============================================================================


@dataclass(frozen=True)
class ParsedQuality:
    """Quality of a release name for one media type."""

    media_type: MediaType
    quality_id: int | None
    quality_name: str | None


def parse_music_quality(name: str) -> tuple[str | None, str | None]:
    """Return (format, bitrate) hints from a music release name."""
    text = _normalize_release_text(name or "")
    lower = text.lower()
    fmt: str | None = None
    bitrate: str | None = None

    if re.search(r"\bflac\b|\blossless\b", text, re.IGNORECASE):
        fmt = "FLAC"
    elif re.search(r"\balac\b", text, re.IGNORECASE):
        fmt = "ALAC"
    elif re.search(r"\bwav\b", text, re.IGNORECASE) and "wave" not in lower:
        fmt = "WAV"
    elif re.search(r"\bogg\b|\bvorbis\b", text, re.IGNORECASE):
        fmt = "OGG"
    elif re.search(r"\baac\b", text, re.IGNORECASE):
        fmt = "AAC"
        if "256" in text:
            bitrate = "256"
    elif re.search(r"\bmp3\b|\b320\b|\bv0\b|\b256\b|\b192\b|\b128\b", text, re.IGNORECASE):
        fmt = "MP3"

    if fmt == "MP3":
        if re.search(r"\b320\b", text):
            bitrate = "320"
        elif re.search(r"\bv0\b|vbr[\s._-]?0", text, re.IGNORECASE):
            bitrate = "V0"
        elif re.search(r"\b256\b", text):
            bitrate = "256"
        elif re.search(r"\b192\b", text):
            bitrate = "192"

    return fmt, bitrate


def parse_quality(name: str, media_type: MediaType) -> ParsedQuality:
    """Determine the quality ID/name of a release title for a media type."""
    if media_type in (MediaType.MOVIES, MediaType.TV):
        quality = video_quality(parse_video_quality(name))
        return ParsedQuality(
            media_type, quality.quality_id, quality.name if quality.quality_id else None
        )

    if media_type == MediaType.MUSIC:
        fmt, bitrate = parse_music_quality(name)
        quality_name: str | None = None
        if fmt in ("FLAC", "ALAC", "WAV"):
            quality_name = fmt
        elif fmt == "OGG":
            quality_name = "OGG Vorbis"
        elif fmt == "AAC":
            quality_name = "AAC-256"
        elif fmt == "MP3":
            # MP3 without a recognizable bitrate is assumed 320
            candidate = f"MP3-{bitrate}" if bitrate else "MP3-320"
            quality_name = candidate if candidate in MUSIC_QUALITY_TABLE else "MP3-320"
        quality_id = MUSIC_QUALITY_TABLE.get(quality_name) if quality_name else None
        return ParsedQuality(media_type, quality_id, quality_name)

    match = re.search(r"\b(epub|mobi|azw3|cbz|cbr|pdf)\b", name or "", re.IGNORECASE)
    book_name = match.group(1).upper() if match else None
    return ParsedQuality(
        media_type, BOOK_QUALITY_TABLE.get(book_name) if book_name else None, book_name
    )


def _quality_key(name: str) -> str:
    key = re.sub(r"[\s_-]+", "", name).lower()
    # Remux is a flavour of Bluray, it shares the ID
    if key.startswith("remux"):
        key = "bluray" + key[len("remux"):]
    return key


def quality_name_to_id(media_type: MediaType, quality_name: str | None) -> int | None:
    """Map a stored quality name back to its ID ("bluray 1080p" == "Bluray-1080p")."""
    if not quality_name:
        return None
    key = _quality_key(quality_name)

    if media_type in (MediaType.MOVIES, MediaType.TV):
        names = {name: quality_id for quality_id, name in VIDEO_QUALITY_TABLE.values()}
    elif media_type == MediaType.MUSIC:
        names = MUSIC_QUALITY_TABLE
    else:
        names = BOOK_QUALITY_TABLE

    for name, quality_id in names.items():
        if _quality_key(name) == key:
            return quality_id
    return None
