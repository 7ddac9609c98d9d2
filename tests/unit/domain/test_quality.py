"""Unit tests for quality detection and classification."""

import pytest

from mediarr.domain.entities import AudioMediaInfo, MediaType, VideoMediaInfo
from mediarr.domain.value_objects.quality import (
    BLURAY,
    WEB,
    ParsedQuality,
    VideoQualitySignals,
    _normalize_source,
    classify,
    classify_audio,
    parse_music_quality,
    parse_quality,
    parse_video_quality,
    quality_name_to_id,
    video_quality,
)


class TestParseVideoQuality:
    """Tests for parse_video_quality()."""

    def test_full_release_name(self) -> None:
        """Test a typical scene release name."""
        signals = parse_video_quality("Movie.2020.1080p.BluRay.x264.DTS-GRP")
        assert signals.resolution == "1080p"
        assert signals.source == "BluRay"
        assert signals.codec == "x264"
        assert signals.audio == "DTS"
        assert signals.is_remux is False

    def test_remux_implies_bluray(self) -> None:
        """Test that REMUX sets the BluRay source even without a BluRay token."""
        signals = parse_video_quality("Movie.2020.2160p.REMUX.HEVC")
        assert signals.is_remux is True
        assert signals.source == BLURAY
        assert signals.codec == "x265"

    def test_webm_is_not_web_source(self) -> None:
        """Test that the webm container isn't mistaken for a WEB release."""
        assert parse_video_quality("Movie.webm").source is None

    def test_first_resolution_wins(self) -> None:
        """Test the detection order contract."""
        assert parse_video_quality("Movie.1080p.720p.mkv").resolution == "1080p"

    def test_web_dl(self) -> None:
        """Test WEB-DL detection."""
        assert parse_video_quality("Show.S01E01.1080p.WEB-DL.DDP5.1").source == WEB

    def test_empty_name(self) -> None:
        """Test that empty input gives empty signals."""
        assert parse_video_quality("") == VideoQualitySignals()


class TestVideoQuality:
    """Tests for video_quality()."""

    @pytest.mark.parametrize(
        ("source", "resolution", "quality_id", "name"),
        [
            ("BluRay", "2160p", 1, "Bluray-2160p"),
            ("BluRay", "1080p", 2, "Bluray-1080p"),
            ("BluRay", "720p", 3, "Bluray-720p"),
            ("WEB", "2160p", 4, "WEB-2160p"),
            ("WEB", "1080p", 5, "WEB-1080p"),
            ("WEB", "720p", 6, "WEB-720p"),
            ("HDTV", "1080p", 7, "HDTV-1080p"),
            ("HDTV", "720p", 8, "HDTV-720p"),
        ],
    )
    def test_table(self, source: str, resolution: str, quality_id: int, name: str) -> None:
        """Test every (source, resolution) entry of the table."""
        quality = video_quality(VideoQualitySignals(resolution=resolution, source=source))
        assert quality.quality_id == quality_id
        assert quality.name == name

    def test_dvd_ignores_resolution(self) -> None:
        """Test that DVD is always ID 9."""
        quality = video_quality(VideoQualitySignals(resolution="1080p", source="DVD"))
        assert quality.quality_id == 9
        assert quality.name == "DVD"

    def test_cam_has_no_id(self) -> None:
        """Test that CAM is recognised but not ranked."""
        quality = video_quality(VideoQualitySignals(resolution="1080p", source="CAM"))
        assert quality.name == "CAM"
        assert quality.quality_id is None

    def test_resolution_only_infers_source(self) -> None:
        """Test WEB for 1080p and HDTV for 720p."""
        assert video_quality(VideoQualitySignals(resolution="1080p")).quality_id == 5
        assert video_quality(VideoQualitySignals(resolution="2160p")).quality_id == 4
        assert video_quality(VideoQualitySignals(resolution="720p")).quality_id == 8

    def test_source_only_infers_resolution(self) -> None:
        """Test 720p for HDTV and 1080p for BluRay/WEB."""
        assert video_quality(VideoQualitySignals(source="HDTV")).quality_id == 8
        assert video_quality(VideoQualitySignals(source="BluRay")).quality_id == 2
        assert video_quality(VideoQualitySignals(source="WEB")).quality_id == 5

    def test_remux_name_keeps_bluray_id(self) -> None:
        """Test that remuxes are named separately but rank like BluRay."""
        quality = video_quality(
            VideoQualitySignals(resolution="2160p", source="BluRay", is_remux=True)
        )
        assert quality.name == "Remux-2160p"
        assert quality.quality_id == 1

    def test_impossible_combination_is_unknown(self) -> None:
        """Test that HDTV-2160p has no table entry."""
        quality = video_quality(VideoQualitySignals(resolution="2160p", source="HDTV"))
        assert quality.name == "Unknown"
        assert quality.quality_id is None

    def test_no_signals_is_unknown(self) -> None:
        """Test the empty case."""
        assert video_quality(VideoQualitySignals()).name == "Unknown"

    def test_free_form_source_tokens(self) -> None:
        """Test that stored source strings are normalized."""
        assert _normalize_source("WEB-DL") == (WEB, False)
        assert _normalize_source("REMUX") == (BLURAY, True)
        assert _normalize_source("bluray") == (BLURAY, False)
        assert _normalize_source(None) == (None, False)

    def test_4k_resolution_token(self) -> None:
        """Test that "4K" normalizes to 2160p."""
        quality = video_quality(VideoQualitySignals(resolution="4K", source="WEB"))
        assert quality.quality_id == 4


class TestClassifyAudio:
    """Tests for classify_audio()."""

    def test_hi_res_by_bit_depth(self) -> None:
        """Test that 24-bit FLAC is Hi-Res."""
        quality = classify_audio(AudioMediaInfo(codec="flac", bit_depth=24, sample_rate=44_100))
        assert quality.name == "Hi-Res Lossless"
        assert quality.quality_id == 1

    def test_hi_res_by_sample_rate(self) -> None:
        """Test that 96kHz counts as Hi-Res even at 16 bits."""
        quality = classify_audio(AudioMediaInfo(codec="flac", bit_depth=16, sample_rate=96_000))
        assert quality.name == "Hi-Res Lossless"

    def test_cd_quality_lossless(self) -> None:
        """Test plain lossless."""
        quality = classify_audio(AudioMediaInfo(codec="alac", bit_depth=16, sample_rate=44_100))
        assert quality.name == "Lossless"
        assert quality.quality_id == 2

    def test_wav_id(self) -> None:
        """Test the WAV ID."""
        assert classify_audio(AudioMediaInfo(codec="wav")).quality_id == 3

    @pytest.mark.parametrize(
        ("bitrate", "name", "quality_id"),
        [
            (320_000, "320kbps", 4),
            (256_000, "256kbps", 6),
            (192_000, "192kbps", 7),
            (128_000, "128kbps", None),
        ],
    )
    def test_mp3_buckets(self, bitrate: int, name: str, quality_id: int | None) -> None:
        """Test the lossy bitrate buckets for MP3."""
        quality = classify_audio(AudioMediaInfo(codec="mp3", bitrate=bitrate))
        assert quality.name == name
        assert quality.quality_id == quality_id

    def test_bucket_uses_lower_bound(self) -> None:
        """Test that 300kbps lands in the 256 bucket."""
        assert classify_audio(AudioMediaInfo(codec="mp3", bitrate=300_000)).name == "256kbps"

    def test_aac_and_vorbis_ids(self) -> None:
        """Test AAC-256 and OGG Vorbis IDs."""
        assert classify_audio(AudioMediaInfo(codec="aac", bitrate=256_000)).quality_id == 8
        assert classify_audio(AudioMediaInfo(codec="aac", bitrate=192_000)).quality_id is None
        assert classify_audio(AudioMediaInfo(codec="vorbis", bitrate=192_000)).quality_id == 9

    def test_low_quality(self) -> None:
        """Test that anything under 128kbps is Low Quality."""
        assert classify_audio(AudioMediaInfo(codec="mp3", bitrate=96_000)).name == "Low Quality"

    def test_nothing_known(self) -> None:
        """Test that no codec and no bitrate is Unknown."""
        assert classify_audio(AudioMediaInfo()).name == "Unknown"


class TestClassify:
    """Tests for classify() dispatching on the media info type."""

    def test_video_info(self) -> None:
        """Test that video info goes through the video table."""
        quality = classify(VideoMediaInfo(resolution="1080p", source="WEB-DL"))
        assert quality.name == "WEB-1080p"
        assert quality.quality_id == 5

    def test_audio_info(self) -> None:
        """Test that audio info goes through the audio rules."""
        assert classify(AudioMediaInfo(codec="flac")).name == "Lossless"

    def test_pure(self) -> None:
        """Test that the same input gives the same answer."""
        info = VideoMediaInfo(resolution="720p", source="BluRay")
        assert classify(info) == classify(info)


class TestParseQuality:
    """Tests for parse_quality() on release names."""

    def test_video_release(self) -> None:
        """Test a movie release name."""
        assert parse_quality("Movie.2020.1080p.BluRay.x264", MediaType.MOVIES) == (
            ParsedQuality(MediaType.MOVIES, 2, "Bluray-1080p")
        )

    def test_cam_release_has_no_name(self) -> None:
        """Test that unranked video qualities report no name."""
        assert parse_quality("Movie.2020.CAM", MediaType.MOVIES) == ParsedQuality(
            MediaType.MOVIES, None, None
        )

    @pytest.mark.parametrize(
        ("name", "quality_name", "quality_id"),
        [
            ("Artist - Album (2020) [FLAC]", "FLAC", 1),
            ("Artist - Album [MP3 V0]", "MP3-V0", 5),
            ("Artist - Album [MP3]", "MP3-320", 4),
            ("Artist - Album 192", "MP3-192", 7),
            ("Artist - Album [AAC]", "AAC-256", 8),
            ("Artist - Album [OGG]", "OGG Vorbis", 9),
            ("Artist - Album", None, None),
        ],
    )
    def test_music_release(
        self, name: str, quality_name: str | None, quality_id: int | None
    ) -> None:
        """Test music release names."""
        parsed = parse_quality(name, MediaType.MUSIC)
        assert parsed.quality_name == quality_name
        assert parsed.quality_id == quality_id

    def test_music_format_hints(self) -> None:
        """Test the raw (format, bitrate) hints."""
        assert parse_music_quality("Album [MP3 320]") == ("MP3", "320")
        assert parse_music_quality("Album (Lossless)") == ("FLAC", None)
        assert parse_music_quality("Album") == (None, None)

    def test_book_release(self) -> None:
        """Test book formats."""
        assert parse_quality("Stephen King - It (epub)", MediaType.BOOKS).quality_id == 1
        assert parse_quality("It.azw3", MediaType.BOOKS).quality_name == "AZW3"
        assert parse_quality("It.txt", MediaType.BOOKS) == ParsedQuality(
            MediaType.BOOKS, None, None
        )


class TestQualityNameToId:
    """Tests for quality_name_to_id()."""

    def test_loose_video_names(self) -> None:
        """Test that case and separators don't matter."""
        assert quality_name_to_id(MediaType.MOVIES, "bluray 1080p") == 2
        assert quality_name_to_id(MediaType.TV, "WEB_720p") == 6
        assert quality_name_to_id(MediaType.MOVIES, "DVD") == 9

    def test_remux_shares_bluray_id(self) -> None:
        """Test that remux names map to the BluRay ID."""
        assert quality_name_to_id(MediaType.MOVIES, "Remux-1080p") == 2

    def test_music_and_books(self) -> None:
        """Test the music and book tables."""
        assert quality_name_to_id(MediaType.MUSIC, "mp3-320") == 4
        assert quality_name_to_id(MediaType.BOOKS, "epub") == 1

    def test_unknown_or_empty(self) -> None:
        """Test that unknown names map to None."""
        assert quality_name_to_id(MediaType.MOVIES, "nonsense") is None
        assert quality_name_to_id(MediaType.MOVIES, None) is None
