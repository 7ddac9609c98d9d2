"""Unit tests for MutagenMediaProbe.

Hey future me - we don't ship real audio fixtures. mutagen.File is patched to return fake
FileType objects whose class NAME is what the probe keys codecs on, and whose tags are plain
dicts shaped like Vorbis comments / ID3 frames / MP4 atoms.
"""

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from pytest_mock import MockerFixture

from mediarr.domain.entities import AudioMediaInfo
from mediarr.infrastructure.media import mutagen_probe
from mediarr.infrastructure.media.mutagen_probe import MutagenMediaProbe


def fake_audio(type_name: str, tags: dict[str, Any] | None, **info: Any) -> Any:
    """Build an object that looks like a mutagen FileType of the given class."""
    audio_type = type(type_name, (), {})
    audio = audio_type()
    audio.info = SimpleNamespace(**info)
    audio.tags = tags
    return audio


class Frame:
    """Minimal ID3 frame (value lives in .text)."""

    def __init__(self, *text: str) -> None:
        self.text = list(text)


@pytest.fixture
def probe() -> MutagenMediaProbe:
    return MutagenMediaProbe()


class TestReadTags:
    """Tests for tag and stream info extraction."""

    async def test_flac_vorbis_comments(
        self, probe: MutagenMediaProbe, mocker: MockerFixture, tmp_path: Path
    ) -> None:
        """Test a FLAC with Vorbis comments and stream info."""
        audio = fake_audio(
            "FLAC",
            {
                "title": ["Song"],
                "artist": ["Guest"],
                "albumartist": ["Artist"],
                "album": ["Album"],
                "tracknumber": ["3/12"],
                "discnumber": ["2"],
                "date": ["2020-05-01"],
                "genre": ["  "],
            },
            bitrate=900000,
            sample_rate=44100,
            channels=2,
            bits_per_sample=16,
            length=215.5,
        )
        audio.pictures = ["cover"]
        mocker.patch.object(mutagen_probe, "MutagenFile", return_value=audio)

        result = await probe.read_tags(tmp_path / "03 - Song.flac")

        assert result == AudioMediaInfo(
            codec="flac",
            bitrate=900000,
            sample_rate=44100,
            channels=2,
            bit_depth=16,
            duration=215.5,
            title="Song",
            artist="Guest",
            album="Album",
            album_artist="Artist",
            track_number=3,
            disc_number=2,
            year=2020,
            genre=None,
            has_cover=True,
        )

    async def test_mp3_id3_frames(
        self, probe: MutagenMediaProbe, mocker: MockerFixture, tmp_path: Path
    ) -> None:
        """Test ID3 frames and APIC cover detection."""
        audio = fake_audio(
            "MP3",
            {"TIT2": Frame("Song"), "TRCK": Frame("7"), "TDRC": Frame("1999"), "APIC:": object()},
            bitrate=320000,
        )
        mocker.patch.object(mutagen_probe, "MutagenFile", return_value=audio)

        result = await probe.read_tags(tmp_path / "song.mp3")

        assert result is not None
        assert (result.codec, result.bitrate) == ("mp3", 320000)
        assert (result.title, result.track_number, result.year) == ("Song", 7, 1999)
        assert result.has_cover is True

    async def test_mp4_alac_and_tuple_numbers(
        self, probe: MutagenMediaProbe, mocker: MockerFixture, tmp_path: Path
    ) -> None:
        """Test that ALAC in an MP4 container wins over the container codec."""
        audio = fake_audio("MP4", {"©nam": ["Song"], "trkn": [(4, 10)]}, codec="alac")
        mocker.patch.object(mutagen_probe, "MutagenFile", return_value=audio)

        result = await probe.read_tags(tmp_path / "song.m4a")

        assert result is not None
        assert (result.codec, result.track_number, result.has_cover) == ("alac", 4, False)

    async def test_unknown_type_uses_extension(
        self, probe: MutagenMediaProbe, mocker: MockerFixture, tmp_path: Path
    ) -> None:
        """Test the extension fallback for untagged, unknown file types."""
        mocker.patch.object(mutagen_probe, "MutagenFile", return_value=fake_audio("Weird", None))

        result = await probe.read_tags(tmp_path / "song.opus")

        assert result == AudioMediaInfo(codec="opus")

    async def test_unrecognized_file(
        self, probe: MutagenMediaProbe, mocker: MockerFixture, tmp_path: Path
    ) -> None:
        """Test that a file mutagen doesn't recognize gives None."""
        mocker.patch.object(mutagen_probe, "MutagenFile", return_value=None)

        assert await probe.read_tags(tmp_path / "notes.txt") is None

    async def test_corrupt_file(self, probe: MutagenMediaProbe, tmp_path: Path) -> None:
        """Test that garbage with an audio extension gives None instead of raising."""
        path = tmp_path / "broken.flac"
        path.write_bytes(b"\x00" * 64)

        assert await probe.read_tags(path) is None
