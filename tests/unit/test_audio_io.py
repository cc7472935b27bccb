"""Unit tests for audio extraction and the ffmpeg-backed media tool."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from captionflow.errors import AudioConversionError, DurationDetectionError
from captionflow.utils.audio_io import (
    FFmpegMediaTool,
    extract_audio,
    is_accepted_audio,
    mime_type_for_path,
    parse_ffmpeg_duration,
)

FFMPEG_STDERR = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':
  Metadata:
    major_brand     : isom
  Duration: 00:01:05.50, start: 0.000000, bitrate: 1205 kb/s
  Stream #0:0(und): Video: h264
"""


def test_parse_ffmpeg_duration() -> None:
    assert parse_ffmpeg_duration(FFMPEG_STDERR) == pytest.approx(65.5)
    assert parse_ffmpeg_duration("Duration: 01:00:00.00,") == pytest.approx(3600.0)


@pytest.mark.parametrize("stderr", ["Duration: N/A, bitrate: N/A", "Duration: 00:00:00.00,", ""])
def test_parse_ffmpeg_duration_rejects_missing_or_zero(stderr: str) -> None:
    with pytest.raises(DurationDetectionError):
        parse_ffmpeg_duration(stderr)


@pytest.mark.parametrize(
    ("mime_type", "accepted"),
    [
        ("audio/wav", True),
        ("audio/mpeg", True),
        ("audio/wav; codecs=1", True),
        ("AUDIO/FLAC", True),
        ("video/mp4", False),
        ("application/octet-stream", False),
        (None, False),
    ],
)
def test_is_accepted_audio(mime_type: str | None, accepted: bool) -> None:
    assert is_accepted_audio(mime_type) is accepted


def test_extract_audio_passes_accepted_audio_through(media_tool_factory) -> None:
    tool = media_tool_factory()

    audio = asyncio.run(extract_audio(b"ID3-mp3-bytes", "audio/mpeg; charset=binary", tool))

    assert audio.data == b"ID3-mp3-bytes"
    assert audio.mime_type == "audio/mpeg"
    assert audio.suffix == ".mp3"
    assert tool.converted == []


def test_extract_audio_transcodes_video(media_tool_factory) -> None:
    tool = media_tool_factory(wav=b"RIFF-converted")

    audio = asyncio.run(extract_audio(b"video-bytes", "video/mp4", tool))

    assert audio.data == b"RIFF-converted"
    assert audio.mime_type == "audio/wav"
    assert tool.converted == [b"video-bytes"]


def test_extract_audio_rejects_empty_input(media_tool_factory) -> None:
    with pytest.raises(AudioConversionError):
        asyncio.run(extract_audio(b"", "video/mp4", media_tool_factory()))


def test_extract_audio_rejects_empty_conversion(media_tool_factory) -> None:
    with pytest.raises(AudioConversionError, match="no audio"):
        asyncio.run(extract_audio(b"video", None, media_tool_factory(wav=b"")))


@pytest.mark.parametrize(
    ("name", "expected"),
    [("a.wav", "audio/wav"), ("a.MP3", "audio/mpeg"), ("a.flac", "audio/flac"), ("a.bin", "audio/wav")],
)
def test_mime_type_for_path(name: str, expected: str) -> None:
    assert mime_type_for_path(Path(name)) == expected


def test_missing_ffmpeg_binary_raises_conversion_error() -> None:
    tool = FFmpegMediaTool(binary="/nonexistent/ffmpeg-binary")

    with pytest.raises(AudioConversionError, match="Failed to start"):
        asyncio.run(tool.convert_to_wav(b"data"))


def test_missing_ffmpeg_binary_on_probe_is_a_duration_error(tmp_path: Path) -> None:
    tool = FFmpegMediaTool(binary="/nonexistent/ffmpeg-binary")

    with pytest.raises(DurationDetectionError):
        asyncio.run(tool.probe_duration(tmp_path / "audio.wav"))


def test_probe_duration_parses_stderr(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """``ffmpeg -i`` exits non-zero; only the parsed duration matters."""
    tool = FFmpegMediaTool()
    calls: list[list[str]] = []

    async def fake_run(args: list[str]) -> tuple[int, str]:
        calls.append(args)
        return 1, FFMPEG_STDERR

    monkeypatch.setattr(tool, "_run", fake_run)

    assert asyncio.run(tool.probe_duration(tmp_path / "audio.wav")) == pytest.approx(65.5)
    assert calls == [["-i", str(tmp_path / "audio.wav")]]


def test_extract_segment_builds_seek_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    tool = FFmpegMediaTool(sample_rate=16000, channels=1)
    output = tmp_path / "cuts" / "segment_0001.wav"
    calls: list[list[str]] = []

    async def fake_run(args: list[str]) -> tuple[int, str]:
        calls.append(args)
        Path(args[-1]).write_bytes(b"RIFF")
        return 0, ""

    monkeypatch.setattr(tool, "_run", fake_run)

    result = asyncio.run(tool.extract_segment(tmp_path / "audio.wav", 30.0, 15.0, output))

    assert result == output
    args = calls[0]
    assert args[args.index("-ss") + 1] == "30.000"
    assert args[args.index("-t") + 1] == "15.000"
    assert args[args.index("-ar") + 1] == "16000"
    assert args[args.index("-ac") + 1] == "1"


def test_extract_segment_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    tool = FFmpegMediaTool()

    async def fake_run(args: list[str]) -> tuple[int, str]:
        return 1, "Invalid data found when processing input"

    monkeypatch.setattr(tool, "_run", fake_run)

    with pytest.raises(AudioConversionError, match="Invalid data"):
        asyncio.run(tool.extract_segment(tmp_path / "a.wav", 0.0, 30.0, tmp_path / "out.wav"))
