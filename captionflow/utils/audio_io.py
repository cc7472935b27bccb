"""Audio I/O helpers.

Wraps the external ``ffmpeg`` binary behind the :class:`MediaTool` protocol:
converting arbitrary media to mono 16 kHz PCM WAV, probing duration and
cutting fixed windows out of a normalized file. The pipeline only talks to
the protocol so tests can substitute a fake tool.
"""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from captionflow.errors import AudioConversionError, DurationDetectionError
from captionflow.utils.constant import (
    ACCEPTED_AUDIO_MIME_TYPES,
    FFMPEG_BINARY,
    TARGET_CHANNELS,
    TARGET_SAMPLE_RATE,
)

__all__ = [
    "DEFAULT_SAMPLE_RATE",
    "ExtractedAudio",
    "FFmpegMediaTool",
    "MediaTool",
    "extract_audio",
    "is_accepted_audio",
    "mime_type_for_path",
    "parse_ffmpeg_duration",
]

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = TARGET_SAMPLE_RATE

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


class MediaTool(Protocol):
    """Capability interface for transcoding and probing media."""

    async def convert_to_wav(self, data: bytes) -> bytes:
        """Return ``data`` transcoded to mono 16-bit 16 kHz WAV."""

    async def probe_duration(self, path: Path) -> float:
        """Return the duration of the media at ``path`` in seconds."""

    async def extract_segment(
        self, source: Path, start: float, duration: float, output: Path
    ) -> Path:
        """Write ``duration`` seconds of ``source`` from ``start`` to ``output``."""


@dataclass(frozen=True)
class ExtractedAudio:
    """Audio ready for the STT backend."""

    data: bytes
    mime_type: str

    @property
    def suffix(self) -> str:
        """File extension matching :attr:`mime_type`."""
        return ACCEPTED_AUDIO_MIME_TYPES.get(self.mime_type, ".wav")


def is_accepted_audio(mime_type: str | None) -> bool:
    """Return ``True`` when the STT backend accepts ``mime_type`` without transcoding."""
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower() in ACCEPTED_AUDIO_MIME_TYPES


def parse_ffmpeg_duration(stderr: str) -> float:
    """Parse the ``Duration: HH:MM:SS.xx`` line that ffmpeg prints on stderr.

    Parameters:
        stderr (str): Diagnostic output of ``ffmpeg -i <file>``.

    Returns:
        float: Duration in seconds.

    Raises:
        DurationDetectionError: If no positive duration can be parsed.
    """
    match = _DURATION_RE.search(stderr)
    if match is None:
        raise DurationDetectionError("Could not find a duration in ffmpeg output")
    hours, minutes, seconds = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    if total <= 0:
        raise DurationDetectionError(f"ffmpeg reported a non-positive duration: {total}")
    return total


async def extract_audio(
    data: bytes,
    mime_type: str | None,
    tool: MediaTool,
) -> ExtractedAudio:
    """Normalize uploaded media into audio the STT backend accepts.

    Accepted audio MIME types pass through untouched; everything else is
    transcoded to mono 16 kHz PCM WAV by ``tool``.

    Args:
        data: Raw media bytes.
        mime_type: Declared MIME type of ``data``, if known.
        tool: Media tool used for transcoding.

    Returns:
        The audio bytes and their MIME type.

    Raises:
        AudioConversionError: If ``data`` is empty or transcoding fails.
    """
    if not data:
        raise AudioConversionError("No media data provided")

    if is_accepted_audio(mime_type):
        normalized = mime_type.split(";", 1)[0].strip().lower()  # type: ignore[union-attr]
        logger.debug("Audio passthrough: mime=%s bytes=%d", normalized, len(data))
        return ExtractedAudio(data=data, mime_type=normalized)

    logger.debug("Transcoding media to WAV: mime=%s bytes=%d", mime_type, len(data))
    wav = await tool.convert_to_wav(data)
    if not wav:
        raise AudioConversionError("Transcoder produced no audio")
    return ExtractedAudio(data=wav, mime_type="audio/wav")


class FFmpegMediaTool:
    """:class:`MediaTool` backed by the ``ffmpeg`` command-line tool."""

    def __init__(
        self,
        binary: str = FFMPEG_BINARY,
        sample_rate: int = TARGET_SAMPLE_RATE,
        channels: int = TARGET_CHANNELS,
    ) -> None:
        self.binary = binary
        self.sample_rate = sample_rate
        self.channels = channels

    def _wav_output_args(self) -> list[str]:
        return [
            "-vn",
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-c:a",
            "pcm_s16le",
            "-f",
            "wav",
        ]

    async def _run(self, args: list[str]) -> tuple[int, str]:
        """Run ffmpeg with ``args`` and return ``(returncode, stderr)``.

        Raises:
            AudioConversionError: If the binary cannot be started.
        """
        cmd = [self.binary, "-nostdin", "-hide_banner", *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise AudioConversionError(f"Failed to start {self.binary}: {exc}") from exc
        _, stderr = await proc.communicate()
        return proc.returncode or 0, stderr.decode(errors="ignore")

    async def convert_to_wav(self, data: bytes) -> bytes:
        """Transcode ``data`` to mono 16-bit PCM WAV at the target rate.

        Scratch files live in their own temporary directory, removed on
        every exit path.

        Returns:
            bytes: The WAV file contents.

        Raises:
            AudioConversionError: If ffmpeg fails or writes nothing.
        """
        with tempfile.TemporaryDirectory(prefix="captionflow-convert-") as tmp:
            src = Path(tmp) / "input.media"
            dst = Path(tmp) / "output.wav"
            src.write_bytes(data)
            code, stderr = await self._run(["-y", "-i", str(src), *self._wav_output_args(), str(dst)])
            if code != 0:
                raise AudioConversionError(f"ffmpeg exited with {code}: {stderr.strip()[-500:]}")
            if not dst.exists() or dst.stat().st_size == 0:
                raise AudioConversionError("ffmpeg produced no output audio")
            return dst.read_bytes()

    async def probe_duration(self, path: Path) -> float:
        """Return the duration of ``path`` parsed from ffmpeg's stderr.

        ``ffmpeg -i`` without an output file always exits non-zero, so only
        the parsed duration decides success.

        Raises:
            DurationDetectionError: If no duration could be parsed.
        """
        try:
            _, stderr = await self._run(["-i", str(path)])
        except AudioConversionError as exc:
            raise DurationDetectionError(str(exc)) from exc
        try:
            return parse_ffmpeg_duration(stderr)
        except DurationDetectionError as exc:
            raise DurationDetectionError(f"{exc} for {path}") from exc

    async def extract_segment(
        self, source: Path, start: float, duration: float, output: Path
    ) -> Path:
        """Cut ``[start, start + duration)`` of ``source`` into a WAV file.

        Returns:
            Path: ``output``.

        Raises:
            AudioConversionError: If ffmpeg fails or writes nothing.
        """
        output.parent.mkdir(parents=True, exist_ok=True)
        code, stderr = await self._run([
            "-y",
            "-ss",
            f"{max(start, 0.0):.3f}",
            "-t",
            f"{max(duration, 0.001):.3f}",
            "-i",
            str(source),
            *self._wav_output_args(),
            str(output),
        ])
        if code != 0:
            raise AudioConversionError(
                f"ffmpeg failed to cut segment at {start:.2f}s: {stderr.strip()[-500:]}"
            )
        if not output.exists() or output.stat().st_size == 0:
            raise AudioConversionError(f"ffmpeg produced an empty segment at {start:.2f}s")
        return output


def mime_type_for_path(path: Path) -> str:
    """Guess the upload MIME type of an audio file from its suffix."""
    suffix = path.suffix.lower()
    for mime, ext in ACCEPTED_AUDIO_MIME_TYPES.items():
        if ext == suffix:
            return mime
    return "audio/wav"
