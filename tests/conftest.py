"""Shared test fixtures for the captionflow test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from captionflow.timestamps.models import AudioSegment, Caption, Word


class FakeMediaTool:
    """In-process stand-in for ffmpeg.

    Cut segments contain ``b"segment-<index>"`` so scripted STT clients can
    answer per segment.
    """

    def __init__(self, duration: float = 45.0, wav: bytes = b"RIFF-fake-wav") -> None:
        self.duration = duration
        self.wav = wav
        self.converted: list[bytes] = []
        self.probed: list[Path] = []
        self.cuts: list[tuple[float, float, Path]] = []

    async def convert_to_wav(self, data: bytes) -> bytes:
        self.converted.append(data)
        return self.wav

    async def probe_duration(self, path: Path) -> float:
        self.probed.append(path)
        return self.duration

    async def extract_segment(
        self, source: Path, start: float, duration: float, output: Path
    ) -> Path:
        output.write_bytes(f"segment-{len(self.cuts)}".encode())
        self.cuts.append((start, duration, output))
        return output


Responder = Callable[[bytes, int], Any]


class ScriptedClient:
    """STT client whose answers come from ``responder(audio, call_number)``.

    Returning an exception instance raises it instead.
    """

    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.calls: list[tuple[bytes, str | None, str]] = []

    async def transcribe(
        self,
        audio: bytes,
        language: str | None = None,
        content_type: str = "audio/wav",
    ) -> dict[str, Any]:
        self.calls.append((audio, language, content_type))
        result = self.responder(audio, len(self.calls))
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def media_tool_factory() -> type[FakeMediaTool]:
    """Return the fake media tool class."""
    return FakeMediaTool


@pytest.fixture
def scripted_client() -> type[ScriptedClient]:
    """Return the scripted STT client class."""
    return ScriptedClient


@pytest.fixture
def sleeps() -> list[float]:
    """Collect the delays requested by retry loops."""
    return []


@pytest.fixture
def no_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    """Awaitable sleep that records the delay and returns immediately."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def make_caption() -> Callable[..., Caption]:
    """Build a caption, deriving evenly spaced words from its text by default."""

    def _make(
        id: int,
        start: float,
        end: float,
        text: str = "hello world",
        *,
        with_words: bool = True,
    ) -> Caption:
        words = None
        if with_words:
            tokens = text.split()
            step = (end - start) / len(tokens)
            words = [
                Word(text=t, start=start + i * step, end=start + (i + 1) * step)
                for i, t in enumerate(tokens)
            ]
        return Caption(id=id, start=start, end=end, text=text, words=words)

    return _make


@pytest.fixture
def segment_files(tmp_path: Path) -> Callable[[int, float], list[AudioSegment]]:
    """Create ``n`` segment files of ``length`` seconds each under ``tmp_path``."""

    def _make(n: int, length: float = 30.0) -> list[AudioSegment]:
        segments = []
        for i in range(n):
            path = tmp_path / f"segment_{i:04d}.wav"
            path.write_bytes(f"segment-{i}".encode())
            segments.append(
                AudioSegment(index=i, source_path=path, start=i * length, end=(i + 1) * length)
            )
        return segments

    return _make
