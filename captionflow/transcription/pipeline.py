"""End-to-end long-form transcription pipeline.

``media bytes -> audio -> segments -> STT per segment -> caption track``

All scratch files (normalized audio, cut segments) live in one temporary
directory per request, removed on every exit path.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import tempfile
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from captionflow.chunking import materialize_segments, plan_segments
from captionflow.config import PipelineConfig, STTConfig
from captionflow.errors import DurationDetectionError
from captionflow.stt.client import TranscriptionClient
from captionflow.stt.providers import resolve_stt_config
from captionflow.timestamps.assemble import assemble_timeline
from captionflow.timestamps.models import Caption, TimelineResult
from captionflow.transcription.orchestrator import (
    OrchestrationResult,
    SegmentOrchestrator,
    SpeechToText,
)
from captionflow.utils.audio_io import FFmpegMediaTool, MediaTool, extract_audio
from captionflow.utils.constant import SUPPORTED_LANGUAGES

__all__ = [
    "PipelineResult",
    "TranscriptionPipeline",
    "normalize_language",
    "transcribe",
]

logger = logging.getLogger(__name__)


def normalize_language(language: str | None) -> str:
    """Validate a language code.

    Returns:
        str: ``"hi"``, ``"en"`` or ``"auto"``.

    Raises:
        ValueError: If the language is not supported.
    """
    value = (language or "auto").strip().lower()
    if value not in SUPPORTED_LANGUAGES:
        raise ValueError(
            f"Unsupported language {language!r}; expected one of: {', '.join(SUPPORTED_LANGUAGES)}"
        )
    return value


@dataclass
class PipelineResult:
    """Captions plus the diagnostics gathered while producing them."""

    captions: list[Caption]
    timeline: TimelineResult
    orchestration: OrchestrationResult
    duration: float
    language: str
    elapsed_sec: float = 0.0

    @property
    def segment_count(self) -> int:
        return self.orchestration.total


class TranscriptionPipeline:
    """Compose extraction, segmentation, orchestration and assembly.

    Collaborators are injectable: pass ``client`` to bypass provider
    resolution and ``media_tool`` to replace ffmpeg (tests use fakes for
    both).
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        stt_config: STTConfig | None = None,
        client: SpeechToText | None = None,
        media_tool: MediaTool | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or PipelineConfig()
        self.stt_config = stt_config
        self.client = client
        self.media_tool = media_tool or FFmpegMediaTool()
        self._sleep = sleep

    @contextlib.asynccontextmanager
    async def _client_scope(
        self, stt_config: STTConfig | None
    ) -> AsyncIterator[SpeechToText]:
        if self.client is not None:
            yield self.client
            return
        stt_config = stt_config or resolve_stt_config()
        async with TranscriptionClient(stt_config, sleep=self._sleep) as client:
            yield client

    async def run(
        self,
        media: bytes,
        mime_type: str | None = None,
        language: str | None = "auto",
    ) -> PipelineResult:
        """Transcribe ``media`` into a finalized caption track.

        Raises:
            ValueError: For an unsupported language.
            ConfigurationError: When no STT provider is configured.
            AudioConversionError: When the media cannot be converted or cut.
            DurationDetectionError: When the audio duration is unknown.
            TranscriptionFailedError: When too many segments failed.
        """
        lang = normalize_language(language)
        stt_config = self.stt_config
        if self.client is None and stt_config is None:
            # fail before any ffmpeg work when credentials are missing
            stt_config = resolve_stt_config()

        t0 = time.perf_counter()
        tool = self.media_tool
        with tempfile.TemporaryDirectory(prefix="captionflow-") as tmp:
            workdir = Path(tmp)
            audio = await extract_audio(media, mime_type, tool)
            audio_path = workdir / f"audio{audio.suffix}"
            audio_path.write_bytes(audio.data)

            duration = await tool.probe_duration(audio_path)
            if duration <= 0:
                raise DurationDetectionError(f"Media reported a non-positive duration: {duration}")
            planned = plan_segments(
                duration, self.config.segmentation.segment_len_sec, audio_path
            )
            logger.info(
                "Transcribing %.1fs of audio in %d segment(s) (language=%s)",
                duration,
                len(planned),
                lang,
            )
            if len(planned) == 1:
                segments = planned
            else:
                segments = await materialize_segments(planned, tool, workdir)

            async with self._client_scope(stt_config) as client:
                orchestrator = SegmentOrchestrator.from_config(
                    client,
                    self.config.orchestration,
                    language=None if lang == "auto" else lang,
                    sleep=self._sleep,
                )
                orchestration = await orchestrator.run(segments)

        timeline = assemble_timeline(
            orchestration.captions,
            duration,
            min_coverage_ratio=self.config.min_coverage_ratio,
        )
        elapsed = time.perf_counter() - t0
        logger.info(
            "Produced %d caption(s) from %d segment(s) in %.2fs (%d failed)",
            len(timeline.captions),
            orchestration.total,
            elapsed,
            orchestration.failed_count,
        )
        return PipelineResult(
            captions=timeline.captions,
            timeline=timeline,
            orchestration=orchestration,
            duration=duration,
            language=lang,
            elapsed_sec=elapsed,
        )


async def transcribe(
    media: bytes,
    mime_type: str | None = None,
    language: str | None = "auto",
    *,
    config: PipelineConfig | None = None,
    client: SpeechToText | None = None,
    media_tool: MediaTool | None = None,
) -> list[Caption]:
    """Transcribe ``media`` and return the finalized caption track.

    Convenience wrapper around :meth:`TranscriptionPipeline.run`.

    Returns:
        list[Caption]: Captions ordered by start, ids ``1..N``.
    """
    pipeline = TranscriptionPipeline(config, client=client, media_tool=media_tool)
    result = await pipeline.run(media, mime_type, language)
    return result.captions
