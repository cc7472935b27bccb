"""Segment-level orchestration of STT calls.

Each segment moves through ``PENDING -> IN_PROGRESS -> SUCCEEDED | FAILED``.
A failed attempt (any exception, or a response that normalizes to no text)
is retried as a whole under the segment retry policy; this sits on top of
the client's own call-level retries. Segments that exhaust their attempts
are recorded as :class:`~captionflow.errors.SegmentFailure` and only fail
the request once they exceed the tolerated fraction.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from captionflow.config import OrchestrationConfig
from captionflow.errors import (
    ConfigurationError,
    EmptyTranscriptError,
    SegmentFailure,
    TranscriptionFailedError,
)
from captionflow.timestamps.models import AudioSegment, Caption
from captionflow.timestamps.normalize import normalize_segment_response
from captionflow.utils.audio_io import mime_type_for_path
from captionflow.utils.retry import RetryPolicy, linear_backoff, retry_async

__all__ = [
    "OrchestrationResult",
    "SegmentOrchestrator",
    "SegmentRun",
    "SegmentState",
    "SpeechToText",
    "segment_retry_policy",
]

logger = logging.getLogger(__name__)


class SpeechToText(Protocol):
    """Anything that turns audio bytes into a raw STT payload."""

    async def transcribe(
        self,
        audio: bytes,
        language: str | None = None,
        content_type: str = "audio/wav",
    ) -> dict[str, Any]:
        """Return the provider payload for ``audio``."""


class SegmentState(str, Enum):
    """Lifecycle of one segment within a request."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SegmentRun:
    """Mutable record of one segment's progress."""

    segment: AudioSegment
    state: SegmentState = SegmentState.PENDING
    attempts: int = 0
    captions: list[Caption] = field(default_factory=list)
    error: BaseException | None = None
    elapsed_sec: float = 0.0


@dataclass
class OrchestrationResult:
    """Aggregated outcome of all segments of one request."""

    captions: list[Caption]
    runs: list[SegmentRun]
    failures: list[SegmentFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.runs)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def failure_ratio(self) -> float:
        return self.failed_count / self.total if self.total else 0.0


def segment_retry_policy(config: OrchestrationConfig | None = None) -> RetryPolicy:
    """Build the segment-level policy: linear backoff, never retry bad config."""
    config = config or OrchestrationConfig()
    return RetryPolicy(
        max_attempts=config.max_attempts,
        wait=linear_backoff(config.backoff_sec),
        retry_on=(Exception,),
        give_up_on=(ConfigurationError,),
        name="segment",
    )


class SegmentOrchestrator:
    """Transcribe a list of segments and aggregate their captions.

    Args:
        client: STT client used for every segment.
        retry_policy: Segment-level retry policy.
        max_failure_ratio: Fraction of failed segments tolerated.
        max_concurrency: Segments in flight at once; ``1`` runs sequentially.
        language: Language hint forwarded to the client.
        sleep: Awaitable sleep between attempts (injectable for tests).
    """

    def __init__(
        self,
        client: SpeechToText,
        retry_policy: RetryPolicy | None = None,
        *,
        max_failure_ratio: float = 0.5,
        max_concurrency: int = 1,
        language: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.retry_policy = retry_policy or segment_retry_policy()
        self.max_failure_ratio = max_failure_ratio
        self.max_concurrency = max(1, max_concurrency)
        self.language = language
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        client: SpeechToText,
        config: OrchestrationConfig,
        *,
        language: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> SegmentOrchestrator:
        return cls(
            client,
            segment_retry_policy(config),
            max_failure_ratio=config.max_failure_ratio,
            max_concurrency=config.max_concurrency,
            language=language,
            sleep=sleep,
        )

    async def _attempt(self, run: SegmentRun) -> list[Caption]:
        seg = run.segment
        run.attempts += 1
        run.state = SegmentState.IN_PROGRESS
        audio = seg.source_path.read_bytes()
        payload = await self.client.transcribe(
            audio, self.language, mime_type_for_path(seg.source_path)
        )
        captions = normalize_segment_response(payload, seg.start, seg.duration)
        if not any(c.text.strip() for c in captions):
            raise EmptyTranscriptError(
                f"Segment {seg.index} ({seg.start:.1f}s-{seg.end:.1f}s) returned no text"
            )
        return captions

    async def _run_segment(self, run: SegmentRun, total: int) -> SegmentFailure | None:
        seg = run.segment
        t0 = time.perf_counter()
        try:
            captions = await retry_async(
                self.retry_policy, self._attempt, run, sleep=self._sleep, log=logger
            )
        except ConfigurationError:
            run.state = SegmentState.FAILED
            raise
        except Exception as exc:  # collected, escalated by the threshold check
            run.state = SegmentState.FAILED
            run.error = exc
            run.elapsed_sec = time.perf_counter() - t0
            logger.warning(
                "Segment %d/%d failed after %d attempt(s): %s",
                seg.index + 1,
                total,
                run.attempts,
                exc,
            )
            return SegmentFailure(seg.index, run.attempts, exc)

        run.state = SegmentState.SUCCEEDED
        run.captions = captions
        run.elapsed_sec = time.perf_counter() - t0
        logger.info(
            "Segment %d/%d transcribed: %d caption(s) in %.2fs",
            seg.index + 1,
            total,
            len(captions),
            run.elapsed_sec,
        )
        return None

    async def run(self, segments: Sequence[AudioSegment]) -> OrchestrationResult:
        """Transcribe ``segments`` and apply the failure threshold.

        Returns:
            OrchestrationResult: Captions in arrival order plus per-segment runs.

        Raises:
            ConfigurationError: Immediately, from any segment.
            TranscriptionFailedError: When more than ``max_failure_ratio`` of
                the segments failed, or no segment produced a caption.
        """
        runs = [SegmentRun(segment=seg) for seg in segments]
        total = len(runs)
        track: list[Caption] = []
        failures: list[SegmentFailure] = []

        def collect(run: SegmentRun, failure: SegmentFailure | None) -> None:
            if failure is not None:
                failures.append(failure)
            else:
                track.extend(run.captions)

        if self.max_concurrency == 1:
            for run in runs:
                collect(run, await self._run_segment(run, total))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def worker(run: SegmentRun) -> None:
                async with semaphore:
                    failure = await self._run_segment(run, total)
                collect(run, failure)

            tasks = [asyncio.create_task(worker(run)) for run in runs]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        result = OrchestrationResult(captions=track, runs=runs, failures=failures)
        if total and result.failure_ratio > self.max_failure_ratio:
            raise TranscriptionFailedError(
                f"{result.failed_count} of {total} segments failed "
                f"(more than {self.max_failure_ratio:.0%}); the STT provider looks unavailable",
                failures=failures,
                total=total,
            )
        if not track:
            raise TranscriptionFailedError(
                "No captions were produced for any segment", failures=failures, total=total
            )
        if failures:
            logger.warning(
                "Continuing with a partial transcript: %d of %d segments failed",
                result.failed_count,
                total,
            )
        return result
