"""Configuration dataclasses for the transcription pipeline.

Related settings are grouped so the pipeline, the STT client and the
orchestrator each receive only the knobs they use. Defaults come from
``captionflow.utils.constant`` and can therefore be overridden via the
environment or the project ``.env`` file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from captionflow.utils.constant import (
    DEFAULT_SEGMENT_LEN_SEC,
    MIN_COVERAGE_RATIO,
    SEGMENT_BACKOFF_SEC,
    SEGMENT_CONCURRENCY,
    SEGMENT_MAX_ATTEMPTS,
    SEGMENT_MAX_FAILURE_RATIO,
    STT_BACKOFF_BASE_SEC,
    STT_BACKOFF_MAX_SEC,
    STT_LOADING_WAIT_SEC,
    STT_MAX_RETRIES,
    STT_TIMEOUT_SEC,
)


@dataclass
class STTConfig:
    """Groups remote speech-to-text settings.

    Attributes:
        provider: Resolved provider name (``"huggingface"`` or ``"openai"``).
        api_key: Bearer token for the provider.
        endpoint: Full URL of the transcription endpoint.
        model: Model identifier sent to providers that take one in the body.
        timeout_sec: Per-call HTTP timeout in seconds.
        max_retries: Maximum call attempts for retryable failures.
        loading_wait_sec: Fixed wait while the hosted model warms up.
        backoff_base_sec: First exponential backoff step for rate limiting.
        backoff_max_sec: Cap for the exponential backoff.

    """

    provider: str
    api_key: str
    endpoint: str
    model: str | None = None
    timeout_sec: float = STT_TIMEOUT_SEC
    max_retries: int = STT_MAX_RETRIES
    loading_wait_sec: float = STT_LOADING_WAIT_SEC
    backoff_base_sec: float = STT_BACKOFF_BASE_SEC
    backoff_max_sec: float = STT_BACKOFF_MAX_SEC

    def __repr__(self) -> str:
        """Return a representation that never includes the API key."""
        return (
            f"STTConfig(provider={self.provider!r}, endpoint={self.endpoint!r}, "
            f"model={self.model!r}, max_retries={self.max_retries})"
        )


@dataclass
class SegmentationConfig:
    """Groups audio segmentation settings.

    Attributes:
        segment_len_sec: Target length of each segment in seconds.

    """

    segment_len_sec: float = DEFAULT_SEGMENT_LEN_SEC


@dataclass
class OrchestrationConfig:
    """Groups segment-level retry and aggregation settings.

    Attributes:
        max_attempts: Attempts per segment before it settles as failed.
        backoff_sec: Backoff step; the wait after attempt ``n`` is ``backoff_sec * n``.
        max_failure_ratio: Fraction of failed segments tolerated before the
            whole request fails.
        max_concurrency: Segments transcribed at once (``1`` = sequential).

    """

    max_attempts: int = SEGMENT_MAX_ATTEMPTS
    backoff_sec: float = SEGMENT_BACKOFF_SEC
    max_failure_ratio: float = SEGMENT_MAX_FAILURE_RATIO
    max_concurrency: int = SEGMENT_CONCURRENCY


@dataclass
class PipelineConfig:
    """Top-level configuration handed to :class:`TranscriptionPipeline`.

    Attributes:
        segmentation: Segmenter settings.
        orchestration: Segment orchestrator settings.
        min_coverage_ratio: Coverage below this emits a diagnostic warning.

    """

    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    min_coverage_ratio: float = MIN_COVERAGE_RATIO
