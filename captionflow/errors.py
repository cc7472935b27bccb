"""Exception taxonomy for the transcription pipeline.

Errors fall into three groups:

* fatal for the whole request (``ConfigurationError``, ``AudioConversionError``,
  ``DurationDetectionError``, ``TranscriptionFailedError``),
* call-level errors raised by the STT client (``TranscriptionCallError`` and its
  subclasses), some of which are retried locally,
* segment-level outcomes (``EmptyTranscriptError``, ``SegmentFailure``) that are
  collected by the orchestrator and only escalate past the failure threshold.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "CaptionflowError",
    "ConfigurationError",
    "AudioConversionError",
    "DurationDetectionError",
    "TranscriptionCallError",
    "MalformedResponseError",
    "RetryableCallError",
    "RateLimitedError",
    "ModelLoadingError",
    "TransportCallError",
    "EmptyTranscriptError",
    "SegmentFailure",
    "TranscriptionFailedError",
    "CaptionValidationError",
    "InsufficientCoverageWarning",
]


class CaptionflowError(RuntimeError):
    """Base class for all captionflow errors."""


class ConfigurationError(CaptionflowError):
    """Raised when STT provider credentials or settings are missing or invalid."""


class AudioConversionError(CaptionflowError):
    """Raised when the transcoder fails or produces unreadable output."""


class DurationDetectionError(CaptionflowError):
    """Raised when the media duration cannot be determined."""


class TranscriptionCallError(CaptionflowError):
    """A single STT HTTP call failed terminally.

    Attributes:
        provider: Provider name the call was made against.
        status_code: HTTP status code, or ``None`` when no response was received.
        detail: Parsed error detail from the response body, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.detail = detail


class MalformedResponseError(TranscriptionCallError):
    """A 2xx response carried an empty or non-JSON body."""


class RetryableCallError(TranscriptionCallError):
    """Base class for call failures that the client retries on its own."""


class RateLimitedError(RetryableCallError):
    """The provider answered HTTP 429."""


class ModelLoadingError(RetryableCallError):
    """The provider is still warming up the model (HTTP 503 or a loading body)."""


class TransportCallError(RetryableCallError):
    """The request never produced a response (timeout, connection reset)."""


class EmptyTranscriptError(CaptionflowError):
    """A segment attempt returned no caption with usable text."""


class SegmentFailure(CaptionflowError):
    """A segment exhausted its retries.

    Attributes:
        index: Zero-based index of the segment in the request.
        attempts: Number of attempts made.
        cause: The last exception raised for the segment.
    """

    def __init__(self, index: int, attempts: int, cause: BaseException) -> None:
        super().__init__(f"Segment {index} failed after {attempts} attempt(s): {cause}")
        self.index = index
        self.attempts = attempts
        self.cause = cause


class TranscriptionFailedError(CaptionflowError):
    """The whole transcription request failed.

    Raised when more than the tolerated fraction of segments failed, or when
    no segment produced a caption at all.
    """

    def __init__(self, message: str, failures: Sequence[SegmentFailure] = (), total: int = 0):
        super().__init__(message)
        self.failures = list(failures)
        self.total = total


class CaptionValidationError(CaptionflowError, ValueError):
    """A finalized caption track violates its structural invariants."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid captions")


class InsufficientCoverageWarning(UserWarning):
    """Captions cover an implausibly small part of the audio."""
