"""Assemble per-segment captions into one global caption track."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

from captionflow.errors import InsufficientCoverageWarning
from captionflow.timestamps.models import Caption, TimelineResult, Word
from captionflow.utils.constant import MIN_COVERAGE_RATIO, MIN_SPAN_SEC, OFFSET_TOLERANCE_SEC

__all__ = ["assemble_timeline"]

logger = logging.getLogger(__name__)


def _shift_span(start: float, end: float, offset: float) -> tuple[float, float]:
    start = max(0.0, start - offset)
    end = max(0.0, end - offset)
    if end - start < MIN_SPAN_SEC:
        end = start + MIN_SPAN_SEC
    return start, end


def _shift_caption(cap: Caption, offset: float) -> Caption:
    words: list[Word] | None = None
    if cap.words is not None:
        words = []
        for w in cap.words:
            w_start, w_end = _shift_span(w.start, w.end, offset)
            words.append(w.model_copy(update={"start": w_start, "end": w_end}))
    start, end = _shift_span(cap.start, cap.end, offset)
    if words:
        start = min(start, min(w.start for w in words))
        end = max(end, max(w.end for w in words))
    return cap.model_copy(update={"start": start, "end": end, "words": words})


def assemble_timeline(
    captions: Sequence[Caption],
    total_duration: float | None = None,
    *,
    min_coverage_ratio: float = MIN_COVERAGE_RATIO,
) -> TimelineResult:
    """Sort, renumber and offset-correct an aggregated caption track.

    Steps, in order:

    1. Stable sort by start time, so captions that share a start keep the
       order in which segments delivered them.
    2. Renumber ids ``1..N``.
    3. If the first caption starts more than ``OFFSET_TOLERANCE_SEC`` after
       zero, shift every caption and word left by that amount. Negative
       results are clamped to zero and collapsed spans re-floored.
    4. Compute coverage as ``last.end / total_duration``.

    Low coverage is reported through :class:`InsufficientCoverageWarning`
    and a log line; it never fails the call. Running the assembler on its own
    output yields an identical track.

    Args:
        captions: Captions from every successful segment, in arrival order.
        total_duration: Audio duration in seconds, when known.
        min_coverage_ratio: Coverage below this triggers the warning.

    Returns:
        The finalized track plus diagnostics.
    """
    ordered = sorted(captions, key=lambda c: c.start)
    if not ordered:
        return TimelineResult(captions=[], offset_applied=0.0, total_duration=total_duration)

    offset = ordered[0].start if ordered[0].start > OFFSET_TOLERANCE_SEC else 0.0
    if offset:
        logger.info("First caption starts at %.2fs; shifting timeline left", offset)
        ordered = [_shift_caption(c, offset) for c in ordered]
        # clamping can only tie starts, never reorder them, but keep it stable
        ordered.sort(key=lambda c: c.start)

    final = [c.model_copy(update={"id": i}) for i, c in enumerate(ordered, start=1)]

    coverage: float | None = None
    if total_duration and total_duration > 0:
        coverage = final[-1].end / total_duration
        if coverage < min_coverage_ratio:
            message = (
                f"Captions cover only {coverage:.0%} of {total_duration:.1f}s of audio "
                f"(last caption ends at {final[-1].end:.2f}s)"
            )
            logger.warning(message)
            warnings.warn(message, InsufficientCoverageWarning, stacklevel=2)

    return TimelineResult(
        captions=final,
        offset_applied=offset,
        total_duration=total_duration,
        coverage=coverage,
    )
