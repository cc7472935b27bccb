"""Caption track validation and clean-up.

Two consumers of a finalized caption track live here:

* :func:`validate_captions` reports every structural problem of a track
  (used before captions leave the API, and on caption lists supplied by
  clients for export or rendering).
* :func:`merge_overlapping_captions` coalesces captions that overlap or sit
  closer than ``CAPTION_MERGE_GAP_SEC`` apart, for cleaner on-screen reading.

Neither function alters the words themselves, only grouping and numbering.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from captionflow.errors import CaptionValidationError
from captionflow.timestamps.models import Caption
from captionflow.utils.constant import CAPTION_MERGE_GAP_SEC, WORD_SPAN_TOLERANCE_SEC

__all__ = [
    "ensure_valid_captions",
    "merge_overlapping_captions",
    "validate_captions",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _word_errors(position: int, cap: Caption) -> list[str]:
    errors: list[str] = []
    if not cap.words:
        return errors
    tol = WORD_SPAN_TOLERANCE_SEC
    previous_start: float | None = None
    for n, word in enumerate(cap.words, start=1):
        if word.end <= word.start:
            errors.append(f"Caption {position} word {n} has end time before or equal to start time")
        if word.start < cap.start - tol or word.end > cap.end + tol:
            errors.append(f"Caption {position} word {n} lies outside the caption span")
        if previous_start is not None and word.start < previous_start:
            errors.append(f"Caption {position} word {n} is out of order")
        previous_start = word.start
    return errors


def validate_captions(captions: Sequence[Caption]) -> list[str]:
    """Check a caption track against its structural invariants.

    Parameters:
        captions (Sequence[Caption]): Track to check.

    Returns:
        list[str]: One message per problem, in track order; empty when valid.
    """
    if not captions:
        return ["Captions array is empty"]

    errors: list[str] = []
    previous_start: float | None = None
    for position, cap in enumerate(captions, start=1):
        if not cap.text or not cap.text.strip():
            errors.append(f"Caption {position} has no text")
        if cap.start < 0:
            errors.append(f"Caption {position} has negative start time")
        if cap.end <= cap.start:
            errors.append(f"Caption {position} has end time before or equal to start time")
        if cap.id <= 0:
            errors.append(f"Caption {position} has invalid ID")
        elif cap.id != position:
            errors.append(f"Caption {position} has non-sequential ID {cap.id}")
        if previous_start is not None and cap.start < previous_start:
            errors.append(f"Caption {position} starts before the previous caption")
        previous_start = cap.start
        errors.extend(_word_errors(position, cap))
    return errors


def ensure_valid_captions(captions: Sequence[Caption]) -> None:
    """Raise if ``captions`` violates any structural invariant.

    Raises:
        CaptionValidationError: Carrying every message from :func:`validate_captions`.
    """
    errors = validate_captions(captions)
    if errors:
        logger.warning("Caption validation failed with %d issue(s)", len(errors))
        raise CaptionValidationError(errors)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------
def merge_overlapping_captions(
    captions: Sequence[Caption],
    max_gap: float = CAPTION_MERGE_GAP_SEC,
) -> list[Caption]:
    """Coalesce captions that overlap or are separated by at most ``max_gap``.

    Captions are first ordered by start. A caption joins the running one when
    it starts no later than ``running.end + max_gap``; the running caption
    then extends to the later end and appends the text. Word lists are merged
    when both sides carry words, otherwise dropped for the merged caption.

    Args:
        captions: Track to merge.
        max_gap: Largest gap in seconds that still triggers a merge.

    Returns:
        Merged captions renumbered ``1..N``.
    """
    if not captions:
        return []

    ordered = sorted(captions, key=lambda c: c.start)
    merged: list[Caption] = []
    current = ordered[0].model_copy(deep=True)
    for nxt in ordered[1:]:
        if nxt.start <= current.end + max_gap:
            words = None
            if current.words is not None and nxt.words is not None:
                words = sorted(
                    [*current.words, *(w.model_copy() for w in nxt.words)],
                    key=lambda w: w.start,
                )
            current = current.model_copy(
                update={
                    "end": max(current.end, nxt.end),
                    "text": f"{current.text} {nxt.text}".strip(),
                    "words": words,
                }
            )
        else:
            merged.append(current)
            current = nxt.model_copy(deep=True)
    merged.append(current)

    return [cap.model_copy(update={"id": i}) for i, cap in enumerate(merged, start=1)]
