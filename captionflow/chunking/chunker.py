"""Fixed-window segmenter for long-audio transcription.

Long recordings are split into contiguous, non-overlapping windows so that
every STT request stays within the provider's payload and duration limits.
Planning is pure arithmetic; cutting the windows into their own files is
delegated to a :class:`~captionflow.utils.audio_io.MediaTool`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from pathlib import Path

from captionflow.timestamps.models import AudioSegment
from captionflow.utils.audio_io import MediaTool

__all__ = [
    "materialize_segments",
    "plan_segments",
]

logger = logging.getLogger(__name__)


def plan_segments(
    duration: float,
    segment_len_sec: float,
    source_path: Path,
) -> list[AudioSegment]:
    """Split ``[0, duration)`` into contiguous windows of ``segment_len_sec``.

    Parameters:
        duration (float): Total audio duration in seconds.
        segment_len_sec (float): Window length in seconds.
        source_path (Path): Normalized audio file the windows refer to.

    Returns:
        list[AudioSegment]: ``ceil(duration / segment_len_sec)`` segments in
            ascending order. The last one is truncated at ``duration``; a
            duration not longer than one window yields a single segment.

    Raises:
        ValueError: If ``duration`` or ``segment_len_sec`` is not positive.
    """
    if duration <= 0:
        raise ValueError("duration must be > 0")
    if segment_len_sec <= 0:
        raise ValueError("segment_len_sec must be > 0")

    # round() absorbs float noise such as 90.00000000001 / 30
    count = max(1, math.ceil(round(duration / segment_len_sec, 9)))

    segments: list[AudioSegment] = []
    for index in range(count):
        start = index * segment_len_sec
        end = min((index + 1) * segment_len_sec, duration)
        segments.append(
            AudioSegment(index=index, source_path=source_path, start=start, end=end)
        )
    return segments


async def materialize_segments(
    segments: Sequence[AudioSegment],
    tool: MediaTool,
    workdir: Path,
) -> list[AudioSegment]:
    """Cut every planned window into its own WAV file under ``workdir``.

    Args:
        segments: Planned segments pointing at the full normalized audio.
        tool: Media tool performing the cut.
        workdir: Request-scoped scratch directory.

    Returns:
        Segments with the same bounds whose ``source_path`` is the cut file.
    """
    materialized: list[AudioSegment] = []
    for seg in segments:
        output = workdir / f"segment_{seg.index:04d}.wav"
        await tool.extract_segment(seg.source_path, seg.start, seg.duration, output)
        logger.debug(
            "Segment %d cut: %.2fs-%.2fs -> %s", seg.index, seg.start, seg.end, output.name
        )
        materialized.append(seg.model_copy(update={"source_path": output}))
    return materialized
