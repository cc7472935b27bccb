"""Formatter for SubRip Subtitle format (.srt)."""

from collections.abc import Sequence

from captionflow.timestamps.models import Caption


def _format_timestamp(seconds: float) -> str:
    """Format a non-negative number of seconds as an SRT timestamp ``HH:MM:SS,mmm``.

    Milliseconds are rounded, so ``1.9996`` renders as ``00:00:02,000``.

    Raises:
        ValueError: If ``seconds`` is negative.
    """
    if seconds < 0:
        raise ValueError("non-negative timestamp required")
    total_ms = int(round(seconds * 1000))
    s, ms = divmod(total_ms, 1000)
    m, s = divmod(s, 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def to_srt(captions: Sequence[Caption], highlight_words: bool = False) -> str:
    """Convert captions to an SRT formatted string.

    Args:
        captions: Ordered caption track.
        highlight_words: If ``True``, wrap each word in ``<b>`` tags.

    Returns:
        A string in SRT format.

    """
    srt_lines = []
    for cap in captions:
        srt_lines.append(str(cap.id))
        srt_lines.append(f"{_format_timestamp(cap.start)} --> {_format_timestamp(cap.end)}")
        if highlight_words and cap.words:
            text = " ".join(f"<b>{w.text}</b>" for w in cap.words)
        else:
            text = cap.text.strip()
        srt_lines.append(text)
        srt_lines.append("")
    return "\n".join(srt_lines)
