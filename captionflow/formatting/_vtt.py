"""Formatter for Web Video Text Tracks format (.vtt)."""

from collections.abc import Sequence

from captionflow.timestamps.models import Caption


def _format_timestamp(seconds: float) -> str:
    """Convert a non-negative number of seconds to a WebVTT timestamp ``HH:MM:SS.mmm``.

    Raises:
        ValueError: If ``seconds`` is negative.
    """
    if seconds < 0:
        raise ValueError("non-negative timestamp required")
    total_ms = int(round(seconds * 1000))
    s, ms = divmod(total_ms, 1000)
    m, s = divmod(s, 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def to_vtt(captions: Sequence[Caption], highlight_words: bool = False) -> str:
    """Convert captions to a VTT formatted string.

    Cue identifiers are the caption ids.

    Args:
        captions: Ordered caption track.
        highlight_words: If ``True``, surround each word with ``<c.highlight>`` tags.

    Returns:
        A string in VTT format.

    """
    vtt_lines = ["WEBVTT", ""]
    for cap in captions:
        vtt_lines.append(str(cap.id))
        vtt_lines.append(f"{_format_timestamp(cap.start)} --> {_format_timestamp(cap.end)}")
        if highlight_words and cap.words:
            text = " ".join(f"<c.highlight>{w.text}</c.highlight>" for w in cap.words)
        else:
            text = cap.text.strip()
        vtt_lines.append(text)
        vtt_lines.append("")
    return "\n".join(vtt_lines)
