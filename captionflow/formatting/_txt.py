"""Formatter for plain text (.txt) output."""

from collections.abc import Sequence

from captionflow.timestamps.models import Caption


def to_txt(captions: Sequence[Caption], **kwargs: object) -> str:
    """Join caption texts with single spaces; empty string for an empty track."""
    return " ".join(cap.text.strip() for cap in captions if cap.text.strip())
