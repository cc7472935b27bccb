"""Formatter for JSON (.json) output."""

from collections.abc import Sequence

from pydantic import TypeAdapter

from captionflow.timestamps.models import Caption

_CAPTION_LIST = TypeAdapter(list[Caption])


def to_json(captions: Sequence[Caption], **kwargs: object) -> str:
    """Serialize captions as a pretty-printed JSON array.

    ``kwargs`` are accepted for registry compatibility and ignored.
    """
    return _CAPTION_LIST.dump_json(list(captions), indent=2, exclude_none=True).decode()
