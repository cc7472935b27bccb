"""Caption track serializers, looked up by format name.

The CLI picks a serializer from ``--output-format`` and names the output file
with its extension; the export route uses the same entry for the
``Content-Type`` and ``Content-Disposition`` headers.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from captionflow.timestamps.models import Caption

from ._json import to_json
from ._srt import to_srt
from ._txt import to_txt
from ._vtt import to_vtt


@dataclass(frozen=True)
class FormatterSpec:
    """One output format.

    Attributes:
        format_func: Serializes a caption track.
        file_extension: Extension including the leading dot.
        media_type: ``Content-Type`` for HTTP downloads.
        supports_highlighting: ``format_func`` accepts ``highlight_words``.
    """

    format_func: Callable[..., str]
    file_extension: str
    media_type: str
    supports_highlighting: bool = False

    def render(self, captions: Sequence[Caption], *, highlight_words: bool = False) -> str:
        """Serialize ``captions``; ``highlight_words`` is ignored where unsupported."""
        if self.supports_highlighting:
            return self.format_func(captions, highlight_words=highlight_words)
        return self.format_func(captions)


FORMATTERS: dict[str, FormatterSpec] = {
    "srt": FormatterSpec(to_srt, ".srt", "application/x-subrip", supports_highlighting=True),
    "vtt": FormatterSpec(to_vtt, ".vtt", "text/vtt", supports_highlighting=True),
    "json": FormatterSpec(to_json, ".json", "application/json"),
    "txt": FormatterSpec(to_txt, ".txt", "text/plain"),
}


def get_formatter_spec(format_name: str) -> FormatterSpec:
    """Look up a format case-insensitively.

    Raises:
        ValueError: If ``format_name`` is not registered.
    """
    try:
        return FORMATTERS[format_name.strip().lower()]
    except KeyError:
        supported = ", ".join(FORMATTERS)
        raise ValueError(
            f"Unsupported format: '{format_name}'. Supported formats are: {supported}"
        ) from None


def get_formatter(format_name: str) -> Callable[[Sequence[Caption]], str]:
    """Return the plain serializer for ``format_name``."""
    return get_formatter_spec(format_name).format_func


__all__ = [
    "FORMATTERS",
    "FormatterSpec",
    "get_formatter",
    "get_formatter_spec",
]
