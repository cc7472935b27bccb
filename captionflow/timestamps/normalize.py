"""Normalize schema-variable STT responses into caption records.

Providers answer in one of a few shapes: a flat ``words`` array, a list of
``chunks`` (Hugging Face) or ``segments`` (OpenAI ``verbose_json``), plain
``text``, or nothing at all. :func:`classify_response` maps a raw payload to
exactly one :data:`ResponseVariant`; :func:`normalize_response` dispatches on
that variant and always returns captions with valid, segment-relative spans,
synthesizing timings wherever the provider left them out.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from captionflow.timestamps.models import Caption, Word
from captionflow.utils.constant import (
    DEGENERATE_MIN_DURATION_SEC,
    DEGENERATE_MIN_WORDS_PER_SEC,
    MIN_ESTIMATED_DURATION_SEC,
    MIN_SPAN_SEC,
    SECONDS_PER_WORD_ESTIMATE,
    WORDS_PER_CAPTION,
)

__all__ = [
    "ChunkedResponse",
    "EmptyResponse",
    "PlainTextResponse",
    "ResponseVariant",
    "WordArrayResponse",
    "classify_response",
    "normalize_response",
    "normalize_segment_response",
    "shift_captions",
]

logger = logging.getLogger(__name__)

# Sentence terminators, including the Devanagari danda used in Hindi text.
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?…।])\s+")


@dataclass(frozen=True)
class WordArrayResponse:
    """Provider returned a non-empty flat ``words`` array."""

    words: list[Any]
    duration: float | None = None


@dataclass(frozen=True)
class ChunkedResponse:
    """Provider returned ``chunks`` (or ``segments``) of text, maybe timed."""

    chunks: list[Mapping[str, Any]]
    duration: float | None = None


@dataclass(frozen=True)
class PlainTextResponse:
    """Provider returned only a transcript string."""

    text: str
    duration: float | None = None


@dataclass(frozen=True)
class EmptyResponse:
    """Nothing usable: silence, or an unrecognized payload shape."""

    keys: list[str] = field(default_factory=list)


ResponseVariant = Union[WordArrayResponse, ChunkedResponse, PlainTextResponse, EmptyResponse]


# ---------------------------------------------------------------------------
# Small parsing helpers
# ---------------------------------------------------------------------------


def _finite(value: Any) -> float | None:
    """Return ``value`` as a finite float, or ``None``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _entry_text(entry: Any) -> str:
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, Mapping):
        raw = entry.get("word", entry.get("text", ""))
        return raw.strip() if isinstance(raw, str) else ""
    return ""


def _timestamp_pair(entry: Any) -> tuple[float, float] | None:
    """Extract ``(start, end)`` from explicit fields or a ``timestamp`` pair.

    Both values must be finite numbers; validity (ordering, sign) is left to
    the caller.
    """
    if not isinstance(entry, Mapping):
        return None
    start, end = _finite(entry.get("start")), _finite(entry.get("end"))
    if start is not None and end is not None:
        return start, end
    stamp = entry.get("timestamp")
    if isinstance(stamp, Mapping):
        start, end = _finite(stamp.get("start")), _finite(stamp.get("end"))
    elif isinstance(stamp, (list, tuple)) and len(stamp) == 2:
        start, end = _finite(stamp[0]), _finite(stamp[1])
    else:
        return None
    if start is None or end is None:
        return None
    return start, end


def _is_valid_pair(pair: tuple[float, float] | None) -> bool:
    return pair is not None and pair[1] > pair[0] >= 0


def _confidence(entry: Any) -> float | None:
    if not isinstance(entry, Mapping):
        return None
    for key in ("score", "confidence", "probability"):
        value = _finite(entry.get(key))
        if value is not None:
            return value
    return None


def _clamp_span(start: float, end: float) -> tuple[float, float]:
    """Clamp negative starts to 0 and floor collapsed spans to ``MIN_SPAN_SEC``."""
    start = max(0.0, start)
    if end - start < MIN_SPAN_SEC:
        end = start + MIN_SPAN_SEC
    return start, end


def _effective_duration(
    segment_duration: float | None,
    response_duration: float | None,
    word_count: int,
) -> float:
    """Pick the window that synthesized timings are spread over.

    Preference: the caller-provided segment duration, then the duration the
    provider reported, then a words-per-second estimate with a floor.
    """
    for candidate in (segment_duration, response_duration):
        value = _finite(candidate)
        if value is not None and value > 0:
            return value
    return max(MIN_ESTIMATED_DURATION_SEC, SECONDS_PER_WORD_ESTIMATE * word_count)


def _subdivide(tokens: Sequence[str], start: float, end: float) -> list[Word]:
    """Spread ``tokens`` evenly over ``[start, end)``."""
    if not tokens:
        return []
    step = (end - start) / len(tokens)
    words: list[Word] = []
    for i, token in enumerate(tokens):
        w_start, w_end = _clamp_span(start + i * step, start + (i + 1) * step)
        words.append(Word(text=token, start=w_start, end=w_end))
    return words


def _caption(index: int, words: list[Word], span: tuple[float, float] | None = None) -> Caption:
    """Build a caption whose span covers ``span`` (if given) and all ``words``."""
    starts = [w.start for w in words]
    ends = [w.end for w in words]
    if span is not None:
        starts.append(span[0])
        ends.append(span[1])
    start, end = _clamp_span(min(starts), max(ends))
    return Caption(
        id=index,
        start=start,
        end=end,
        text=" ".join(w.text for w in words),
        words=words,
    )


def _batch(words: list[Word], size: int = WORDS_PER_CAPTION) -> list[Caption]:
    return [
        _caption(n + 1, words[i : i + size]) for n, i in enumerate(range(0, len(words), size))
    ]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_response(payload: Any) -> ResponseVariant:
    """Classify a raw provider payload into exactly one response variant.

    Priority: non-empty ``words`` > non-empty ``chunks``/``segments`` >
    non-empty ``text`` > nothing. Entries without text do not count towards
    "non-empty".

    Args:
        payload: Parsed JSON returned by the STT client.

    Returns:
        The matching variant.
    """
    if not isinstance(payload, Mapping):
        return EmptyResponse()

    duration = _finite(payload.get("duration"))

    words = payload.get("words")
    if isinstance(words, list) and any(_entry_text(w) for w in words):
        return WordArrayResponse(words=words, duration=duration)

    for key in ("chunks", "segments"):
        chunks = payload.get(key)
        if isinstance(chunks, list) and any(_entry_text(c) for c in chunks):
            return ChunkedResponse(
                chunks=[c for c in chunks if isinstance(c, Mapping)], duration=duration
            )

    text = payload.get("text")
    if isinstance(text, str) and text.strip():
        return PlainTextResponse(text=text.strip(), duration=duration)

    return EmptyResponse(keys=sorted(str(k) for k in payload))


# ---------------------------------------------------------------------------
# Per-variant normalization
# ---------------------------------------------------------------------------


def _normalize_words(resp: WordArrayResponse, segment_duration: float | None) -> list[Caption]:
    entries = [w for w in resp.words if _entry_text(w)]
    duration = _effective_duration(segment_duration, resp.duration, len(entries))
    slot = duration / len(entries)

    words: list[Word] = []
    for i, entry in enumerate(entries):
        pair = _timestamp_pair(entry)
        start, end = pair if pair is not None else (i * slot, (i + 1) * slot)
        start, end = _clamp_span(start, end)
        words.append(
            Word(text=_entry_text(entry), start=start, end=end, confidence=_confidence(entry))
        )
    words.sort(key=lambda w: w.start)
    return _batch(words)


def _chunk_words(chunk: Mapping[str, Any]) -> tuple[list[str], list[Word] | None]:
    """Return the chunk's tokens plus its own timed words, when it has them."""
    nested = chunk.get("words")
    if isinstance(nested, list):
        entries = [w for w in nested if _entry_text(w)]
        if entries:
            tokens = [_entry_text(w) for w in entries]
            pairs = [_timestamp_pair(w) for w in entries]
            if all(_is_valid_pair(p) for p in pairs):
                timed = [
                    Word(text=t, start=p[0], end=p[1], confidence=_confidence(w))  # type: ignore[index]
                    for t, p, w in zip(tokens, pairs, entries)
                ]
                timed.sort(key=lambda w: w.start)
                return tokens, timed
            return tokens, None
    return _entry_text(chunk).split(), None


def _is_degenerate(word_count: int, duration: float) -> bool:
    """Heuristic: a long window holding implausibly few words.

    Providers occasionally squeeze a sparse transcript of a long segment into
    the first few seconds. Thresholds are tunable through the environment.
    """
    if duration <= DEGENERATE_MIN_DURATION_SEC:
        return False
    return word_count / duration < DEGENERATE_MIN_WORDS_PER_SEC


def _normalize_chunks(resp: ChunkedResponse, segment_duration: float | None) -> list[Caption]:
    chunks = [c for c in resp.chunks if _entry_text(c)]
    tokenized = [_chunk_words(c) for c in chunks]
    total_words = sum(len(tokens) for tokens, _ in tokenized)
    duration = _effective_duration(segment_duration, resp.duration, total_words)

    if _is_degenerate(total_words, duration):
        logger.info(
            "Sparse transcript (%d words over %.1fs); spreading words over the full segment",
            total_words,
            duration,
        )
        step = duration / total_words
        captions: list[Caption] = []
        cursor = 0
        for tokens, _ in tokenized:
            words = []
            for token in tokens:
                start, end = _clamp_span(cursor * step, (cursor + 1) * step)
                words.append(Word(text=token, start=start, end=end))
                cursor += 1
            captions.append(_caption(len(captions) + 1, words))
        return captions

    slice_len = duration / len(chunks)
    captions = []
    for i, (chunk, (tokens, timed)) in enumerate(zip(chunks, tokenized)):
        pair = _timestamp_pair(chunk)
        if not _is_valid_pair(pair):
            pair = (i * slice_len, (i + 1) * slice_len)
        span = _clamp_span(*pair)  # type: ignore[misc]
        words = timed if timed is not None else _subdivide(tokens, *span)
        captions.append(_caption(len(captions) + 1, words, span))
    return captions


def _normalize_text(resp: PlainTextResponse, segment_duration: float | None) -> list[Caption]:
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(resp.text) if s.strip()]
    tokenized = [s.split() for s in sentences]
    total_words = sum(len(t) for t in tokenized)
    duration = _effective_duration(segment_duration, resp.duration, total_words)

    if len(sentences) < 2:
        return _batch(_subdivide(resp.text.split(), 0.0, duration))

    captions: list[Caption] = []
    cursor = 0.0
    for tokens in tokenized:
        span_len = duration * len(tokens) / total_words
        span = _clamp_span(cursor, cursor + span_len)
        captions.append(_caption(len(captions) + 1, _subdivide(tokens, *span), span))
        cursor += span_len
    return captions


def normalize_response(payload: Any, segment_duration: float | None = None) -> list[Caption]:
    """Convert one segment's raw STT payload into segment-relative captions.

    Args:
        payload: Parsed JSON returned by the STT client.
        segment_duration: Actual duration of the segment in seconds, if known.

    Returns:
        Captions numbered ``1..N`` with ``start < end`` and word spans inside
        their caption. Empty when the payload carries no usable transcript.
    """
    variant = classify_response(payload)
    if isinstance(variant, WordArrayResponse):
        return _normalize_words(variant, segment_duration)
    if isinstance(variant, ChunkedResponse):
        return _normalize_chunks(variant, segment_duration)
    if isinstance(variant, PlainTextResponse):
        return _normalize_text(variant, segment_duration)
    logger.warning(
        "STT response contained no usable transcript (keys=%s); treating as silence",
        variant.keys,
    )
    return []


def shift_captions(captions: Sequence[Caption], offset: float) -> list[Caption]:
    """Return copies of ``captions`` with every span moved by ``offset`` seconds."""
    shifted: list[Caption] = []
    for cap in captions:
        words = None
        if cap.words is not None:
            words = [
                w.model_copy(update={"start": w.start + offset, "end": w.end + offset})
                for w in cap.words
            ]
        shifted.append(
            cap.model_copy(
                update={"start": cap.start + offset, "end": cap.end + offset, "words": words}
            )
        )
    return shifted


def normalize_segment_response(
    payload: Any,
    offset: float,
    duration: float | None = None,
) -> list[Caption]:
    """Normalize one segment's payload and move it to absolute time.

    Args:
        payload: Parsed JSON returned by the STT client.
        offset: Absolute start of the segment in seconds.
        duration: Actual duration of the segment, if known.

    Returns:
        Captions expressed in absolute seconds.
    """
    return shift_captions(normalize_response(payload, duration), offset)
