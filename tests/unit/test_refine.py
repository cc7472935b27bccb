"""Unit tests for caption validation and merging."""

from __future__ import annotations

import pytest

from captionflow.errors import CaptionValidationError
from captionflow.formatting.refine import (
    ensure_valid_captions,
    merge_overlapping_captions,
    validate_captions,
)
from captionflow.timestamps.models import Caption, Word


def test_valid_track_has_no_errors(make_caption) -> None:
    captions = [make_caption(1, 0.0, 2.0), make_caption(2, 2.0, 4.0)]

    assert validate_captions(captions) == []
    ensure_valid_captions(captions)


def test_empty_track_is_invalid() -> None:
    assert validate_captions([]) == ["Captions array is empty"]


def test_structural_errors_are_all_reported() -> None:
    captions = [
        Caption(id=1, start=-1.0, end=1.0, text="negative"),
        Caption(id=5, start=2.0, end=2.0, text="  "),
        Caption(id=0, start=1.5, end=3.0, text="back in time"),
    ]

    errors = validate_captions(captions)

    assert errors == [
        "Caption 1 has negative start time",
        "Caption 2 has no text",
        "Caption 2 has end time before or equal to start time",
        "Caption 2 has non-sequential ID 5",
        "Caption 3 has invalid ID",
        "Caption 3 starts before the previous caption",
    ]


def test_word_errors() -> None:
    caption = Caption(
        id=1,
        start=0.0,
        end=2.0,
        text="a b c",
        words=[
            Word(text="a", start=0.5, end=1.0),
            Word(text="b", start=0.2, end=0.2),
            Word(text="c", start=1.5, end=2.5),
        ],
    )

    errors = validate_captions([caption])

    assert errors == [
        "Caption 1 word 2 has end time before or equal to start time",
        "Caption 1 word 2 is out of order",
        "Caption 1 word 3 lies outside the caption span",
    ]


def test_ensure_valid_captions_raises_with_every_error() -> None:
    with pytest.raises(CaptionValidationError) as excinfo:
        ensure_valid_captions([Caption(id=2, start=0.0, end=1.0, text="x")])

    assert excinfo.value.errors == ["Caption 1 has non-sequential ID 2"]
    assert isinstance(excinfo.value, ValueError)


def test_merge_overlapping_and_close_captions(make_caption) -> None:
    captions = [
        make_caption(1, 0.0, 2.0, "hello there"),
        make_caption(2, 1.5, 3.0, "general kenobi"),
        make_caption(3, 3.4, 4.0, "close"),
        make_caption(4, 6.0, 7.0, "far away"),
    ]

    merged = merge_overlapping_captions(captions, max_gap=0.5)

    assert [(c.id, c.start, c.end, c.text) for c in merged] == [
        (1, 0.0, 4.0, "hello there general kenobi close"),
        (2, 6.0, 7.0, "far away"),
    ]
    assert [w.text for w in merged[0].words] == ["hello", "there", "general", "kenobi", "close"]


def test_merge_gap_boundary(make_caption) -> None:
    """A gap just above ``max_gap`` keeps captions apart."""
    captions = [make_caption(1, 0.0, 1.0, "a"), make_caption(2, 1.75, 2.0, "b")]

    assert len(merge_overlapping_captions(captions, max_gap=0.5)) == 2
    assert len(merge_overlapping_captions(captions, max_gap=1.0)) == 1


def test_merge_drops_words_when_one_side_lacks_them(make_caption) -> None:
    captions = [
        make_caption(1, 0.0, 1.0, "timed"),
        make_caption(2, 1.0, 2.0, "untimed", with_words=False),
    ]

    merged = merge_overlapping_captions(captions)

    assert merged[0].text == "timed untimed"
    assert merged[0].words is None


def test_merge_does_not_mutate_input(make_caption) -> None:
    captions = [make_caption(1, 0.0, 1.0, "a"), make_caption(2, 0.5, 2.0, "b")]

    merge_overlapping_captions(captions)

    assert captions[0].end == 1.0
    assert captions[0].text == "a"


def test_merge_empty() -> None:
    assert merge_overlapping_captions([]) == []
