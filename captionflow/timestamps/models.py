"""Common data models for timestamped captions.

This module defines pydantic models that are shared across segmentation,
normalization, timeline assembly and formatting utilities.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AudioSegment",
    "Word",
    "Caption",
    "TimelineResult",
]


class AudioSegment(BaseModel):
    """A bounded window of the normalized audio, in absolute seconds."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Zero-based position of the segment.")
    source_path: Path = Field(..., description="Audio file holding this window.")
    start: float = Field(..., description="Absolute start offset (seconds).")
    end: float = Field(..., description="Absolute end offset (seconds).")

    @property
    def duration(self) -> float:
        """Length of the window in seconds."""
        return self.end - self.start


class Word(BaseModel):
    """Represents a single word with timing information."""

    text: str = Field(..., description="The transcribed word.")
    start: float = Field(..., description="Start time of the word in seconds.")
    end: float = Field(..., description="End time of the word in seconds.")
    confidence: float | None = Field(None, description="Optional confidence score of the word.")


class Caption(BaseModel):
    """A caption cue, optionally carrying word-level timing."""

    id: int = Field(..., description="1-based position within the track.")
    start: float = Field(..., description="Caption start time (seconds).")
    end: float = Field(..., description="Caption end time (seconds).")
    text: str = Field(..., description="Rendered caption text.")
    words: list[Word] | None = Field(None, description="Ordered words, when known.")


class TimelineResult(BaseModel):
    """Finalized caption track plus assembly diagnostics."""

    captions: list[Caption] = Field(..., description="Sorted, renumbered captions.")
    offset_applied: float = Field(0.0, description="Seconds shifted off every timestamp.")
    total_duration: float | None = Field(None, description="Audio duration used for coverage.")
    coverage: float | None = Field(None, description="last caption end / total duration.")
