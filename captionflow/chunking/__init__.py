"""Segmentation utilities for long-form transcription.

This module provides tools for splitting long audio into bounded, contiguous
segments that are transcribed independently and reassembled afterwards.
"""

from .chunker import materialize_segments, plan_segments

__all__ = [
    "materialize_segments",
    "plan_segments",
]
