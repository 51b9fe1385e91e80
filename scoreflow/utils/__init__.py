"""Utility helpers for the scoreflow viewer."""

from .markdown_blocks import SCORE_LANGUAGE, Segment, split_document

__all__ = ["SCORE_LANGUAGE", "Segment", "split_document"]
