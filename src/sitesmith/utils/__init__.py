"""Utilities for sitesmith."""

from sitesmith.utils.error_extractor import (
    MAX_EXCERPT_CHARS,
    TAIL_LINES,
    extract_build_error,
)

__all__ = [
    "MAX_EXCERPT_CHARS",
    "TAIL_LINES",
    "extract_build_error",
]
