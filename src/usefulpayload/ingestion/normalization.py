"""Text normalization helpers shared by cleaning, segmentation and dedupe."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_NEWLINE_RUN_RE = re.compile(r"\s*\n\s*")
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_WORD_RE = re.compile(r"\w+")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs while keeping single line breaks."""

    collapsed = _NEWLINE_RUN_RE.sub("\n", text)
    return _INLINE_SPACE_RE.sub(" ", collapsed)


def word_set(text: str) -> frozenset[str]:
    """Lower-case word tokens used for overlap comparisons."""

    return frozenset(match.group(0) for match in _WORD_RE.finditer(text.casefold()))
