"""Ordered normalization passes that strip extraction noise from raw text."""

from __future__ import annotations

from collections.abc import Callable
import re

from usefulpayload.ingestion.normalization import collapse_whitespace

BOILERPLATE_LINE_CHARS = 80

# A caption runs from its marker to the end of its sentence or line.
_CAPTION_RE = re.compile(r"\b(?:figure|chart|image)\s?\d+[^.\n]*\.?", re.IGNORECASE)
_PATH_RE = re.compile(r"(?:/[\w\-./]+)+")
_MARKUP_RE = re.compile(r"[{<][^}>\n]+[}>]")


def remove_captions(text: str) -> str:
    return _CAPTION_RE.sub("", text)


def remove_paths(text: str) -> str:
    return _PATH_RE.sub("", text)


def remove_markup(text: str) -> str:
    return _MARKUP_RE.sub("", text)


def remove_boilerplate_lines(text: str) -> str:
    """Blank out long lines without a period; they are usually navigation or legal text."""

    lines = text.split("\n")
    return "\n".join(
        "" if len(line) > BOILERPLATE_LINE_CHARS and "." not in line else line
        for line in lines
    )


CLEANING_PASSES: tuple[Callable[[str], str], ...] = (
    remove_captions,
    remove_paths,
    remove_markup,
    remove_boilerplate_lines,
    collapse_whitespace,
    str.strip,
)


def _apply_passes(text: str) -> str:
    for cleaning_pass in CLEANING_PASSES:
        text = cleaning_pass(text)
    return text


def clean(raw_text: str) -> str:
    """Run every pass in order until the text stops changing."""

    current = raw_text
    while True:
        cleaned = _apply_passes(current)
        if cleaned == current:
            return cleaned
        current = cleaned
