"""Markdown adapter that strips formatting syntax and keeps the prose."""

from __future__ import annotations

import re

from usefulpayload.ingestion.adapters.txt_adapter import decode_text
from usefulpayload.ingestion.models import FormatTag

# Ordered rewrites; fences and images go before links and emphasis.
_MARKDOWN_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"<[^>\n]*>"), ""),
    (re.compile(r"^[ \t]*(?:```|~~~).*$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*=+[ \t]*$|^[ \t]*-{2,}[ \t]*$", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*#{1,6}[ \t]+(.*?)[ \t]*#*[ \t]*$", re.MULTILINE), r"\1"),
    (re.compile(r"^[ \t]*>[ \t]?", re.MULTILINE), ""),
    (re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+", re.MULTILINE), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\[[^\]]*\]"), r"\1"),
    (re.compile(r"^[ \t]*\[[^\]]+\]:[ \t]*\S+.*$", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(?<![\w*])([*_])(?!\s)(.+?)(?<!\s)\1(?![\w*])"), r"\2"),
    (re.compile(r"~~(.+?)~~"), r"\1"),
    (re.compile(r"`([^`\n]*)`"), r"\1"),
)


def strip_markdown(text: str) -> str:
    """Remove markdown syntax while keeping link text, image alt text and code."""

    stripped = text
    for pattern, replacement in _MARKDOWN_RULES:
        stripped = pattern.sub(replacement, stripped)
    return stripped


class MarkdownAdapter:
    format = FormatTag.MARKDOWN

    def extract_text(self, content: bytes) -> str:
        return strip_markdown(decode_text(content))
