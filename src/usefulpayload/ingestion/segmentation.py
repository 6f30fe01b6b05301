"""Split cleaned text into scoreable sentence or chunk units."""

from __future__ import annotations

import re

from razdel import sentenize

from usefulpayload.ingestion.models import SegmentMode, Unit
from usefulpayload.ingestion.normalization import normalize_whitespace

MIN_SENTENCE_CHARS = 30
MAX_SENTENCE_CHARS = 500
MAX_SENTENCE_PERIODS = 5
DEFAULT_CHUNK_SIZE = 300
DEFAULT_CHUNK_OVERLAP = 50
MIN_CHUNK_CHARS = 30

_WORD_RUN_RE = re.compile(r"\w{3,}")
_LETTER_RUN_RE = re.compile(r"[^\W\d_]{4,}")
_BOILERPLATE_RE = re.compile(r"copyright|terms|page \d+|privacy policy|cookie", re.IGNORECASE)


def is_content_sentence(sentence: str) -> bool:
    """Length, wording and boilerplate filter for sentence units."""

    if not MIN_SENTENCE_CHARS < len(sentence) < MAX_SENTENCE_CHARS:
        return False
    if not _WORD_RUN_RE.search(sentence):
        return False
    if _BOILERPLATE_RE.search(sentence):
        return False
    # Many periods means an un-split list rather than a sentence.
    return sentence.count(".") <= MAX_SENTENCE_PERIODS


def split_sentences(text: str) -> list[Unit]:
    sentences = (normalize_whitespace(match.text) for match in sentenize(text))
    kept = [sentence for sentence in sentences if is_content_sentence(sentence)]
    return [Unit(text=sentence, position=index) for index, sentence in enumerate(kept)]


def split_chunks(
    text: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Unit]:
    """Fixed-width overlapping character windows over whitespace-collapsed text."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap cannot be negative")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    collapsed = normalize_whitespace(text)
    step = chunk_size - chunk_overlap
    windows: list[str] = []

    for start in range(0, len(collapsed), step):
        window = collapsed[start : start + chunk_size].strip()
        if len(window) >= MIN_CHUNK_CHARS and _LETTER_RUN_RE.search(window):
            windows.append(window)

    return [Unit(text=window, position=index) for index, window in enumerate(windows)]


def segment(
    text: str,
    mode: SegmentMode = SegmentMode.SENTENCE,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Unit]:
    """Return units in source order; empty text yields no units."""

    if not text or not text.strip():
        return []
    if mode == SegmentMode.CHUNK:
        return split_chunks(text, chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return split_sentences(text)
