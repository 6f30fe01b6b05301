"""Near-duplicate removal over ranked units."""

from __future__ import annotations

from collections.abc import Sequence

from usefulpayload.ingestion.models import ScoredUnit
from usefulpayload.ingestion.normalization import word_set

DEFAULT_DEDUPE_THRESHOLD = 0.7


def _set_overlap(left: frozenset[str], right: frozenset[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def jaccard_similarity(left: str, right: str) -> float:
    """Word-set overlap of two texts; pairs with no words at all score zero."""

    return _set_overlap(word_set(left), word_set(right))


def rank_order(units: Sequence[ScoredUnit]) -> list[ScoredUnit]:
    """Highest score first, earlier position first among equals."""

    return sorted(units, key=lambda unit: (-unit.score, unit.position))


def dedupe(
    scored_units: Sequence[ScoredUnit],
    *,
    threshold: float = DEFAULT_DEDUPE_THRESHOLD,
) -> list[ScoredUnit]:
    """Drop units too similar to a better-ranked unit that was already kept."""

    if not 0.0 <= threshold <= 1.0:
        raise ValueError("threshold must be between 0.0 and 1.0")

    accepted: list[ScoredUnit] = []
    accepted_words: list[frozenset[str]] = []

    for candidate in rank_order(scored_units):
        words = word_set(candidate.text)
        if any(_set_overlap(words, kept) > threshold for kept in accepted_words):
            continue
        accepted.append(candidate)
        accepted_words.append(words)

    return accepted
