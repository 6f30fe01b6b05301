"""Relevance scoring strategies for segmented units."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging
import re
from typing import Protocol

import numpy as np

from usefulpayload.ingestion.models import ScoredUnit, Unit
from usefulpayload.ingestion.normalization import word_set
from usefulpayload.ranking.embeddings import Embedder

logger = logging.getLogger(__name__)

MIN_QUERY_TOKEN_CHARS = 3

_QUERY_TOKEN_RE = re.compile(r"\w+")


@dataclass(slots=True)
class ScoringError(RuntimeError):
    """Ranking could not be computed for a document."""

    strategy: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (strategy={self.strategy})"


class RelevanceScorer(Protocol):
    name: str

    def score(self, units: Sequence[Unit]) -> list[ScoredUnit]:
        """Score every unit, returning them in input order."""


def query_tokens(query: str) -> frozenset[str]:
    """Distinct lower-case query words long enough to carry meaning."""

    return frozenset(
        token
        for token in _QUERY_TOKEN_RE.findall(query.casefold())
        if len(token) >= MIN_QUERY_TOKEN_CHARS
    )


class KeywordOverlapScorer:
    """Count how many query words appear as whole words in each unit."""

    name = "keyword"

    def __init__(self, query: str | None) -> None:
        self._tokens = query_tokens(query or "")

    @property
    def tokens(self) -> frozenset[str]:
        return self._tokens

    def score(self, units: Sequence[Unit]) -> list[ScoredUnit]:
        return [
            ScoredUnit.from_unit(unit, float(len(self._tokens & word_set(unit.text))))
            for unit in units
        ]


def cosine_similarity(a: np.ndarray | Sequence[float], b: np.ndarray | Sequence[float]) -> float:
    """Cosine of two vectors; zero when either has zero length."""

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(left) * np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    return vectors / safe


class SemanticCentroidScorer:
    """Score units by similarity to the mean embedding of the whole document."""

    name = "semantic"

    def __init__(self, embedder: Embedder) -> None:
        self._embedder = embedder

    def score(self, units: Sequence[Unit]) -> list[ScoredUnit]:
        if not units:
            return []

        vectors = self._embed([unit.text for unit in units])
        normalized = _normalize_rows(vectors)
        centroid = normalized.mean(axis=0)
        logger.debug("Computed centroid over %d unit embedding(s)", len(units))

        return [
            ScoredUnit.from_unit(unit, max(0.0, cosine_similarity(vector, centroid)))
            for unit, vector in zip(units, normalized)
        ]

    def _embed(self, texts: list[str]) -> np.ndarray:
        try:
            vectors = self._embedder.embed_texts(texts, stage="units")
        except Exception as exc:
            raise ScoringError(self.name, f"Embedding failed: {exc}") from exc

        array = np.asarray(vectors, dtype=np.float64)
        if array.ndim != 2 or array.shape[0] != len(texts):
            raise ScoringError(
                self.name,
                f"Embedder returned shape {array.shape} for {len(texts)} unit(s)",
            )
        return array
