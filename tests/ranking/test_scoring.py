from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pytest

from usefulpayload.ingestion.models import Unit
from usefulpayload.ranking.scoring import (
    KeywordOverlapScorer,
    ScoringError,
    SemanticCentroidScorer,
    cosine_similarity,
    query_tokens,
)


class _FakeEmbedder:
    def __init__(self, vectors: list[list[float]] | Exception) -> None:
        self._vectors = vectors
        self.calls: list[list[str]] = []

    @property
    def model(self) -> str:
        return "fake-embedder"

    def embed_texts(self, texts: Sequence[str], *, stage: str = "units") -> np.ndarray:
        self.calls.append(list(texts))
        if isinstance(self._vectors, Exception):
            raise self._vectors
        return np.asarray(self._vectors, dtype=np.float32)


def _units(*texts: str) -> list[Unit]:
    return [Unit(text=text, position=index) for index, text in enumerate(texts)]


def test_query_tokens_drop_short_words() -> None:
    assert query_tokens("AI is a big Field, big") == frozenset({"big", "field"})


def test_keyword_scores_count_distinct_query_words() -> None:
    units = _units(
        "Neural networks need careful training.",
        "The weather was pleasant on Sunday.",
        "Training networks of neurons takes time.",
    )

    scored = KeywordOverlapScorer("neural networks training").score(units)

    assert [unit.score for unit in scored] == [3.0, 0.0, 2.0]
    assert [unit.position for unit in scored] == [0, 1, 2]


def test_keyword_scores_are_zero_without_a_query() -> None:
    scored = KeywordOverlapScorer(None).score(_units("Anything at all goes here."))

    assert [unit.score for unit in scored] == [0.0]


def test_cosine_similarity_is_zero_for_zero_vectors() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_semantic_scores_favor_units_near_the_centroid() -> None:
    embedder = _FakeEmbedder([[1.0, 0.0], [2.0, 0.0], [0.0, 1.0]])
    units = _units("alpha text", "beta text", "gamma text")

    scored = SemanticCentroidScorer(embedder).score(units)

    assert embedder.calls == [["alpha text", "beta text", "gamma text"]]
    assert scored[0].score == pytest.approx(scored[1].score)
    assert scored[0].score > scored[2].score
    assert all(0.0 <= unit.score <= 1.0 for unit in scored)


def test_semantic_scores_are_clamped_at_zero() -> None:
    embedder = _FakeEmbedder([[1.0, 0.0], [1.0, 0.0], [1.0, 0.0], [-1.0, 0.0]])

    scored = SemanticCentroidScorer(embedder).score(_units("a", "b", "c", "d"))

    assert scored[3].score == 0.0


def test_semantic_scorer_skips_embedding_for_no_units() -> None:
    embedder = _FakeEmbedder([])

    assert SemanticCentroidScorer(embedder).score([]) == []
    assert embedder.calls == []


def test_semantic_scorer_wraps_embedder_failures() -> None:
    embedder = _FakeEmbedder(RuntimeError("model offline"))

    with pytest.raises(ScoringError, match="model offline"):
        SemanticCentroidScorer(embedder).score(_units("alpha"))


def test_semantic_scorer_rejects_mismatched_vector_count() -> None:
    embedder = _FakeEmbedder([[1.0, 0.0]])

    with pytest.raises(ScoringError, match="shape"):
        SemanticCentroidScorer(embedder).score(_units("alpha", "beta"))
