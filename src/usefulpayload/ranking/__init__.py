"""Relevance ranking, dedupe and budgeted selection."""

from .budget import TiktokenCounter, TokenCounter, select
from .dedupe import dedupe, jaccard_similarity
from .embeddings import ApiEmbedder, Embedder, EmbeddingRequestError, LocalEmbedder, build_embedder
from .scoring import (
    KeywordOverlapScorer,
    RelevanceScorer,
    ScoringError,
    SemanticCentroidScorer,
    cosine_similarity,
)

__all__ = [
    "ApiEmbedder",
    "Embedder",
    "EmbeddingRequestError",
    "KeywordOverlapScorer",
    "LocalEmbedder",
    "RelevanceScorer",
    "ScoringError",
    "SemanticCentroidScorer",
    "TiktokenCounter",
    "TokenCounter",
    "build_embedder",
    "cosine_similarity",
    "dedupe",
    "jaccard_similarity",
    "select",
]
