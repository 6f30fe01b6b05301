"""Runtime configuration for the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Mapping

from usefulpayload.fetch.client import DEFAULT_FETCH_TIMEOUT_SECONDS
from usefulpayload.ingestion.models import SegmentMode
from usefulpayload.ingestion.segmentation import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE
from usefulpayload.ranking.budget import DEFAULT_TOKEN_ENCODING
from usefulpayload.ranking.dedupe import DEFAULT_DEDUPE_THRESHOLD
from usefulpayload.ranking.embeddings import (
    DEFAULT_EMBEDDING_BASE_URL,
    DEFAULT_EMBEDDING_BATCH_SIZE,
    EMBEDDING_BACKENDS,
)


DEFAULT_MAX_TOKENS = 2048
DEFAULT_RANKING_TIMEOUT_SECONDS = 60.0
STRATEGIES = ("keyword", "semantic")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    value = int(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    value = float(raw_value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_bool(*, name: str, raw_value: str) -> bool:
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag")


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Validated knobs for one pipeline instance."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    strategy: str = "keyword"
    segment_mode: SegmentMode | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    dedupe_threshold: float = DEFAULT_DEDUPE_THRESHOLD
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    ranking_timeout_seconds: float = DEFAULT_RANKING_TIMEOUT_SECONDS
    continue_on_fail: bool = True
    scoring_fallback: bool = True
    isolate_ranking: bool = False
    embedding_backend: str = "api"
    token_encoding: str = DEFAULT_TOKEN_ENCODING
    embedding_model: str = ""
    embedding_api_key: str = field(default="", repr=False)
    embedding_base_url: str = DEFAULT_EMBEDDING_BASE_URL
    embedding_batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE

    def __post_init__(self) -> None:
        if self.max_tokens < 0:
            raise ValueError("max_tokens cannot be negative")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of: {', '.join(STRATEGIES)}")
        if self.embedding_backend not in EMBEDDING_BACKENDS:
            raise ValueError(f"embedding_backend must be one of: {', '.join(EMBEDDING_BACKENDS)}")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        if not 0.0 <= self.dedupe_threshold <= 1.0:
            raise ValueError("dedupe_threshold must be between 0.0 and 1.0")
        if self.fetch_timeout_seconds <= 0 or self.ranking_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.embedding_batch_size <= 0:
            raise ValueError("embedding_batch_size must be positive")
        if not self.embedding_base_url.startswith(("http://", "https://")):
            raise ValueError("embedding_base_url must start with http:// or https://")

    @property
    def effective_segment_mode(self) -> SegmentMode:
        return self.segment_mode_for(self.strategy)

    def segment_mode_for(self, strategy: str) -> SegmentMode:
        """Semantic ranking works on chunks, keyword ranking on sentences, unless overridden."""

        if self.segment_mode is not None:
            return self.segment_mode
        return SegmentMode.CHUNK if strategy == "semantic" else SegmentMode.SENTENCE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        max_tokens_raw = source.get("PAYLOAD_MAX_TOKENS", str(DEFAULT_MAX_TOKENS)).strip()
        strategy_raw = source.get("PAYLOAD_STRATEGY", "keyword").strip().lower()
        segment_mode_raw = source.get("PAYLOAD_SEGMENT_MODE", "").strip().lower()
        chunk_size_raw = source.get("PAYLOAD_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)).strip()
        chunk_overlap_raw = source.get("PAYLOAD_CHUNK_OVERLAP", str(DEFAULT_CHUNK_OVERLAP)).strip()
        dedupe_raw = source.get("PAYLOAD_DEDUPE_THRESHOLD", str(DEFAULT_DEDUPE_THRESHOLD)).strip()
        fetch_timeout_raw = source.get("PAYLOAD_FETCH_TIMEOUT_SECONDS", str(DEFAULT_FETCH_TIMEOUT_SECONDS)).strip()
        ranking_timeout_raw = source.get(
            "PAYLOAD_RANKING_TIMEOUT_SECONDS", str(DEFAULT_RANKING_TIMEOUT_SECONDS)
        ).strip()
        continue_raw = source.get("PAYLOAD_CONTINUE_ON_FAIL", "true")
        fallback_raw = source.get("PAYLOAD_SCORING_FALLBACK", "true")
        isolate_raw = source.get("PAYLOAD_ISOLATE_RANKING", "false")
        backend_raw = source.get("PAYLOAD_EMBEDDING_BACKEND", "api").strip().lower()
        encoding_raw = source.get("PAYLOAD_TOKEN_ENCODING", DEFAULT_TOKEN_ENCODING).strip()
        embedding_model = source.get("PAYLOAD_EMBEDDING_MODEL", "").strip()
        embedding_api_key = source.get("PAYLOAD_EMBEDDING_API_KEY", "").strip()
        base_url_raw = source.get("PAYLOAD_EMBEDDING_BASE_URL", DEFAULT_EMBEDDING_BASE_URL).strip()
        batch_size_raw = source.get("PAYLOAD_EMBEDDING_BATCH_SIZE", str(DEFAULT_EMBEDDING_BATCH_SIZE)).strip()

        if not encoding_raw:
            raise ValueError("PAYLOAD_TOKEN_ENCODING cannot be empty")
        if not base_url_raw.startswith(("http://", "https://")):
            raise ValueError("PAYLOAD_EMBEDDING_BASE_URL must start with http:// or https://")

        segment_mode: SegmentMode | None = None
        if segment_mode_raw:
            try:
                segment_mode = SegmentMode(segment_mode_raw)
            except ValueError as exc:
                raise ValueError("PAYLOAD_SEGMENT_MODE must be 'sentence' or 'chunk'") from exc

        return cls(
            max_tokens=_parse_positive_int(name="PAYLOAD_MAX_TOKENS", raw_value=max_tokens_raw, minimum=0),
            strategy=strategy_raw,
            segment_mode=segment_mode,
            chunk_size=_parse_positive_int(name="PAYLOAD_CHUNK_SIZE", raw_value=chunk_size_raw),
            chunk_overlap=_parse_positive_int(name="PAYLOAD_CHUNK_OVERLAP", raw_value=chunk_overlap_raw, minimum=0),
            dedupe_threshold=_parse_positive_float(
                name="PAYLOAD_DEDUPE_THRESHOLD",
                raw_value=dedupe_raw,
                minimum=0.0,
            ),
            fetch_timeout_seconds=_parse_positive_float(
                name="PAYLOAD_FETCH_TIMEOUT_SECONDS",
                raw_value=fetch_timeout_raw,
            ),
            ranking_timeout_seconds=_parse_positive_float(
                name="PAYLOAD_RANKING_TIMEOUT_SECONDS",
                raw_value=ranking_timeout_raw,
            ),
            continue_on_fail=_parse_bool(name="PAYLOAD_CONTINUE_ON_FAIL", raw_value=continue_raw),
            scoring_fallback=_parse_bool(name="PAYLOAD_SCORING_FALLBACK", raw_value=fallback_raw),
            isolate_ranking=_parse_bool(name="PAYLOAD_ISOLATE_RANKING", raw_value=isolate_raw),
            embedding_backend=backend_raw,
            token_encoding=encoding_raw,
            embedding_model=embedding_model,
            embedding_api_key=embedding_api_key,
            embedding_base_url=base_url_raw.rstrip("/"),
            embedding_batch_size=_parse_positive_int(
                name="PAYLOAD_EMBEDDING_BATCH_SIZE",
                raw_value=batch_size_raw,
            ),
        )
