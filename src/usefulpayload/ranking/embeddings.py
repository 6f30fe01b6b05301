"""Embedding backends used by semantic centroid ranking."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Iterator, Protocol, Sequence

import numpy as np
import openai

LOGGER = logging.getLogger(__name__)

EMBEDDING_BACKENDS = ("api", "local")
DEFAULT_EMBEDDING_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LOCAL_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
# OpenAI-compatible endpoints cap the number of inputs per request.
DEFAULT_EMBEDDING_BATCH_SIZE = 64

_TRANSIENT_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504})
_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    TimeoutError,
    ConnectionError,
)


@dataclass(slots=True)
class EmbeddingRequestError(RuntimeError):
    """Domain error raised for failed embedding requests or invalid responses."""

    model: str
    stage: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (model={self.model}, stage={self.stage})"


class Embedder(Protocol):
    @property
    def model(self) -> str:
        ...

    def embed_texts(self, texts: Sequence[str], *, stage: str = "units") -> np.ndarray:
        ...


def _clean_inputs(texts: Sequence[str]) -> list[str]:
    payload = [text.strip() for text in texts]
    if not payload or not all(payload):
        raise ValueError("texts cannot be empty")
    return payload


def _batches(payload: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(payload), size):
        yield payload[start : start + size]


def _is_transient(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) in _TRANSIENT_STATUS_CODES:
        return True
    return isinstance(exc, _TRANSIENT_ERRORS)


def _row_field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def _batch_matrix(response: Any, *, size: int, model: str, stage: str) -> np.ndarray:
    """Turn one embeddings response into a ``(size, dim)`` matrix in input order.

    Rows carry an ``index`` that refers back to the request's input list; rows
    without one keep their response position.
    """

    rows = _row_field(response, "data")
    if not isinstance(rows, list) or len(rows) != size:
        got = len(rows) if isinstance(rows, list) else "no"
        raise EmbeddingRequestError(model, stage, f"Expected {size} embedding row(s) in batch, got {got}")

    ordered: list[Any] = [None] * size
    for position, row in enumerate(rows):
        index = _row_field(row, "index")
        slot = position if index is None else int(index)
        if not 0 <= slot < size or ordered[slot] is not None:
            raise EmbeddingRequestError(model, stage, f"Embedding row index {slot} is out of place")
        ordered[slot] = _row_field(row, "embedding")

    try:
        matrix = np.asarray(ordered, dtype=np.float32)
    except (TypeError, ValueError) as exc:
        raise EmbeddingRequestError(model, stage, "Embedding rows are not equal-length numeric vectors") from exc
    if matrix.ndim != 2 or matrix.shape[1] == 0:
        raise EmbeddingRequestError(model, stage, "Embedding rows are not equal-length numeric vectors")
    return matrix


class ApiEmbedder:
    """Embeds units through an OpenAI-compatible endpoint in bounded batches.

    Long documents produce more chunks than one request may carry, so inputs
    are sent ``batch_size`` at a time and the per-batch matrices are stacked
    back together. Each batch is retried on its own when the failure looks
    transient (rate limits, 5xx, dropped connections).
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str = "",
        base_url: str = DEFAULT_EMBEDDING_BASE_URL,
        batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
        client: Any | None = None,
        max_retries: int = 2,
        backoff_seconds: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not model:
            raise ValueError("model is required for api embeddings")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_retries < 0 or backoff_seconds < 0:
            raise ValueError("retry settings cannot be negative")
        if client is None:
            if not api_key:
                raise ValueError("api_key is required for api embeddings")
            client = openai.OpenAI(api_key=api_key, base_url=base_url)

        self._model = model
        self._client = client
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._model

    def embed_texts(self, texts: Sequence[str], *, stage: str = "units") -> np.ndarray:
        payload = _clean_inputs(texts)
        blocks: list[np.ndarray] = []

        for number, batch in enumerate(_batches(payload, self._batch_size), start=1):
            block = _batch_matrix(self._create(batch, stage), size=len(batch), model=self._model, stage=stage)
            if blocks and block.shape[1] != blocks[0].shape[1]:
                raise EmbeddingRequestError(
                    self._model,
                    stage,
                    f"Batch {number} returned dimension {block.shape[1]}, expected {blocks[0].shape[1]}",
                )
            blocks.append(block)

        LOGGER.debug("Embedded %d %s in %d batch(es) with %s", len(payload), stage, len(blocks), self._model)
        return np.vstack(blocks)

    def _create(self, batch: list[str], stage: str) -> Any:
        attempt = 0
        while True:
            try:
                return self._client.embeddings.create(model=self._model, input=batch)
            except Exception as exc:
                if attempt >= self._max_retries or not _is_transient(exc):
                    raise EmbeddingRequestError(
                        self._model,
                        stage,
                        f"Embedding request failed after {attempt + 1} attempt(s): {exc}",
                    ) from exc
                delay = self._backoff_seconds * (2**attempt)
                LOGGER.warning("Transient embedding failure (%s), retrying in %.2fs", exc, delay)
                self._sleep(delay)
                attempt += 1


class LocalEmbedder:
    """In-process sentence-transformers model with mean pooling and unit-length output."""

    def __init__(
        self,
        model_name: str = DEFAULT_LOCAL_EMBEDDING_MODEL,
        *,
        batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
        device: str | None = None,
        encoder: Any | None = None,
    ) -> None:
        self._model_name = model_name
        self._batch_size = batch_size
        self._device = device
        self._encoder: Any | None = encoder

    @property
    def model(self) -> str:
        return self._model_name

    def embed_texts(self, texts: Sequence[str], *, stage: str = "units") -> np.ndarray:
        payload = _clean_inputs(texts)

        encoder = self._load_encoder(stage)
        try:
            vectors = encoder.encode(
                payload,
                batch_size=self._batch_size,
                normalize_embeddings=True,
                convert_to_numpy=True,
            )
        except Exception as exc:
            raise EmbeddingRequestError(self._model_name, stage, f"Local embedding failed: {exc}") from exc
        return np.asarray(vectors, dtype=np.float32)

    def _load_encoder(self, stage: str) -> Any:
        if self._encoder is not None:
            return self._encoder
        try:
            from sentence_transformers import SentenceTransformer

            self._encoder = SentenceTransformer(self._model_name, device=self._device)
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise EmbeddingRequestError(
                self._model_name,
                stage,
                f"Failed to load sentence-transformers model: {exc}",
            ) from exc
        return self._encoder


def build_embedder(
    backend: str = "api",
    *,
    model: str = "",
    api_key: str = "",
    base_url: str = DEFAULT_EMBEDDING_BASE_URL,
    batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
) -> Embedder:
    """Construct the embedder for a named backend."""

    if backend == "api":
        missing = [name for name, value in (("api key", api_key), ("model", model)) if not value]
        if missing:
            raise ValueError(f"api embedding backend is missing: {', '.join(missing)}")
        return ApiEmbedder(model, api_key=api_key, base_url=base_url, batch_size=batch_size)
    if backend == "local":
        return LocalEmbedder(model or DEFAULT_LOCAL_EMBEDDING_MODEL, batch_size=batch_size)
    raise ValueError(f"Unknown embedding backend: {backend!r}")
