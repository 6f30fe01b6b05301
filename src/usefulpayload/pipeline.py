"""End-to-end pipeline from raw document bytes to a token-budgeted excerpt."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import logging

import httpx

from usefulpayload.config import PipelineSettings
from usefulpayload.fetch.client import RetrievalError, build_client, fetch_resource
from usefulpayload.ingestion.adapters import TextAdapter
from usefulpayload.ingestion.cleaning import clean
from usefulpayload.ingestion.extraction import extract_document
from usefulpayload.ingestion.models import Document, FormatTag, PayloadMetadata, PayloadResult
from usefulpayload.ingestion.segmentation import segment
from usefulpayload.ranking.budget import TiktokenCounter, TokenCounter, select
from usefulpayload.ranking.dedupe import dedupe
from usefulpayload.ranking.embeddings import Embedder, build_embedder
from usefulpayload.ranking.isolated import rank_in_subprocess
from usefulpayload.ranking.scoring import (
    KeywordOverlapScorer,
    RelevanceScorer,
    ScoringError,
    SemanticCentroidScorer,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchAbortedError(RuntimeError):
    """Raised by batch extraction when failures are not allowed to continue."""

    source: str
    error: str

    def __str__(self) -> str:
        return f"Batch aborted on {self.source}: {self.error}"


@dataclass(frozen=True, slots=True)
class PreparedText:
    """Extraction and cleaning output that ranking starts from."""

    format: FormatTag
    original_length: int
    cleaned: str


@dataclass(frozen=True, slots=True)
class RankingOutcome:
    text: str
    unit_count: int
    token_count: int
    dropped_count: int = 0


class PayloadExtractor:
    """Classify, extract, clean, rank and budget one document at a time.

    Instances hold configuration and collaborators only, so a single extractor
    can serve many documents concurrently.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        *,
        counter: TokenCounter | None = None,
        embedder: Embedder | None = None,
        adapters: Mapping[FormatTag, TextAdapter] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings or PipelineSettings()
        self._counter = counter or TiktokenCounter(self._settings.token_encoding)
        self._embedder = embedder
        self._adapters = adapters
        self._log = logger or LOGGER

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    def prepare(self, document: Document) -> PreparedText:
        """Classify, decode and clean a document."""

        extraction = extract_document(document, adapters=self._adapters, log=self._log)
        cleaned = clean(extraction.raw_text)
        self._log.debug(
            "Prepared %s: format=%s raw=%d cleaned=%d",
            document.source or "<bytes>",
            extraction.format.value,
            len(extraction.raw_text),
            len(cleaned),
        )
        return PreparedText(
            format=extraction.format,
            original_length=len(extraction.raw_text),
            cleaned=cleaned,
        )

    def rank(self, cleaned: str, *, query: str | None = None, strategy: str | None = None) -> RankingOutcome:
        """Segment, score, dedupe and budget cleaned text."""

        active_strategy = strategy or self._settings.strategy
        units = segment(
            cleaned,
            self._settings.segment_mode_for(active_strategy),
            chunk_size=self._settings.chunk_size,
            chunk_overlap=self._settings.chunk_overlap,
        )
        if not units:
            return RankingOutcome(text="", unit_count=0, token_count=0)

        try:
            scored = self._scorer(active_strategy, query).score(units)
        except ScoringError as exc:
            if not self._settings.scoring_fallback or active_strategy == "keyword":
                raise
            self._log.warning("Falling back to keyword ranking: %s", exc)
            return self.rank(cleaned, query=query, strategy="keyword")

        kept = dedupe(scored, threshold=self._settings.dedupe_threshold)
        selection = select(kept, self._settings.max_tokens, self._counter)
        self._log.info(
            "Ranked %d unit(s), kept %d after dedupe, selected %d (%d tokens, %d dropped)",
            len(units),
            len(kept),
            len(selection.units),
            selection.token_count,
            selection.dropped_count,
        )
        return RankingOutcome(
            text=selection.text,
            unit_count=len(units),
            token_count=selection.token_count,
            dropped_count=selection.dropped_count,
        )

    def extract(self, document: Document, *, query: str | None = None) -> PayloadResult:
        """Run the whole pipeline; failures come back as error results, never as exceptions."""

        try:
            prepared = self.prepare(document)
            outcome = self.rank(prepared.cleaned, query=query)
        except Exception as exc:
            self._log.error("Extraction failed for %s: %s", document.source or "<bytes>", exc)
            return PayloadResult.failure(str(exc), source=document.source or None)
        return self._build_result(document, prepared, outcome)

    async def aextract(self, document: Document, *, query: str | None = None) -> PayloadResult:
        """Async variant; extraction and ranking run off the event loop, ranking bounded by its timeout."""

        try:
            prepared = await asyncio.to_thread(self.prepare, document)
            outcome = await self._rank_async(prepared.cleaned, query)
        except Exception as exc:
            self._log.error("Extraction failed for %s: %s", document.source or "<bytes>", exc)
            return PayloadResult.failure(str(exc), source=document.source or None)
        return self._build_result(document, prepared, outcome)

    async def extract_url(
        self,
        url: str,
        *,
        token: str | None = None,
        query: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> PayloadResult:
        """Fetch a URL and extract it; retrieval failures become error results."""

        owned = client is None
        active = client or build_client(timeout_seconds=self._settings.fetch_timeout_seconds)
        try:
            resource = await fetch_resource(
                active,
                url,
                token=token,
                timeout_seconds=self._settings.fetch_timeout_seconds,
            )
        except RetrievalError as exc:
            self._log.error("Retrieval failed: %s", exc)
            return PayloadResult.failure(str(exc), source=url)
        finally:
            if owned:
                await active.aclose()

        document = Document(content=resource.content, content_type=resource.content_type, source=url)
        return await self.aextract(document, query=query)

    async def extract_many(
        self,
        urls: Sequence[str],
        *,
        token: str | None = None,
        query: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> list[PayloadResult]:
        """Extract every URL concurrently; result slots follow the input order."""

        if not urls:
            return []

        owned = client is None
        active = client or build_client(timeout_seconds=self._settings.fetch_timeout_seconds)
        try:
            return await self._gather_results(urls, token=token, query=query, client=active)
        finally:
            if owned:
                await active.aclose()

    async def _gather_results(
        self,
        urls: Sequence[str],
        *,
        token: str | None,
        query: str | None,
        client: httpx.AsyncClient,
    ) -> list[PayloadResult]:
        tasks = [
            asyncio.ensure_future(self.extract_url(url, token=token, query=query, client=client))
            for url in urls
        ]
        if self._settings.continue_on_fail:
            return list(await asyncio.gather(*tasks))

        try:
            for finished in asyncio.as_completed(tasks):
                result = await finished
                if not result.ok:
                    raise BatchAbortedError(source=result.source or "", error=result.error or "")
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return [task.result() for task in tasks]

    async def _rank_async(self, cleaned: str, query: str | None) -> RankingOutcome:
        settings = self._settings
        try:
            if settings.isolate_ranking and settings.strategy == "semantic":
                isolated = await rank_in_subprocess(cleaned, settings)
                return RankingOutcome(
                    text=isolated.text,
                    unit_count=isolated.unit_count,
                    token_count=isolated.token_count,
                    dropped_count=isolated.dropped_count,
                )

            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self.rank, cleaned, query=query),
                    timeout=settings.ranking_timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise ScoringError(
                    settings.strategy,
                    f"Ranking timed out after {settings.ranking_timeout_seconds}s",
                ) from exc
        except ScoringError as exc:
            if not settings.scoring_fallback or settings.strategy == "keyword":
                raise
            self._log.warning("Falling back to keyword ranking: %s", exc)
            return await asyncio.to_thread(self.rank, cleaned, query=query, strategy="keyword")

    def _scorer(self, strategy: str, query: str | None) -> RelevanceScorer:
        if strategy == "semantic":
            return SemanticCentroidScorer(self._resolve_embedder())
        return KeywordOverlapScorer(query)

    def _resolve_embedder(self) -> Embedder:
        if self._embedder is None:
            try:
                self._embedder = embedder_from_settings(self._settings)
            except Exception as exc:
                raise ScoringError("semantic", f"Embedder unavailable: {exc}") from exc
        return self._embedder

    def _build_result(self, document: Document, prepared: PreparedText, outcome: RankingOutcome) -> PayloadResult:
        return PayloadResult(
            text=outcome.text,
            metadata=PayloadMetadata(
                file_type=prepared.format.value,
                original_length=prepared.original_length,
                cleaned_length=len(prepared.cleaned),
                unit_count=outcome.unit_count,
                final_token_count=outcome.token_count,
            ),
            source=document.source or None,
        )


def embedder_from_settings(settings: PipelineSettings) -> Embedder:
    return build_embedder(
        settings.embedding_backend,
        model=settings.embedding_model,
        api_key=settings.embedding_api_key,
        base_url=settings.embedding_base_url,
        batch_size=settings.embedding_batch_size,
    )
