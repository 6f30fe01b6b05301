"""CLI entrypoint that turns files or URLs into token-budgeted excerpts."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import json
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv

from usefulpayload.config import STRATEGIES, PipelineSettings
from usefulpayload.ingestion.models import Document, PayloadResult
from usefulpayload.pipeline import BatchAbortedError, PayloadExtractor
from usefulpayload.ranking.budget import TiktokenCounter
from usefulpayload.ranking.embeddings import EMBEDDING_BACKENDS


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract the most useful excerpt of documents within a token budget")
    parser.add_argument("--url", action="append", default=[], help="Document URL (repeatable)")
    parser.add_argument("--path", action="append", default=[], help="Local document path (repeatable)")
    parser.add_argument("--max-tokens", type=int, default=None, help="Token budget per document")
    parser.add_argument("--token", default=None, help="Bearer token sent with URL requests")
    parser.add_argument("--query", default=None, help="Query used by keyword ranking")
    parser.add_argument("--strategy", choices=STRATEGIES, default=None, help="Ranking strategy")
    parser.add_argument("--embedding-backend", choices=EMBEDDING_BACKENDS, default=None, help="Embedding backend")
    parser.add_argument(
        "--isolated-ranking",
        action="store_true",
        help="Run semantic ranking in a separate worker process",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort the whole URL batch on the first failed item",
    )
    args = parser.parse_args(argv)
    if not args.url and not args.path:
        parser.error("at least one --url or --path is required")
    return args


def _build_settings(args: argparse.Namespace) -> PipelineSettings:
    settings = PipelineSettings.from_env()
    overrides: dict[str, object] = {}
    if args.max_tokens is not None:
        overrides["max_tokens"] = args.max_tokens
    if args.strategy is not None:
        overrides["strategy"] = args.strategy
    if args.embedding_backend is not None:
        overrides["embedding_backend"] = args.embedding_backend
    if args.isolated_ranking:
        overrides["isolate_ranking"] = True
    if args.fail_fast:
        overrides["continue_on_fail"] = False
    return replace(settings, **overrides)


def _read_document(path: Path) -> Document:
    return Document(content=path.read_bytes(), source=str(path))


async def _run(extractor: PayloadExtractor, args: argparse.Namespace) -> list[PayloadResult]:
    results: list[PayloadResult] = []
    for raw_path in args.path:
        path = Path(raw_path)
        try:
            document = _read_document(path)
        except OSError as exc:
            LOGGER.error("Cannot read %s: %s", path, exc)
            results.append(PayloadResult.failure(str(exc), source=str(path)))
            continue
        results.append(await extractor.aextract(document, query=args.query))

    if args.url:
        results.extend(await extractor.extract_many(args.url, token=args.token, query=args.query))
    return results


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)
    args = _parse_args(argv)

    try:
        settings = _build_settings(args)
    except ValueError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    extractor = PayloadExtractor(settings, counter=TiktokenCounter(settings.token_encoding))
    try:
        results = asyncio.run(_run(extractor, args))
    except BatchAbortedError as exc:
        print(json.dumps({"error": str(exc), "source": exc.source}, ensure_ascii=True, indent=2))
        return 2

    payload = {
        "max_tokens": settings.max_tokens,
        "strategy": settings.strategy,
        "results": [result.to_dict() for result in results],
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
