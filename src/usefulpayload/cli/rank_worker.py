"""One-shot semantic ranking worker launched by isolated ranking."""

from __future__ import annotations

import argparse
import dataclasses
import json
from pathlib import Path
import sys

from dotenv import load_dotenv

from usefulpayload.config import PipelineSettings
from usefulpayload.ingestion.models import SegmentMode
from usefulpayload.pipeline import PayloadExtractor
from usefulpayload.ranking.budget import TiktokenCounter
from usefulpayload.ranking.embeddings import EMBEDDING_BACKENDS, build_embedder


load_dotenv()

# argparse dest -> PipelineSettings field
_OVERRIDES = {
    "max_tokens": "max_tokens",
    "backend": "embedding_backend",
    "encoding": "token_encoding",
    "segment_mode": "segment_mode",
    "chunk_size": "chunk_size",
    "chunk_overlap": "chunk_overlap",
    "dedupe_threshold": "dedupe_threshold",
    "model": "embedding_model",
    "base_url": "embedding_base_url",
    "batch_size": "embedding_batch_size",
}


def _worker_settings(args: argparse.Namespace) -> PipelineSettings:
    changes: dict[str, object] = {"strategy": "semantic", "scoring_fallback": False, "isolate_ranking": False}
    for dest, field_name in _OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            changes[field_name] = value
    if isinstance(changes.get("segment_mode"), str):
        changes["segment_mode"] = SegmentMode(changes["segment_mode"])
    return dataclasses.replace(PipelineSettings.from_env(), **changes)


def rank_text(text: str, settings: PipelineSettings) -> dict[str, object]:
    embedder = build_embedder(
        settings.embedding_backend,
        model=settings.embedding_model,
        api_key=settings.embedding_api_key,
        base_url=settings.embedding_base_url,
        batch_size=settings.embedding_batch_size,
    )
    extractor = PayloadExtractor(settings, counter=TiktokenCounter(settings.token_encoding), embedder=embedder)
    outcome = extractor.rank(text)
    return {
        "text": outcome.text,
        "token_count": outcome.token_count,
        "unit_count": outcome.unit_count,
        "dropped_count": outcome.dropped_count,
    }


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank a text file by semantic centrality and print the excerpt")
    parser.add_argument("--input", required=True, help="Path to the UTF-8 text to rank")
    parser.add_argument("--max-tokens", type=int, required=True, help="Token budget for the excerpt")
    parser.add_argument("--backend", choices=EMBEDDING_BACKENDS, default="local", help="Embedding backend")
    parser.add_argument("--encoding", default=None, help="tiktoken encoding used for the budget")
    parser.add_argument("--segment-mode", choices=[mode.value for mode in SegmentMode], default=None)
    parser.add_argument("--chunk-size", type=int, default=None)
    parser.add_argument("--chunk-overlap", type=int, default=None)
    parser.add_argument("--dedupe-threshold", type=float, default=None)
    parser.add_argument("--model", default=None, help="Embedding model name")
    parser.add_argument("--base-url", default=None, help="OpenAI-compatible embeddings endpoint")
    parser.add_argument("--batch-size", type=int, default=None, help="Inputs per embedding request")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        settings = _worker_settings(args)
        text = Path(args.input).read_text(encoding="utf-8")
        payload = rank_text(text, settings)
    except Exception as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=True))
        print(f"rank worker failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(payload, ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
