from __future__ import annotations

from collections.abc import Sequence
import json
from pathlib import Path

import numpy as np
import pytest

from usefulpayload.cli import extract_payload, fetch_pages, rank_worker
from usefulpayload.fetch.client import PageText
from usefulpayload.ingestion.models import PayloadResult
from usefulpayload.pipeline import BatchAbortedError, PayloadExtractor

REPORT = (
    "The committee approved the new budget for the coming year. "
    "Local farmers reported an excellent harvest of apples this autumn."
)


class _WordCounter:
    def __init__(self, encoding: str = "r50k_base") -> None:
        self.encoding = encoding

    def count(self, text: str) -> int:
        return len(text.split())


class _FakeEmbedder:
    model = "fake-embedder"

    def embed_texts(self, texts: Sequence[str], *, stage: str = "units") -> np.ndarray:
        return np.ones((len(texts), 3), dtype=np.float32)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PAYLOAD_MAX_TOKENS", "PAYLOAD_STRATEGY", "PAYLOAD_CONTINUE_ON_FAIL", "PAYLOAD_ISOLATE_RANKING"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(extract_payload, "TiktokenCounter", _WordCounter)


def test_extract_payload_cli_prints_results_for_files(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "report.txt"
    source.write_text(REPORT, encoding="utf-8")

    exit_code = extract_payload.main(["--path", str(source), "--max-tokens", "10", "--query", "apples harvest"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["max_tokens"] == 10
    assert payload["strategy"] == "keyword"
    result = payload["results"][0]
    assert result["text"] == "Local farmers reported an excellent harvest of apples this autumn."
    assert result["source"] == str(source)
    assert result["metadata"]["file_type"] == "plaintext"
    assert result["metadata"]["final_token_count"] == 10


def test_extract_payload_cli_reports_unreadable_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = extract_payload.main(["--path", str(tmp_path / "missing.txt")])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert "error" in payload["results"][0]


def test_extract_payload_cli_rejects_invalid_environment(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("PAYLOAD_MAX_TOKENS", "lots")
    source = tmp_path / "report.txt"
    source.write_text(REPORT, encoding="utf-8")

    assert extract_payload.main(["--path", str(source)]) == 2


def test_extract_payload_cli_requires_an_input() -> None:
    with pytest.raises(SystemExit):
        extract_payload.main([])


def test_extract_payload_cli_passes_urls_and_token(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    calls: list[dict[str, object]] = []

    async def _fake_extract_many(self, urls, *, token=None, query=None, client=None):
        calls.append({"urls": list(urls), "token": token, "query": query})
        return [PayloadResult(text="Fetched text.", source=url) for url in urls]

    monkeypatch.setattr(PayloadExtractor, "extract_many", _fake_extract_many)

    exit_code = extract_payload.main(["--url", "https://example.com/a", "--token", "secret", "--query", "apples"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert calls == [{"urls": ["https://example.com/a"], "token": "secret", "query": "apples"}]
    assert payload["results"][0]["text"] == "Fetched text."


def test_extract_payload_cli_fail_fast_exits_with_batch_error(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    seen_settings: list[bool] = []

    async def _fake_extract_many(self, urls, *, token=None, query=None, client=None):
        seen_settings.append(self.settings.continue_on_fail)
        raise BatchAbortedError(source=urls[0], error="HTTP 500")

    monkeypatch.setattr(PayloadExtractor, "extract_many", _fake_extract_many)

    exit_code = extract_payload.main(["--url", "https://example.com/a", "--fail-fast"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 2
    assert seen_settings == [False]
    assert payload["source"] == "https://example.com/a"


def test_fetch_pages_cli_prints_every_slot(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    async def _fake_fetch_pages(urls, *, timeout_seconds, max_chars):
        assert timeout_seconds == 3.0
        assert max_chars == 500
        return [
            PageText(url=urls[0], text="Page text"),
            PageText(url=urls[1], text=f"Failed to fetch or parse {urls[1]}: timeout", error="timeout"),
        ]

    monkeypatch.setattr(fetch_pages, "fetch_pages", _fake_fetch_pages)

    exit_code = fetch_pages.main(
        ["https://example.com/1", "https://example.com/2", "--timeout", "3", "--max-chars", "500"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert payload["count"] == 2
    assert payload["failed"] == 1
    assert payload["pages"][1]["error"] == "timeout"


def test_fetch_pages_cli_rejects_non_positive_limits(capsys: pytest.CaptureFixture[str]) -> None:
    assert fetch_pages.main(["https://example.com", "--max-chars", "0"]) == 2
    assert "error" in json.loads(capsys.readouterr().out)


def test_rank_worker_prints_selection(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(rank_worker, "build_embedder", lambda backend, **kwargs: _FakeEmbedder())
    monkeypatch.setattr(rank_worker, "TiktokenCounter", _WordCounter)
    source = tmp_path / "input.txt"
    source.write_text(REPORT * 4, encoding="utf-8")

    exit_code = rank_worker.main(["--input", str(source), "--max-tokens", "100", "--backend", "local"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["text"]
    assert payload["unit_count"] >= 1
    assert payload["token_count"] <= 100


def test_rank_worker_reports_failures_as_json(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    def _broken(backend: str, **kwargs: object):
        raise RuntimeError("no model here")

    monkeypatch.setattr(rank_worker, "build_embedder", _broken)
    source = tmp_path / "input.txt"
    source.write_text(REPORT, encoding="utf-8")

    exit_code = rank_worker.main(["--input", str(source), "--max-tokens", "100"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert json.loads(captured.out) == {"error": "no model here"}
    assert "no model here" in captured.err


def test_rank_worker_uses_forwarded_tokenizer_and_segmentation(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    counters: list[_WordCounter] = []
    embedder_options: list[dict[str, object]] = []

    def _counter(encoding: str) -> _WordCounter:
        counter = _WordCounter(encoding)
        counters.append(counter)
        return counter

    def _embedder(backend: str, **kwargs: object) -> _FakeEmbedder:
        embedder_options.append({"backend": backend, **kwargs})
        return _FakeEmbedder()

    monkeypatch.setattr(rank_worker, "TiktokenCounter", _counter)
    monkeypatch.setattr(rank_worker, "build_embedder", _embedder)
    source = tmp_path / "input.txt"
    source.write_text(REPORT, encoding="utf-8")

    exit_code = rank_worker.main(
        [
            "--input", str(source),
            "--max-tokens", "100",
            "--encoding", "cl100k_base",
            "--segment-mode", "sentence",
            "--chunk-size", "120",
            "--chunk-overlap", "10",
            "--dedupe-threshold", "0.5",
            "--model", "mini-embed",
            "--batch-size", "8",
        ]
    )

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert [counter.encoding for counter in counters] == ["cl100k_base"]
    assert embedder_options[0]["model"] == "mini-embed"
    assert embedder_options[0]["batch_size"] == 8
    assert payload["unit_count"] == 2
