"""One-shot worker subprocess for semantic ranking with heavy model loading."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
import sys
import tempfile

from usefulpayload.config import PipelineSettings
from usefulpayload.ranking.scoring import ScoringError

LOGGER = logging.getLogger(__name__)

WORKER_MODULE = "usefulpayload.cli.rank_worker"
API_KEY_ENV = "PAYLOAD_EMBEDDING_API_KEY"
_REAP_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class IsolatedRanking:
    text: str
    token_count: int
    unit_count: int
    dropped_count: int = 0


def worker_arguments(input_path: Path, settings: PipelineSettings) -> list[str]:
    """Command line that makes the worker rank exactly as ``settings`` would in-process."""

    args = [
        "-m",
        WORKER_MODULE,
        "--input",
        str(input_path),
        "--max-tokens",
        str(settings.max_tokens),
        "--backend",
        settings.embedding_backend,
        "--encoding",
        settings.token_encoding,
        "--segment-mode",
        settings.segment_mode_for("semantic").value,
        "--chunk-size",
        str(settings.chunk_size),
        "--chunk-overlap",
        str(settings.chunk_overlap),
        "--dedupe-threshold",
        str(settings.dedupe_threshold),
        "--base-url",
        settings.embedding_base_url,
        "--batch-size",
        str(settings.embedding_batch_size),
    ]
    if settings.embedding_model:
        args.extend(["--model", settings.embedding_model])
    return args


def _worker_env(settings: PipelineSettings) -> dict[str, str] | None:
    # The key travels through the environment so it never shows up in process listings.
    if not settings.embedding_api_key:
        return None
    return {**os.environ, API_KEY_ENV: settings.embedding_api_key}


async def _reap(proc: asyncio.subprocess.Process) -> None:
    try:
        await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        LOGGER.warning("Rank worker did not exit within %.1fs after kill", _REAP_TIMEOUT_SECONDS)


async def _run_worker(
    *args: str,
    timeout_seconds: float,
    env: dict[str, str] | None = None,
) -> tuple[bool, str, str]:
    proc = await asyncio.create_subprocess_exec(
        sys.executable,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.communicate()
        return False, "", f"Timed out after {timeout_seconds:g}s: {' '.join(args)}"
    except asyncio.CancelledError:
        proc.kill()
        await _reap(proc)
        raise

    stdout_text = stdout_bytes.decode("utf-8", errors="replace")
    stderr_text = stderr_bytes.decode("utf-8", errors="replace").strip()

    if proc.returncode != 0:
        message = stderr_text or stdout_text.strip() or f"Command failed: {' '.join(args)}"
        return False, stdout_text, message

    return True, stdout_text, stderr_text


def _parse_worker_payload(stdout_text: str) -> IsolatedRanking:
    try:
        payload = json.loads(stdout_text)
    except json.JSONDecodeError as exc:
        raise ScoringError("isolated", "rank worker returned malformed JSON") from exc

    if not isinstance(payload, dict):
        raise ScoringError("isolated", "rank worker payload is not an object")
    if payload.get("error"):
        raise ScoringError("isolated", str(payload["error"]))

    return IsolatedRanking(
        text=str(payload.get("text") or ""),
        token_count=int(payload.get("token_count") or 0),
        unit_count=int(payload.get("unit_count") or 0),
        dropped_count=int(payload.get("dropped_count") or 0),
    )


async def rank_in_subprocess(text: str, settings: PipelineSettings) -> IsolatedRanking:
    """Hand ``text`` to the rank worker through a temp file that never outlives the call."""

    fd, temp_name = tempfile.mkstemp(prefix="usefulpayload-", suffix=".txt")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)

        ok, stdout_text, error_text = await _run_worker(
            *worker_arguments(temp_path, settings),
            timeout_seconds=settings.ranking_timeout_seconds,
            env=_worker_env(settings),
        )
        if not ok:
            raise ScoringError("isolated", error_text)
        return _parse_worker_payload(stdout_text)
    finally:
        temp_path.unlink(missing_ok=True)
