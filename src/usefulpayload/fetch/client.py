"""HTTP retrieval of documents and pages with per-URL failure isolation."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
import logging

import httpx

from usefulpayload.ingestion.adapters.html_adapter import parse_html
from usefulpayload.ingestion.normalization import normalize_whitespace

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 7.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (usefulpayload)"


@dataclass(slots=True)
class RetrievalError(Exception):
    """Network, auth or status failure while fetching one URL."""

    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (url={self.url})"


@dataclass(frozen=True, slots=True)
class FetchedResource:
    url: str
    content: bytes
    content_type: str = ""


@dataclass(frozen=True, slots=True)
class PageText:
    """Text of one fetched page, or a placeholder describing why it is missing."""

    url: str
    text: str
    error: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"url": self.url, "text": self.text, "error": self.error}


def build_client(*, timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": DEFAULT_USER_AGENT},
    )


async def fetch_resource(
    client: httpx.AsyncClient,
    url: str,
    *,
    token: str | None = None,
    timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> FetchedResource:
    """GET ``url`` as raw bytes, with a bearer token when one is given."""

    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        response = await client.get(url, headers=headers, timeout=timeout_seconds)
        response.raise_for_status()
    except httpx.TimeoutException as exc:
        raise RetrievalError(url, f"Request timed out after {timeout_seconds}s") from exc
    except httpx.HTTPStatusError as exc:
        raise RetrievalError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise RetrievalError(url, f"Request failed: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    logger.debug("Fetched %d byte(s) from %s (content-type=%s)", len(response.content), url, content_type)
    return FetchedResource(url=url, content=response.content, content_type=content_type)


def html_to_page_text(markup: str | bytes) -> str:
    """Visible body text of a page collapsed to a single line."""

    soup = parse_html(markup)
    root = soup.body or soup
    return normalize_whitespace(root.get_text(" "))


def _truncate(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    return text[:max_chars]


async def _fetch_page(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_seconds: float,
    max_chars: int | None,
    log: logging.Logger,
) -> PageText:
    try:
        resource = await fetch_resource(client, url, timeout_seconds=timeout_seconds)
        text = html_to_page_text(resource.content)
    except Exception as exc:
        log.warning("Failed to fetch or parse %s: %s", url, exc)
        return PageText(url=url, text=f"Failed to fetch or parse {url}: {exc}", error=str(exc))

    log.debug("Fetched %d characters from %s", len(text), url)
    return PageText(url=url, text=_truncate(text, max_chars))


async def fetch_pages(
    urls: Sequence[str],
    *,
    client: httpx.AsyncClient | None = None,
    timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    max_chars: int | None = None,
    log: logging.Logger | None = None,
) -> list[PageText]:
    """Fetch every URL concurrently; each slot holds text or its own failure placeholder."""

    active_log = log or logger
    if max_chars is not None and max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if not urls:
        return []

    owned = client is None
    active = client or build_client(timeout_seconds=timeout_seconds)
    try:
        return list(
            await asyncio.gather(
                *(
                    _fetch_page(active, url, timeout_seconds=timeout_seconds, max_chars=max_chars, log=active_log)
                    for url in urls
                )
            )
        )
    finally:
        if owned:
            await active.aclose()
