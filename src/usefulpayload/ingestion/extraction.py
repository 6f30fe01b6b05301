"""Format dispatch from classified bytes to raw text."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging

from usefulpayload.ingestion.adapters import TextAdapter, build_default_adapters
from usefulpayload.ingestion.classify import classify
from usefulpayload.ingestion.models import Document, ExtractionResult, FormatTag

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractionError(Exception):
    """Domain error for a decoder that could not read its payload."""

    format: FormatTag
    message: str

    def __str__(self) -> str:
        return f"{self.message} (format={self.format.value})"


def extract(
    content: bytes,
    format: FormatTag,
    *,
    adapters: Mapping[FormatTag, TextAdapter] | None = None,
) -> str:
    """Decode ``content`` with the adapter registered for ``format``."""

    registry = build_default_adapters() if adapters is None else adapters
    adapter = registry.get(format)
    if adapter is None:
        raise ExtractionError(format, "No decoder registered for format")

    try:
        return adapter.extract_text(content)
    except Exception as exc:
        raise ExtractionError(format, f"Decoder failed: {exc}") from exc


def fallback_decode(content: bytes) -> str:
    """Raw bytes as UTF-8, replacing anything undecodable."""

    return content.decode("utf-8", errors="replace")


def extract_document(
    document: Document,
    *,
    adapters: Mapping[FormatTag, TextAdapter] | None = None,
    log: logging.Logger | None = None,
) -> ExtractionResult:
    """Classify and decode a document, degrading to raw UTF-8 on decoder failure."""

    active_logger = log or logger
    format_tag = classify(document.content, document.content_type, document.source)
    active_logger.debug("Classified %s as %s", document.source or "<bytes>", format_tag.value)

    try:
        raw_text = extract(document.content, format_tag, adapters=adapters)
    except ExtractionError as exc:
        active_logger.warning("Falling back to raw UTF-8 text: %s", exc)
        raw_text = fallback_decode(document.content)

    return ExtractionResult(raw_text=raw_text, format=format_tag)
