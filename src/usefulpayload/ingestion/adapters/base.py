"""Shared adapter contract for per-format text decoders."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from usefulpayload.ingestion.models import FormatTag


@runtime_checkable
class TextAdapter(Protocol):
    """Protocol that every format decoder must implement."""

    format: FormatTag

    def extract_text(self, content: bytes) -> str:
        """Decode raw bytes into unstructured text, raising on corrupt input."""
