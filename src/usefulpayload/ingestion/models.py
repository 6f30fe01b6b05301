"""Canonical data structures shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FormatTag(str, Enum):
    """Closed set of source formats a document can be classified as."""

    JSON = "json"
    HTML = "html"
    MARKDOWN = "markdown"
    PDF = "pdf"
    DOCX = "docx"
    PLAINTEXT = "plaintext"


class SegmentMode(str, Enum):
    SENTENCE = "sentence"
    CHUNK = "chunk"


@dataclass(frozen=True, slots=True)
class Document:
    """Raw input payload plus the hints that came with it."""

    content: bytes
    content_type: str = ""
    source: str = ""


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    raw_text: str
    format: FormatTag


@dataclass(frozen=True, slots=True)
class Unit:
    """A scoreable span of cleaned text at its source-order position."""

    text: str
    position: int


@dataclass(frozen=True, slots=True)
class ScoredUnit:
    text: str
    position: int
    score: float

    @classmethod
    def from_unit(cls, unit: Unit, score: float) -> "ScoredUnit":
        return cls(text=unit.text, position=unit.position, score=score)

    def to_unit(self) -> Unit:
        return Unit(text=self.text, position=self.position)


@dataclass(frozen=True, slots=True)
class BudgetedSelection:
    """Units that fit the token budget, kept in document order."""

    units: tuple[Unit, ...] = ()
    token_count: int = 0
    dropped_count: int = 0

    @property
    def text(self) -> str:
        return " ".join(unit.text for unit in self.units).strip()


@dataclass(frozen=True, slots=True)
class PayloadMetadata:
    """Accounting attached to every pipeline result."""

    file_type: str | None = None
    original_length: int = 0
    cleaned_length: int = 0
    unit_count: int = 0
    final_token_count: int = 0

    def to_dict(self) -> dict[str, str | int | None]:
        return {
            "file_type": self.file_type,
            "original_length": self.original_length,
            "cleaned_length": self.cleaned_length,
            "unit_count": self.unit_count,
            "final_token_count": self.final_token_count,
        }


@dataclass(frozen=True, slots=True)
class PayloadResult:
    """Final per-document output; failures carry ``error`` and zeroed metadata."""

    text: str
    metadata: PayloadMetadata = field(default_factory=PayloadMetadata)
    error: str | None = None
    source: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str, *, source: str | None = None) -> "PayloadResult":
        return cls(text="", metadata=PayloadMetadata(), error=error, source=source)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"text": self.text, "metadata": self.metadata.to_dict()}
        if self.source is not None:
            payload["source"] = self.source
        if self.error is not None:
            payload["error"] = self.error
        return payload
