"""Ingestion package interfaces."""

from .classify import classify, sniff_binary_format
from .cleaning import clean
from .extraction import ExtractionError, extract, extract_document
from .models import (
    BudgetedSelection,
    Document,
    ExtractionResult,
    FormatTag,
    PayloadMetadata,
    PayloadResult,
    ScoredUnit,
    SegmentMode,
    Unit,
)
from .segmentation import segment

__all__ = [
    "BudgetedSelection",
    "Document",
    "ExtractionError",
    "ExtractionResult",
    "FormatTag",
    "PayloadMetadata",
    "PayloadResult",
    "ScoredUnit",
    "SegmentMode",
    "Unit",
    "classify",
    "clean",
    "extract",
    "extract_document",
    "segment",
    "sniff_binary_format",
]
