"""Format classification from magic bytes, declared content type and source hints."""

from __future__ import annotations

import io
from urllib.parse import urlsplit
import zipfile

from usefulpayload.ingestion.models import FormatTag

_PDF_MAGIC = b"%PDF"
_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_DOCX_MAIN_PART = "word/document.xml"

PREVIEW_CHARS = 2000

_DOCX_HINTS = ("document", "docx")
_HTML_MARKERS = ("<!doctype html", "<html", "<head>", "<body>", "<div")
_MARKDOWN_MARKERS = ("# ", "## ", "```", "**")


def _source_path(source: str) -> str:
    lowered = source.strip().lower()
    parts = urlsplit(lowered)
    if parts.scheme and parts.netloc:
        return parts.path
    return lowered


def sniff_binary_format(content: bytes) -> str | None:
    """Return ``pdf``, ``docx`` or ``doc`` for recognized binary containers."""

    if content.startswith(_PDF_MAGIC):
        return "pdf"
    if content.startswith(_OLE2_MAGIC):
        return "doc"
    if content.startswith(_ZIP_MAGIC):
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                names = set(archive.namelist())
        except (zipfile.BadZipFile, OSError, ValueError):
            return None
        if _DOCX_MAIN_PART in names:
            return "docx"
    return None


def _has_docx_hint(content_type: str, path: str) -> bool:
    if any(hint in content_type for hint in _DOCX_HINTS):
        return True
    if any(hint in path for hint in _DOCX_HINTS):
        return True
    return path.endswith((".docx", ".doc"))


def _looks_like_json(preview: str, content_type: str, path: str) -> bool:
    if "json" in content_type or path.endswith(".json"):
        return True
    if preview.startswith("{") and '"' in preview:
        return True
    return preview.startswith("[") and "{" in preview


def _looks_like_html(preview: str, content_type: str, path: str) -> bool:
    if "html" in content_type or path.endswith((".html", ".htm")):
        return True
    return any(marker in preview for marker in _HTML_MARKERS)


def _looks_like_markdown(preview: str, content_type: str, path: str) -> bool:
    if "markdown" in content_type or path.endswith((".md", ".markdown")):
        return True
    return any(marker in preview for marker in _MARKDOWN_MARKERS)


def classify(content: bytes, content_type: str = "", source: str = "") -> FormatTag:
    """Pick exactly one format for a payload; plaintext when nothing else matches."""

    declared = (content_type or "").lower()
    path = _source_path(source or "")

    if content.startswith(_PDF_MAGIC):
        return FormatTag.PDF
    if content.startswith(_ZIP_MAGIC) and _has_docx_hint(declared, path):
        return FormatTag.DOCX

    sniffed = sniff_binary_format(content)
    if sniffed == "pdf":
        return FormatTag.PDF
    if sniffed == "docx":
        return FormatTag.DOCX
    if sniffed == "doc":
        # Legacy Word binaries have no text decoder.
        return FormatTag.PLAINTEXT

    preview = content[: PREVIEW_CHARS * 4].decode("utf-8", errors="ignore")[:PREVIEW_CHARS]
    preview = preview.strip().lower()

    if _looks_like_json(preview, declared, path):
        return FormatTag.JSON
    if _looks_like_html(preview, declared, path):
        return FormatTag.HTML
    if _looks_like_markdown(preview, declared, path):
        return FormatTag.MARKDOWN
    return FormatTag.PLAINTEXT
