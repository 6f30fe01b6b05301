"""Format decoder implementations and contracts."""

import logging

from usefulpayload.ingestion.models import FormatTag

from .base import TextAdapter
from .json_adapter import JSONAdapter
from .markdown_adapter import MarkdownAdapter
from .txt_adapter import TXTAdapter

logger = logging.getLogger(__name__)

try:
    from .pdf_adapter import PDFAdapter
except ImportError:
    PDFAdapter = None
    logger.warning("PDF support unavailable: install 'pymupdf'")

try:
    from .docx_adapter import DOCXAdapter
except ImportError:
    DOCXAdapter = None
    logger.warning("DOCX support unavailable: install 'python-docx'")

try:
    from .html_adapter import HTMLAdapter
except ImportError:
    HTMLAdapter = None
    logger.warning("HTML support unavailable: install 'beautifulsoup4' and 'lxml'")


def build_default_adapters() -> dict[FormatTag, TextAdapter]:
    """Return the default decoder map keyed by format tag."""
    adapters: dict[FormatTag, TextAdapter] = {
        FormatTag.JSON: JSONAdapter(),
        FormatTag.MARKDOWN: MarkdownAdapter(),
        FormatTag.PLAINTEXT: TXTAdapter(),
    }
    if PDFAdapter is not None:
        adapters[FormatTag.PDF] = PDFAdapter()
    if DOCXAdapter is not None:
        adapters[FormatTag.DOCX] = DOCXAdapter()
    if HTMLAdapter is not None:
        adapters[FormatTag.HTML] = HTMLAdapter()
    return adapters


__all__ = [
    "TextAdapter",
    "DOCXAdapter",
    "HTMLAdapter",
    "JSONAdapter",
    "MarkdownAdapter",
    "PDFAdapter",
    "TXTAdapter",
    "build_default_adapters",
]
