"""PDF adapter producing page text in reading order."""

from __future__ import annotations

import logging

import pymupdf

from usefulpayload.ingestion.models import FormatTag
from usefulpayload.ingestion.normalization import normalize_whitespace

logger = logging.getLogger(__name__)


class PDFAdapter:
    """Extract paragraph-like blocks from PDF pages in stable order."""

    format = FormatTag.PDF

    def extract_text(self, content: bytes) -> str:
        with pymupdf.open(stream=content, filetype="pdf") as doc:
            pages = [self._page_text(page) for page in doc]
            logger.debug("Extracted %d PDF page(s)", len(pages))

        return "\n\n".join(page for page in pages if page)

    def _page_text(self, page: pymupdf.Page) -> str:
        page_blocks = page.get_text("blocks")
        ordered_blocks = sorted(page_blocks, key=lambda row: (row[1], row[0], row[5]))

        lines: list[str] = []
        for block in ordered_blocks:
            # Image blocks carry type 1 and no useful text.
            if len(block) > 6 and block[6] != 0:
                continue
            block_text = normalize_whitespace(block[4])
            if block_text:
                lines.append(block_text)
        return "\n".join(lines)
