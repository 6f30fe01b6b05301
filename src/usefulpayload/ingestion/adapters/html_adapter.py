"""HTML adapter converting markup into block-separated text."""

from __future__ import annotations

from bs4 import BeautifulSoup

from usefulpayload.ingestion.adapters.txt_adapter import decode_text
from usefulpayload.ingestion.models import FormatTag
from usefulpayload.ingestion.normalization import normalize_whitespace

NOISE_TAGS = ("script", "style", "nav", "footer", "form", "noscript", "iframe", "svg")

_BLOCK_TAGS = (
    "p", "div", "section", "article", "main", "header", "aside",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "dt", "dd", "blockquote", "pre", "tr", "table", "figcaption",
)


def parse_html(markup: str | bytes) -> BeautifulSoup:
    """Parse markup and drop non-content elements."""

    soup = BeautifulSoup(markup, "lxml")
    for node in soup.find_all([*NOISE_TAGS, "head", "img"]):
        node.decompose()
    return soup


def html_to_text(markup: str | bytes) -> str:
    """Visible text of a document, one block per line."""

    soup = parse_html(markup)
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for node in soup.find_all(_BLOCK_TAGS):
        node.insert_after("\n")

    root = soup.body or soup
    lines = (normalize_whitespace(line) for line in root.get_text().splitlines())
    return "\n".join(line for line in lines if line)


class HTMLAdapter:
    """Extract readable text from HTML pages, ignoring links and images."""

    format = FormatTag.HTML

    def extract_text(self, content: bytes) -> str:
        if not content.strip():
            return ""
        return html_to_text(decode_text(content))
