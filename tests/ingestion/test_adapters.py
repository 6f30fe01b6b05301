from __future__ import annotations

import io

from docx import Document as DocxDocument
import pymupdf
import pytest

from usefulpayload.ingestion.adapters import (
    DOCXAdapter,
    HTMLAdapter,
    MarkdownAdapter,
    PDFAdapter,
    TextAdapter,
    TXTAdapter,
    build_default_adapters,
)
from usefulpayload.ingestion.models import FormatTag


def _pdf_bytes() -> bytes:
    doc = pymupdf.open()
    page_one = doc.new_page()
    page_one.insert_text((72, 72), "First paragraph on page one.")
    page_one.insert_text((72, 160), "Second paragraph on page one.")

    page_two = doc.new_page()
    page_two.insert_text((72, 72), "Opening paragraph on page two.")

    content = doc.tobytes()
    doc.close()
    return content


def _docx_bytes() -> bytes:
    doc = DocxDocument()
    doc.add_paragraph("The board met on Tuesday.")
    doc.add_paragraph("   ")
    doc.add_paragraph("It approved the merger.")
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Region"
    table.cell(0, 1).text = "Revenue"
    table.cell(1, 0).text = "North"
    table.cell(1, 1).text = "42"
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def test_default_registry_covers_every_format() -> None:
    adapters = build_default_adapters()

    assert set(adapters) == set(FormatTag)
    for tag, adapter in adapters.items():
        assert isinstance(adapter, TextAdapter)
        assert adapter.format == tag


def test_pdf_adapter_reads_pages_in_order() -> None:
    text = PDFAdapter().extract_text(_pdf_bytes())

    first = text.index("First paragraph on page one.")
    second = text.index("Second paragraph on page one.")
    third = text.index("Opening paragraph on page two.")
    assert first < second < third


def test_docx_adapter_reads_paragraphs_then_tables() -> None:
    text = DOCXAdapter().extract_text(_docx_bytes())

    assert text == "The board met on Tuesday.\n\nIt approved the merger.\n\nRegion Revenue\nNorth 42"


def test_docx_adapter_rejects_invalid_archive() -> None:
    with pytest.raises(ValueError, match="docx"):
        DOCXAdapter().extract_text(b"PK\x03\x04broken")


def test_html_adapter_drops_noise_and_keeps_blocks() -> None:
    markup = b"""
    <html>
      <head><title>Ignored title</title><style>p { color: red; }</style></head>
      <body>
        <nav><a href="/">Home</a> <a href="/about">About</a></nav>
        <h1>Quarterly report</h1>
        <p>Revenue grew <b>strongly</b> this quarter.<br>Costs stayed flat.</p>
        <img src="chart.png" alt="chart">
        <script>var tracking = true;</script>
        <footer>All rights reserved</footer>
      </body>
    </html>
    """

    text = HTMLAdapter().extract_text(markup)

    assert text.splitlines() == [
        "Quarterly report",
        "Revenue grew strongly this quarter.",
        "Costs stayed flat.",
    ]


def test_markdown_adapter_strips_syntax() -> None:
    source = (
        "# Title\n\n"
        "Some **bold** and *italic* text with a [link](https://example.com).\n\n"
        "- first item\n"
        "- second item\n\n"
        "> quoted line\n\n"
        "```python\nprint('code')\n```\n\n"
        "![diagram](img.png) and `inline`"
    ).encode("utf-8")

    text = MarkdownAdapter().extract_text(source)

    assert "Title" in text
    assert "#" not in text
    assert "Some bold and italic text with a link." in text
    assert "first item" in text
    assert "quoted line" in text
    assert "```" not in text
    assert "print('code')" in text
    assert "diagram and inline" in text
    assert "https://example.com" not in text


def test_txt_adapter_decodes_cp1251_text() -> None:
    payload = "Название: Путь\nАвтор: Ирина\n\nПривет мир\nТихий лес\n".encode("cp1251")

    text = TXTAdapter().extract_text(payload)

    assert "Путь" in text
    assert "Тихий лес" in text


def test_txt_adapter_handles_bom_and_empty_input() -> None:
    assert TXTAdapter().extract_text(b"\xef\xbb\xbfhello") == "hello"
    assert TXTAdapter().extract_text(b"") == ""
