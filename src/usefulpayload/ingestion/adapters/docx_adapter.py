"""DOCX adapter built on python-docx."""

from __future__ import annotations

import io
from zipfile import BadZipFile

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from usefulpayload.ingestion.models import FormatTag


class DOCXAdapter:
    """Extract paragraphs followed by table rows from Office Open XML documents."""

    format = FormatTag.DOCX

    def extract_text(self, content: bytes) -> str:
        try:
            doc = DocxDocument(io.BytesIO(content))
        except (PackageNotFoundError, BadZipFile, KeyError) as exc:
            raise ValueError("Invalid or corrupted docx file") from exc

        paragraphs = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]
        table_rows: list[str] = []
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    table_rows.append(" ".join(cells))

        text = "\n\n".join(paragraphs)
        if table_rows:
            text = f"{text}\n\n" + "\n".join(table_rows) if text else "\n".join(table_rows)
        return text
