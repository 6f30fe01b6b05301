"""Plain-text adapter with encoding detection."""

from __future__ import annotations

import codecs

from charset_normalizer import from_bytes

from usefulpayload.ingestion.models import FormatTag


def detect_encoding(raw: bytes) -> str:
    """Best-effort charset for ``raw``; UTF-8 wins whenever it decodes cleanly."""

    if raw.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    try:
        raw.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    best = from_bytes(raw).best()
    if best and best.encoding:
        name = best.encoding.lower()
        if name in {"windows-1251", "cp1251"}:
            return "cp1251"
        return best.encoding

    raise ValueError("Could not detect text encoding")


def decode_text(raw: bytes) -> str:
    """Decode text payloads with the detected charset."""

    if not raw:
        return ""
    return raw.decode(detect_encoding(raw))


class TXTAdapter:
    """Decode plain-text payloads with robust charset handling."""

    format = FormatTag.PLAINTEXT

    def extract_text(self, content: bytes) -> str:
        return decode_text(content)
