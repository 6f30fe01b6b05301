"""JSON adapter that flattens arbitrary values into labelled prose."""

from __future__ import annotations

import json
import re
from typing import Any

from usefulpayload.ingestion.adapters.txt_adapter import decode_text
from usefulpayload.ingestion.models import FormatTag

MIN_STRING_CHARS = 10

_IDENTIFIER_VALUE_RE = re.compile(r"[A-Za-z0-9_-]+")
_IDENTIFIER_KEY_RE = re.compile(r"id|_id|key|idx", re.IGNORECASE)
_LETTERS_ONLY_RE = re.compile(r"[^\W\d_]+")
_KEY_SEPARATOR_RE = re.compile(r"[_-]")


def _label_for_key(key: str) -> str | None:
    if len(key) <= 2 or _IDENTIFIER_KEY_RE.fullmatch(key):
        return None
    label = _KEY_SEPARATOR_RE.sub(" ", key).lower()
    if len(label) <= 3:
        return None
    return f"{label}:"


def _keep_string(value: str, *, labelled: bool) -> bool:
    if len(value) > MIN_STRING_CHARS and not _IDENTIFIER_VALUE_RE.fullmatch(value):
        return True
    # Short plain words still read well right after their label.
    return labelled and bool(_LETTERS_ONLY_RE.fullmatch(value))


def flatten_json(value: Any, *, labelled: bool = False) -> str:
    """Depth-first textual projection of a parsed JSON value."""

    parts: list[str] = []

    if isinstance(value, str):
        if _keep_string(value, labelled=labelled):
            parts.append(value)
    elif isinstance(value, list):
        for item in value:
            item_text = flatten_json(item)
            if item_text:
                parts.append(item_text)
    elif isinstance(value, dict):
        for key, item in value.items():
            label = _label_for_key(str(key))
            if label:
                parts.append(label)
            item_text = flatten_json(item, labelled=label is not None)
            if item_text:
                parts.append(item_text)

    return " ".join(parts).strip()


class JSONAdapter:
    """Extract prose from JSON documents; numbers, booleans and ids are dropped."""

    format = FormatTag.JSON

    def extract_text(self, content: bytes) -> str:
        if not content.strip():
            return ""
        data = json.loads(decode_text(content))
        return flatten_json(data)
