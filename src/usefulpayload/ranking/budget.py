"""Greedy token-budgeted selection of ranked units."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from usefulpayload.ingestion.models import BudgetedSelection, ScoredUnit
from usefulpayload.ranking.dedupe import rank_order

DEFAULT_TOKEN_ENCODING = "r50k_base"


class TokenCounter(Protocol):
    def count(self, text: str) -> int:
        ...


class TiktokenCounter:
    """Token counts under a fixed tiktoken encoding, loaded on first use."""

    def __init__(self, encoding: str = DEFAULT_TOKEN_ENCODING) -> None:
        self._encoding_name = encoding
        self._encoding: Any | None = None

    @property
    def encoding_name(self) -> str:
        return self._encoding_name

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._get_encoding().encode(text, disallowed_special=()))

    def _get_encoding(self) -> Any:
        if self._encoding is None:
            import tiktoken

            self._encoding = tiktoken.get_encoding(self._encoding_name)
        return self._encoding


def select(
    units: Sequence[ScoredUnit],
    token_budget: int,
    counter: TokenCounter,
) -> BudgetedSelection:
    """Take units best-first while they fit; the result keeps document order.

    A unit that would overflow the budget is skipped whole and the scan goes
    on, so a smaller lower-ranked unit can still use the remaining headroom.
    """

    if token_budget < 0:
        raise ValueError("token_budget cannot be negative")
    if token_budget == 0:
        return BudgetedSelection(dropped_count=len(units))

    selected: list[ScoredUnit] = []
    running = 0
    dropped = 0

    for unit in rank_order(units):
        tokens = counter.count(unit.text)
        if running + tokens > token_budget:
            dropped += 1
            continue
        selected.append(unit)
        running += tokens

    ordered = tuple(unit.to_unit() for unit in sorted(selected, key=lambda unit: unit.position))
    return BudgetedSelection(units=ordered, token_count=running, dropped_count=dropped)
