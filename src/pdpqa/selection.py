"""Precondition matching: pick the catalog entries a page can run."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from pdpqa.catalog import ANY_STATE, CatalogEntry


@dataclass(frozen=True)
class SelectionResult:
    """Applicable and skipped entries, both in catalog order."""

    selected: tuple[CatalogEntry, ...]
    skipped: tuple[CatalogEntry, ...]

    @property
    def total(self) -> int:
        return len(self.selected) + len(self.skipped)


def matches_product_state(required: Any, tokens: frozenset[str] | set[str]) -> bool:
    """
    Check a ``productState`` requirement against detected tokens.

    - ``"any"`` always matches
    - a single token matches iff it was detected
    - a non-empty list matches iff every token in it was detected
    - anything else never matches
    """
    if required == ANY_STATE:
        return True

    if isinstance(required, str):
        return required in tokens

    if isinstance(required, (list, tuple)):
        if not required or not all(isinstance(t, str) for t in required):
            return False
        return all(token in tokens for token in required)

    return False


def partition_tests(
    entries: Sequence[CatalogEntry],
    tokens: Iterable[str],
) -> SelectionResult:
    """Split entries into applicable and skipped, preserving order."""
    token_set = frozenset(tokens)
    selected: list[CatalogEntry] = []
    skipped: list[CatalogEntry] = []

    for entry in entries:
        if matches_product_state(entry.preconditions.product_state, token_set):
            selected.append(entry)
        else:
            skipped.append(entry)

    return SelectionResult(selected=tuple(selected), skipped=tuple(skipped))


def select_applicable_tests(
    entries: Sequence[CatalogEntry],
    tokens: Iterable[str],
) -> list[CatalogEntry]:
    """Return the entries whose product-state precondition is satisfied."""
    return list(partition_tests(entries, tokens).selected)
