"""
Test catalog loading.

The catalog is a trusted JSON document: an ordered ``templates`` list of
test case definitions plus vocabulary tables describing the category,
priority and state tokens those definitions use. It is read once per run
and never mutated.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

ANY_STATE = "any"

DEFAULT_CATALOG_RESOURCE = "tests.json"


class CatalogLoadError(Exception):
    """Raised when the catalog file cannot be read or parsed."""

    pass


@dataclass(frozen=True)
class Preconditions:
    """Requirements gating whether a catalog entry applies to a page."""

    product_state: str | tuple[str, ...] = ANY_STATE
    user_state: str = ANY_STATE
    viewport: str = ANY_STATE
    url_state: str | None = None
    simulated_state: str | None = None


@dataclass(frozen=True)
class CatalogEntry:
    """A single test case definition."""

    id: str
    name: str
    description: str
    category: str
    priority: str
    preconditions: Preconditions = field(default_factory=Preconditions)


@dataclass(frozen=True)
class CatalogDocument:
    """A loaded test catalog with its vocabulary tables."""

    templates: tuple[CatalogEntry, ...]
    version: str = ""
    name: str = ""
    description: str = ""
    page_types: tuple[str, ...] = ()
    category_definitions: dict[str, str] = field(default_factory=dict)
    priority_definitions: dict[str, str] = field(default_factory=dict)
    product_state_definitions: dict[str, str] = field(default_factory=dict)
    user_state_definitions: dict[str, str] = field(default_factory=dict)
    viewport_definitions: dict[str, str] = field(default_factory=dict)

    def get(self, test_id: str) -> CatalogEntry | None:
        """Look up an entry by id."""
        for entry in self.templates:
            if entry.id == test_id:
                return entry
        return None

    def category_name(self, category: str) -> str:
        """Human-readable name for a category tag, or the tag itself."""
        return self.category_definitions.get(category, category)


def _parse_product_state(value: Any) -> Any:
    # Lists become tuples so entries stay hashable; any other shape is kept
    # as-is and rejected by the selector.
    if isinstance(value, list):
        return tuple(value)
    return value


def _parse_preconditions(data: dict[str, Any]) -> Preconditions:
    return Preconditions(
        product_state=_parse_product_state(data.get("productState", ANY_STATE)),
        user_state=data.get("userState", ANY_STATE),
        viewport=data.get("viewport", ANY_STATE),
        url_state=data.get("urlState"),
        simulated_state=data.get("simulatedState"),
    )


def parse_entry(data: dict[str, Any]) -> CatalogEntry:
    """Parse a single ``templates`` item."""
    return CatalogEntry(
        id=data["id"],
        name=data.get("name", data["id"]),
        description=data.get("description", ""),
        category=data.get("category", "unknown"),
        priority=data.get("priority", "P1"),
        preconditions=_parse_preconditions(data.get("preconditions") or {}),
    )


def parse_catalog(data: dict[str, Any]) -> CatalogDocument:
    """Parse a catalog dict into a CatalogDocument."""
    if not isinstance(data, dict) or "templates" not in data:
        raise CatalogLoadError("Catalog JSON must contain a 'templates' array")

    try:
        templates = tuple(parse_entry(item) for item in data["templates"])
    except (KeyError, TypeError, AttributeError) as e:
        raise CatalogLoadError(f"Malformed catalog entry: {e}") from e

    return CatalogDocument(
        templates=templates,
        version=data.get("version", ""),
        name=data.get("name", ""),
        description=data.get("description", ""),
        page_types=tuple(data.get("pageTypes", ())),
        category_definitions=dict(data.get("categoryDefinitions", {})),
        priority_definitions=dict(data.get("priorityDefinitions", {})),
        product_state_definitions=dict(data.get("productStateDefinitions", {})),
        user_state_definitions=dict(data.get("userStateDefinitions", {})),
        viewport_definitions=dict(data.get("viewportDefinitions", {})),
    )


def default_catalog_path() -> Path:
    """Path of the catalog bundled with the package."""
    return Path(str(resources.files("pdpqa") / "data" / DEFAULT_CATALOG_RESOURCE))


def load_catalog(path: str | Path | None = None) -> CatalogDocument:
    """Load a catalog from a JSON file (the bundled one when path is None)."""
    path = Path(path) if path else default_catalog_path()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise CatalogLoadError(f"Catalog file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Catalog file is not valid JSON: {path}: {e}") from e

    catalog = parse_catalog(data)
    logger.info("catalog_loaded", path=str(path), tests=len(catalog.templates))
    return catalog
