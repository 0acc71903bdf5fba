"""Pytest fixtures for pdpqa tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pdpqa.capabilities import PageCapabilities
from pdpqa.catalog import CatalogDocument, parse_catalog
from pdpqa.llm.assistant import ObservedElement
from pdpqa.page import ElementNotFoundError


class FakeElement:
    """In-memory stand-in for pdpqa.page.ElementHandle."""

    def __init__(
        self,
        selector: str,
        count: int = 1,
        visible: bool = True,
        enabled: bool = True,
        text: str | None = "",
        options: list[str] | None = None,
    ) -> None:
        self.selector = selector
        self._count = count
        self.visible = visible
        self.enabled = enabled
        self.text = text
        self.options = options or []
        self.clicks = 0
        self.selected: int | None = None

    async def count(self) -> int:
        return self._count

    async def is_visible(self, timeout_ms: int | None = None) -> bool:
        return self._count > 0 and self.visible

    async def is_enabled(self) -> bool:
        return self.enabled

    async def text_content(self) -> str | None:
        return self.text if self._count else None

    async def option_count(self) -> int:
        return len(self.options)

    async def click(self) -> None:
        if self._count == 0:
            raise ElementNotFoundError(f"Element not found: {self.selector}")
        self.clicks += 1

    async def select_option(self, index: int) -> str:
        self.selected = index
        return self.options[index]


class FakePage:
    """In-memory product page keyed by exact selector strings."""

    def __init__(self) -> None:
        self.elements: dict[str, FakeElement] = {"body": FakeElement("body")}
        self.waits: list[int] = []

    def add(self, selector: str, **kwargs: Any) -> FakeElement:
        element = FakeElement(selector, **kwargs)
        self.elements[selector] = element
        return element

    def locate(self, selector: str) -> FakeElement:
        return self.elements.get(selector) or FakeElement(selector, count=0, visible=False, text=None)

    async def wait(self, ms: int) -> None:
        self.waits.append(ms)


class FakeAssistant:
    """Scripted page assistant."""

    def __init__(self) -> None:
        self.capabilities: PageCapabilities | None = None
        self.extract_error: Exception | None = None
        self.observed: list[ObservedElement] = []
        self.observe_error: Exception | None = None
        self.observe_calls: list[str] = []

    async def extract(self, instruction: str, schema: type[PageCapabilities]) -> PageCapabilities:
        if self.extract_error is not None:
            raise self.extract_error
        assert self.capabilities is not None
        return self.capabilities

    async def observe(self, instruction: str) -> list[ObservedElement]:
        self.observe_calls.append(instruction)
        if self.observe_error is not None:
            raise self.observe_error
        return list(self.observed)


@pytest.fixture
def fake_page() -> FakePage:
    """Empty product page (only ``body`` is present)."""
    return FakePage()


@pytest.fixture
def fake_assistant() -> FakeAssistant:
    """Assistant that finds nothing until scripted."""
    return FakeAssistant()


@pytest.fixture
def catalog_data() -> dict[str, Any]:
    """Raw catalog JSON covering sentinel, single and list preconditions."""
    return {
        "version": "1.0.0",
        "name": "Sample catalog",
        "categoryDefinitions": {
            "core-product-info": "Core Product Information",
            "pricing": "Pricing & Promotions",
        },
        "templates": [
            {
                "id": "t1",
                "name": "Title visible",
                "description": "Title is displayed",
                "category": "core-product-info",
                "priority": "P0",
                "preconditions": {"productState": "any", "userState": "any", "viewport": "any"},
            },
            {
                "id": "t2",
                "name": "Stock message",
                "description": "Stock status is displayed",
                "category": "core-product-info",
                "priority": "P1",
                "preconditions": {"productState": "in_stock", "userState": "any", "viewport": "any"},
            },
            {
                "id": "t3",
                "name": "Variant sale price",
                "description": "Variants keep the discount",
                "category": "pricing",
                "priority": "P1",
                "preconditions": {
                    "productState": ["has_variants", "on_sale"],
                    "userState": "any",
                    "viewport": "any",
                },
            },
        ],
    }


@pytest.fixture
def sample_catalog(catalog_data: dict[str, Any]) -> CatalogDocument:
    """Parsed three-entry catalog."""
    return parse_catalog(catalog_data)


@pytest.fixture
def mock_browser() -> MagicMock:
    """Create a mock OwlBrowser instance (SDK v2)."""
    browser = MagicMock()

    # SDK v2: create_context returns a dict with context_id
    browser.create_context = AsyncMock(return_value={"context_id": "test-ctx-001"})
    browser.close_context = AsyncMock(return_value=None)

    # SDK v2: all methods are async and take context_id
    browser.navigate = AsyncMock(return_value=None)
    browser.wait_for_network_idle = AsyncMock(return_value=None)
    browser.wait_for_selector = AsyncMock(return_value=None)
    browser.click = AsyncMock(return_value=None)
    browser.pick = AsyncMock(return_value=None)
    browser.is_visible = AsyncMock(return_value={"visible": True})
    browser.is_enabled = AsyncMock(return_value={"success": True})
    browser.evaluate = AsyncMock(return_value={"result": None})
    browser.screenshot = AsyncMock(return_value={"data": b"\x89PNG"})

    return browser
