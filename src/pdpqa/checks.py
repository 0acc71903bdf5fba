"""
Registered product page checks.

Each check is an async procedure registered for a ``(category, test id)``
pair. Checks look elements up structurally first (see ``pdpqa.locators``),
record every discovery, action and assertion into the test's step log, and
raise CheckFailed when the checked condition does not hold.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from pdpqa.locators import discover, first_visible
from pdpqa.page import ElementNotFoundError

if TYPE_CHECKING:
    from pdpqa.catalog import CatalogEntry
    from pdpqa.llm.assistant import PageAssistant
    from pdpqa.page import ProductPage
    from pdpqa.trace import StepLog

logger = structlog.get_logger(__name__)

PRICE_PATTERN = re.compile(r"[₹$£€¥]\s*[\d,]+")


class CheckFailed(AssertionError):
    """A checked condition was not met (expected vs. actual mismatch)."""

    def __init__(self, message: str, expected: Any = None, actual: Any = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


def expect(condition: bool, message: str, expected: Any = True, actual: Any = None) -> None:
    """Raise CheckFailed unless ``condition`` holds."""
    if not condition:
        raise CheckFailed(
            f"{message} (expected {expected!r}, got {actual if actual is not None else condition!r})",
            expected=expected,
            actual=actual if actual is not None else condition,
        )


@dataclass
class CheckContext:
    """Everything a check procedure may touch."""

    entry: CatalogEntry
    page: ProductPage
    steps: StepLog
    assistant: PageAssistant | None = None
    cart_update_wait_ms: int = 2000

    async def discover(self, candidates: list[str], instruction: str) -> str | None:
        found = await discover(self.page, candidates, instruction, self.assistant)
        return found.selector


CheckFn = Callable[[CheckContext], Awaitable[None]]


class CheckRegistry:
    """Maps ``(category, test id)`` to a check procedure."""

    def __init__(self) -> None:
        self._checks: dict[tuple[str, str], CheckFn] = {}

    def register(self, category: str, test_id: str) -> Callable[[CheckFn], CheckFn]:
        def decorator(fn: CheckFn) -> CheckFn:
            key = (category, test_id)
            if key in self._checks:
                raise ValueError(f"Check already registered for {category}/{test_id}")
            self._checks[key] = fn
            return fn

        return decorator

    def lookup(self, category: str, test_id: str) -> CheckFn | None:
        return self._checks.get((category, test_id))

    def is_known_category(self, category: str) -> bool:
        return any(cat == category for cat, _ in self._checks)

    @property
    def categories(self) -> list[str]:
        return list(dict.fromkeys(cat for cat, _ in self._checks))

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, key: object) -> bool:
        return key in self._checks


registry = CheckRegistry()


# ── Selector candidates ───────────────────────────────────────────────────────

TITLE_SELECTORS = [
    "h1",
    "[data-product-title]",
    ".product-title",
    ".product__title",
    'h1[class*="title"]',
    'h1[class*="product"]',
]

DESCRIPTION_SELECTORS = [
    ".product-description",
    '[class*="description"]',
    '[class*="detail"]',
    ".product__description",
    "[data-description]",
    'div[class*="product"] p',
    ".rte",
]

PRICE_SELECTORS = [
    ".product-price",
    "[data-product-price]",
    ".price__regular",
    ".price--main",
    ".price__sale",
    ".price-item--sale",
    "span.price",
    'span[class*="price"]:not([class*="compare"]):not([class*="was"])',
    '[class*="current-price"]',
    '[class*="sale-price"]',
    '[class*="selling-price"]',
    ".product__price",
    ".product-form__price",
    'div[class*="price"]',
]

COMPARE_AT_PRICE_SELECTORS = [
    ".compare-at-price",
    '[class*="compare-price"]',
    '[class*="original-price"]',
    '[class*="was-price"]',
    ".price__compare",
    ".price--compare",
    's[class*="price"]',
    'del[class*="price"]',
    '[class*="regular-price"]',
]

VARIANT_SELECTORS = [
    'select[name*="variant"]',
    ".product-form__input",
    '[class*="variant-select"]',
    '[class*="variant-selector"]',
    '[class*="variant"] button',
    '[class*="variant"] input[type="radio"]',
    ".variant-options",
    'fieldset[class*="variant"]',
    "[data-variant-selector]",
]

VARIANT_DROPDOWN_SELECTORS = [
    'select[name*="variant"]',
    '[class*="variant-select"]',
]

ADD_TO_CART_SELECTORS = [
    'button[name="add"]',
    '[name="add"]',
    ".add-to-cart",
    '[class*="add-to-cart"]',
    'form[action*="/cart/add"] button[type="submit"]',
]

CART_INDICATOR_SELECTORS = [
    '[href*="cart"] .cart-count-bubble',
    '[href*="/cart"] [class*="count"]',
    ".cart__count",
    ".cart-link__bubble",
    "[data-cart-count]",
    'a[href*="cart"]',
]

MAIN_IMAGE_SELECTORS = [
    ".product__media img",
    "[data-product-image]",
    ".product-image",
    '[class*="product-image"]',
    ".product__main-image",
    ".featured-image img",
    '[role="img"]',
    'img[src*="product"]',
]

THUMBNAIL_SELECTOR = '[class*="thumbnail"], .product__media-item, [data-media-id]'
GALLERY_MIN_THUMBNAILS = 2


# ── core-product-info ─────────────────────────────────────────────────────────

@registry.register("core-product-info", "pdp-title-visible")
async def check_title_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(TITLE_SELECTORS, "find product title")
    title_text = await ctx.page.locate(selector).text_content() if selector else None

    ctx.steps.assert_(selector=selector or "h1", result=selector is not None)

    expect(selector is not None, "Product title is not visible")
    expect(bool(title_text and title_text.strip()), "Product title is empty", expected="non-empty", actual=title_text)


@registry.register("core-product-info", "pdp-description-visible")
async def check_description_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(DESCRIPTION_SELECTORS, "find product description")

    ctx.steps.observe(
        instruction="find product description",
        selector=selector or ".product-description",
        result=selector is not None,
    )

    expect(selector is not None, "Product description is not visible")


# ── pricing ───────────────────────────────────────────────────────────────────

@registry.register("pricing", "pdp-price-visible")
async def check_price_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(PRICE_SELECTORS, "find product price")
    price_text = (await ctx.page.locate(selector).text_content() or "") if selector else ""

    ctx.steps.assert_(selector=selector or '[class*="price"]', result=selector is not None)
    expect(selector is not None, "Product price is not visible")

    ctx.steps.extract(instruction="read displayed price", selector=selector, result=price_text.strip())
    expect(
        PRICE_PATTERN.search(price_text) is not None,
        "Price text has no currency amount",
        expected=PRICE_PATTERN.pattern,
        actual=price_text.strip(),
    )


@registry.register("pricing", "pdp-compare-at-price-visible")
async def check_compare_at_price_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(COMPARE_AT_PRICE_SELECTORS, "find compare-at (original) price")

    ctx.steps.assert_(selector=selector or '[class*="compare"]', result=selector is not None)

    expect(selector is not None, "Compare-at price is not visible")


# ── variant-selection ─────────────────────────────────────────────────────────

@registry.register("variant-selection", "pdp-variant-selector-visible")
async def check_variant_selector_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(VARIANT_SELECTORS, "find variant selector")

    ctx.steps.observe(
        instruction="find variant selector",
        selector=selector or 'select[name*="variant"]',
        result=selector is not None,
    )

    expect(selector is not None, "Variant selector is not visible")


@registry.register("variant-selection", "pdp-variant-selection-works")
async def check_variant_selection_works(ctx: CheckContext) -> None:
    selector = await first_visible(ctx.page, VARIANT_DROPDOWN_SELECTORS)
    if selector is None:
        # Swatch/button variants have no dropdown to drive.
        return

    dropdown = ctx.page.locate(selector)
    if await dropdown.option_count() > 1:
        value = await dropdown.select_option(1)
        ctx.steps.act(
            instruction="select variant option",
            selector=selector,
            result={"index": 1, "value": value},
        )


# ── add-to-cart ───────────────────────────────────────────────────────────────

@registry.register("add-to-cart", "pdp-atc-button-visible-and-enabled")
async def check_atc_button(ctx: CheckContext) -> None:
    selector = await ctx.discover(ADD_TO_CART_SELECTORS, "find add to cart button")

    ctx.steps.observe(instruction="find add to cart button", selector=selector, result=selector is not None)
    expect(selector is not None, "Add to cart button not found")

    button = ctx.page.locate(selector)
    is_visible = await button.is_visible()
    is_enabled = await button.is_enabled()

    ctx.steps.assert_(result={"isVisible": is_visible, "isEnabled": is_enabled})

    expect(is_visible, "Add to cart button is not visible")
    expect(is_enabled, "Add to cart button is disabled")


@registry.register("add-to-cart", "pdp-atc-works")
async def check_atc_works(ctx: CheckContext) -> None:
    selector = await ctx.discover(ADD_TO_CART_SELECTORS, "find add to cart button")
    if selector is None:
        raise ElementNotFoundError("Add to cart button not found")

    await ctx.page.locate(selector).click()
    ctx.steps.act(instruction="click add to cart", selector=selector)

    await ctx.page.wait(ctx.cart_update_wait_ms)

    cart_selector = await first_visible(ctx.page, CART_INDICATOR_SELECTORS, timeout_ms=1000)

    ctx.steps.assert_(selector=cart_selector or '[href*="cart"]', result=cart_selector is not None)

    expect(cart_selector is not None, "No cart feedback after adding to cart")


# ── product-media ─────────────────────────────────────────────────────────────

@registry.register("product-media", "pdp-main-image-visible")
async def check_main_image_visible(ctx: CheckContext) -> None:
    selector = await ctx.discover(MAIN_IMAGE_SELECTORS, "find main product image")

    ctx.steps.assert_(selector=selector or ".product__media img", result=selector is not None)

    expect(selector is not None, "Main product image is not visible")


@registry.register("product-media", "pdp-image-gallery-works")
async def check_image_gallery(ctx: CheckContext) -> None:
    count = await ctx.page.locate(THUMBNAIL_SELECTOR).count()

    ctx.steps.assert_(
        instruction="find image thumbnails",
        selector=THUMBNAIL_SELECTOR if count > 0 else None,
        result={"count": count, "minimum": GALLERY_MIN_THUMBNAILS},
    )

    expect(
        count >= GALLERY_MIN_THUMBNAILS,
        "Image gallery has fewer than two thumbnails",
        expected=f">= {GALLERY_MIN_THUMBNAILS}",
        actual=count,
    )


# ── fallback ──────────────────────────────────────────────────────────────────

async def check_page_loaded(ctx: CheckContext) -> None:
    """Generic check for entries without a category procedure."""
    is_loaded = await ctx.page.locate("body").is_visible()

    ctx.steps.assert_(instruction=f"generic test: {ctx.entry.name}", result=is_loaded)

    expect(is_loaded, "Page body is not visible")
