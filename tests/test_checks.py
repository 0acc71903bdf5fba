"""Tests for registered product page checks and element discovery."""

from __future__ import annotations

import pytest

from pdpqa.catalog import CatalogEntry
from pdpqa.checks import (
    THUMBNAIL_SELECTOR,
    CheckContext,
    CheckFailed,
    CheckRegistry,
    check_atc_works,
    check_image_gallery,
    check_price_visible,
    check_title_visible,
    check_variant_selection_works,
    expect,
    registry,
)
from pdpqa.llm.assistant import ObservedElement
from pdpqa.llm.client import LLMClientError
from pdpqa.locators import discover
from pdpqa.page import ElementNotFoundError
from pdpqa.trace import StepAction, StepLog


def _context(page, assistant=None, test_id: str = "pdp-title-visible", category: str = "core-product-info"):
    entry = CatalogEntry(id=test_id, name=test_id, description="", category=category, priority="P0")
    return CheckContext(entry=entry, page=page, steps=StepLog(), assistant=assistant, cart_update_wait_ms=2000)


class TestExpect:
    """Test the assertion helper."""

    def test_passes_silently(self) -> None:
        expect(True, "never raised")

    def test_raises_check_failed(self) -> None:
        """CheckFailed is an AssertionError carrying expected and actual."""
        with pytest.raises(AssertionError) as exc_info:
            expect(False, "Title empty", expected="non-empty", actual="")

        assert isinstance(exc_info.value, CheckFailed)
        assert exc_info.value.expected == "non-empty"
        assert exc_info.value.actual == ""


class TestCheckRegistry:
    """Test the (category, id) registry."""

    def test_register_and_lookup(self) -> None:
        """Registered procedures are found by their key only."""
        checks = CheckRegistry()

        @checks.register("pricing", "p1")
        async def _check(ctx: CheckContext) -> None:
            pass

        assert checks.lookup("pricing", "p1") is _check
        assert checks.lookup("pricing", "p2") is None
        assert checks.is_known_category("pricing") is True
        assert checks.is_known_category("media") is False
        assert ("pricing", "p1") in checks
        assert len(checks) == 1

    def test_duplicate_registration_rejected(self) -> None:
        """A key can only be registered once."""
        checks = CheckRegistry()

        @checks.register("pricing", "p1")
        async def _first(ctx: CheckContext) -> None:
            pass

        with pytest.raises(ValueError):

            @checks.register("pricing", "p1")
            async def _second(ctx: CheckContext) -> None:
                pass

    def test_default_registry_contents(self) -> None:
        """The built-in checks cover the five product page categories."""
        assert registry.categories == [
            "core-product-info",
            "pricing",
            "variant-selection",
            "add-to-cart",
            "product-media",
        ]
        assert len(registry) == 10


class TestDiscover:
    """Test structural-first discovery with AI fallback."""

    async def test_structural_hit_skips_ai(self, fake_page, fake_assistant) -> None:
        """The first visible structural candidate wins without asking the AI."""
        fake_page.add(".b")
        fake_page.add(".c")

        found = await discover(fake_page, [".a", ".b", ".c"], "find thing", fake_assistant)

        assert found.selector == ".b"
        assert found.via_ai is False
        assert found.candidates_tried == 2
        assert fake_assistant.observe_calls == []

    async def test_hidden_candidate_skipped(self, fake_page) -> None:
        """Present but hidden elements do not count."""
        fake_page.add(".a", visible=False)
        fake_page.add(".b")

        found = await discover(fake_page, [".a", ".b"], "find thing")

        assert found.selector == ".b"

    async def test_ai_fallback_returns_visible_match(self, fake_page, fake_assistant) -> None:
        """AI discovery runs after all candidates miss and skips hidden hits."""
        fake_assistant.observed = [
            ObservedElement("//div[@id='gone']"),
            ObservedElement("//h2[@class='name']"),
        ]
        fake_page.add("//h2[@class='name']")

        found = await discover(fake_page, [".a"], "find product title", fake_assistant)

        assert found.selector == "//h2[@class='name']"
        assert found.via_ai is True
        assert fake_assistant.observe_calls == ["find product title"]

    async def test_ai_finds_nothing(self, fake_page, fake_assistant) -> None:
        """No visible AI candidate means not found."""
        found = await discover(fake_page, [".a"], "find thing", fake_assistant)

        assert found.found is False
        assert fake_assistant.observe_calls == ["find thing"]

    async def test_ai_fault_propagates(self, fake_page, fake_assistant) -> None:
        """Assistant faults are not swallowed."""
        fake_assistant.observe_error = LLMClientError("no reply")

        with pytest.raises(LLMClientError):
            await discover(fake_page, [".a"], "find thing", fake_assistant)


class TestTitleCheck:
    """Test pdp-title-visible."""

    async def test_visible_title(self, fake_page) -> None:
        fake_page.add("h1", text="Classic Tee")
        ctx = _context(fake_page)

        await check_title_visible(ctx)

        (step,) = ctx.steps.snapshot()
        assert step.action == StepAction.ASSERT
        assert step.selector == "h1"
        assert step.result is True

    async def test_empty_title_fails(self, fake_page) -> None:
        fake_page.add("h1", text="   ")
        ctx = _context(fake_page)

        with pytest.raises(CheckFailed, match="empty"):
            await check_title_visible(ctx)

    async def test_missing_title_fails_with_partial_log(self, fake_page) -> None:
        ctx = _context(fake_page)

        with pytest.raises(CheckFailed):
            await check_title_visible(ctx)

        (step,) = ctx.steps.snapshot()
        assert step.result is False

    async def test_ai_discovered_title(self, fake_page, fake_assistant) -> None:
        """An AI-discovered title is recorded once, by the check's own assertion."""
        fake_assistant.observed = [ObservedElement("//h2[@class='product-name']")]
        fake_page.add("//h2[@class='product-name']", text="Classic Tee")
        ctx = _context(fake_page, fake_assistant)

        await check_title_visible(ctx)

        (step,) = ctx.steps.snapshot()
        assert step.action == StepAction.ASSERT
        assert step.selector == "//h2[@class='product-name']"


class TestPriceCheck:
    """Test pdp-price-visible."""

    @pytest.mark.parametrize("text", ["$19.99", "€ 1,299", "₹2,499.00", "Sale price £12"])
    async def test_currency_amounts_pass(self, fake_page, text: str) -> None:
        fake_page.add(".product-price", text=text)
        ctx = _context(fake_page, test_id="pdp-price-visible", category="pricing")

        await check_price_visible(ctx)

        log = ctx.steps.snapshot()
        assert [s.action for s in log] == [StepAction.ASSERT, StepAction.EXTRACT]
        assert log[1].result == text

    async def test_text_without_amount_fails(self, fake_page) -> None:
        fake_page.add(".product-price", text="Call for price")
        ctx = _context(fake_page, test_id="pdp-price-visible", category="pricing")

        with pytest.raises(CheckFailed):
            await check_price_visible(ctx)

        assert len(ctx.steps) == 2


class TestVariantSelectionCheck:
    """Test pdp-variant-selection-works."""

    async def test_selects_second_option(self, fake_page) -> None:
        dropdown = fake_page.add('select[name*="variant"]', options=["S", "M", "L"])
        ctx = _context(fake_page, test_id="pdp-variant-selection-works", category="variant-selection")

        await check_variant_selection_works(ctx)

        (step,) = ctx.steps.snapshot()
        assert dropdown.selected == 1
        assert step.action == StepAction.ACT
        assert step.result == {"index": 1, "value": "M"}

    async def test_no_dropdown_passes_without_steps(self, fake_page) -> None:
        ctx = _context(fake_page, test_id="pdp-variant-selection-works", category="variant-selection")

        await check_variant_selection_works(ctx)

        assert len(ctx.steps) == 0

    async def test_single_option_not_changed(self, fake_page) -> None:
        dropdown = fake_page.add('select[name*="variant"]', options=["One size"])
        ctx = _context(fake_page, test_id="pdp-variant-selection-works", category="variant-selection")

        await check_variant_selection_works(ctx)

        assert dropdown.selected is None
        assert len(ctx.steps) == 0


class TestAddToCartCheck:
    """Test pdp-atc-works."""

    async def test_click_and_cart_feedback(self, fake_page) -> None:
        button = fake_page.add('button[name="add"]')
        fake_page.add(".cart__count", text="1")
        ctx = _context(fake_page, test_id="pdp-atc-works", category="add-to-cart")

        await check_atc_works(ctx)

        log = ctx.steps.snapshot()
        assert button.clicks == 1
        assert fake_page.waits == [2000]
        assert [s.action for s in log] == [StepAction.ACT, StepAction.ASSERT]
        assert log[0].instruction == "click add to cart"
        assert log[1].selector == ".cart__count"

    async def test_missing_button_is_not_found(self, fake_page) -> None:
        ctx = _context(fake_page, test_id="pdp-atc-works", category="add-to-cart")

        with pytest.raises(ElementNotFoundError):
            await check_atc_works(ctx)

        assert len(ctx.steps) == 0

    async def test_no_cart_feedback_fails(self, fake_page) -> None:
        fake_page.add('button[name="add"]')
        ctx = _context(fake_page, test_id="pdp-atc-works", category="add-to-cart")

        with pytest.raises(CheckFailed):
            await check_atc_works(ctx)


class TestGalleryCheck:
    """Test pdp-image-gallery-works."""

    async def test_several_thumbnails(self, fake_page) -> None:
        fake_page.add(THUMBNAIL_SELECTOR, count=4)
        ctx = _context(fake_page, test_id="pdp-image-gallery-works", category="product-media")

        await check_image_gallery(ctx)

        (step,) = ctx.steps.snapshot()
        assert step.action == StepAction.ASSERT
        assert step.selector == THUMBNAIL_SELECTOR
        assert step.result == {"count": 4, "minimum": 2}

    async def test_single_thumbnail_fails(self, fake_page) -> None:
        fake_page.add(THUMBNAIL_SELECTOR, count=1)
        ctx = _context(fake_page, test_id="pdp-image-gallery-works", category="product-media")

        with pytest.raises(CheckFailed):
            await check_image_gallery(ctx)
