"""Tests for capability detection."""

from __future__ import annotations

from pdpqa.capabilities import (
    CapabilityDetector,
    DetectionResult,
    PageCapabilities,
    normalize_state,
    tokens_from_capabilities,
)
from pdpqa.llm.client import LLMClientError


def _caps(**overrides: object) -> PageCapabilities:
    values: dict[str, object] = {
        "in_stock": True,
        "has_variants": False,
        "on_sale": False,
        "has_subscription": False,
        "has_multiple_images": False,
    }
    values.update(overrides)
    return PageCapabilities(**values)


class TestPageCapabilities:
    """Test the detection answer schema."""

    def test_accepts_camel_case_aliases(self) -> None:
        """Model replies use camelCase keys."""
        caps = PageCapabilities.model_validate(
            {
                "inStock": False,
                "hasVariants": True,
                "onSale": True,
                "hasSubscription": False,
                "hasMultipleImages": True,
                "additionalStates": ["pre-order"],
            }
        )

        assert caps.in_stock is False
        assert caps.has_variants is True
        assert caps.has_multiple_images is True
        assert caps.additional_states == ["pre-order"]

    def test_additional_states_optional(self) -> None:
        """additionalStates may be omitted."""
        assert _caps().additional_states is None


class TestTokensFromCapabilities:
    """Test mapping a detection answer to tokens."""

    def test_full_mapping_in_order(self) -> None:
        """Inventory first, then features, then extra states, then the sentinel."""
        caps = _caps(has_variants=True, on_sale=True, has_subscription=True, has_multiple_images=True)

        assert tokens_from_capabilities(caps) == (
            "in_stock",
            "has_variants",
            "on_sale",
            "has_subscription",
            "multiple_images",
            "any",
        )

    def test_out_of_stock(self) -> None:
        """A page that cannot be purchased gets out_of_stock."""
        assert tokens_from_capabilities(_caps(in_stock=False)) == ("out_of_stock", "any")

    def test_inventory_tokens_mutually_exclusive(self) -> None:
        """Free-form states never add a second inventory token."""
        for in_stock in (True, False):
            caps = _caps(in_stock=in_stock, additional_states=["Out of Stock", "in stock", "in-stock"])
            tokens = set(tokens_from_capabilities(caps))

            assert not {"in_stock", "out_of_stock"} <= tokens

    def test_additional_states_are_normalized_and_deduplicated(self) -> None:
        """Extra states become snake_case tokens, each once."""
        caps = _caps(additional_states=["Low Stock", "low-stock", "Pre-Order", "", "  "])

        assert tokens_from_capabilities(caps) == ("in_stock", "low_stock", "pre_order", "any")

    def test_normalize_state(self) -> None:
        """Whitespace and dashes collapse to underscores."""
        assert normalize_state("  Back  Order ") == "back_order"
        assert normalize_state("pre-order") == "pre_order"


class TestCapabilityDetector:
    """Test the detection call and its degraded path."""

    async def test_detect_success(self, fake_assistant) -> None:
        """A valid answer produces a non-degraded result."""
        fake_assistant.capabilities = _caps(has_variants=True)

        result = await CapabilityDetector(fake_assistant).detect()

        assert result == DetectionResult(tokens=("in_stock", "has_variants", "any"))
        assert result.degraded is False
        assert "has_variants" in result

    async def test_detect_degrades_on_failure(self, fake_assistant) -> None:
        """A failing extraction falls back to the minimal token set and says so."""
        fake_assistant.extract_error = LLMClientError("LLM request timed out")

        result = await CapabilityDetector(fake_assistant).detect()

        assert result.tokens == ("any",)
        assert result.degraded is True
        assert result.error == "LLM request timed out"

    async def test_degraded_differs_from_featureless_page(self, fake_assistant) -> None:
        """An empty-featured detection is not mistaken for a degraded one."""
        fake_assistant.capabilities = _caps()
        featureless = await CapabilityDetector(fake_assistant).detect()

        fake_assistant.extract_error = RuntimeError("boom")
        degraded = await CapabilityDetector(fake_assistant).detect()

        assert featureless.degraded is False
        assert degraded.degraded is True
        assert featureless.as_set() != degraded.as_set()
