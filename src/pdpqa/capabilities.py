"""
Capability detection for product pages.

One AI extraction call per run turns the page into a flat set of state
tokens (``in_stock``, ``has_variants``, ...) that catalog preconditions are
matched against. Detection failure never aborts a run: it degrades to the
minimal ``{"any"}`` token set and is flagged on the result so it stays
distinguishable from a page that simply has no optional features.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from pdpqa.catalog import ANY_STATE

logger = structlog.get_logger(__name__)

IN_STOCK = "in_stock"
OUT_OF_STOCK = "out_of_stock"
HAS_VARIANTS = "has_variants"
ON_SALE = "on_sale"
HAS_SUBSCRIPTION = "has_subscription"
MULTIPLE_IMAGES = "multiple_images"

INVENTORY_TOKENS = frozenset({IN_STOCK, OUT_OF_STOCK})

CapabilityTokenSet = frozenset[str]

DETECTION_INSTRUCTION = """\
Analyze this product detail page carefully and determine:

1. In Stock: Is the product currently available for purchase?
   - Look for enabled "Add to Cart" or "Buy Now" buttons
   - Check for "Sold Out" or "Out of Stock" messaging
2. Has Variants: Does this product have selectable variants?
   - Look for size selectors, color swatches, style options, dropdowns
3. On Sale: Is the product currently discounted?
   - Look for a compare-at (strikethrough) price, "Sale" badges, savings messaging
4. Has Subscription: Does the product offer subscription purchases?
   - Look for "Subscribe & Save" options or delivery frequency selectors
5. Multiple Images: Does the product have more than one image?
   - Look for an image gallery, carousel, thumbnails, navigation dots or arrows

Return true/false for each capability, and list any other notable states
(pre-order, low stock, ...) in additionalStates."""


class PageCapabilities(BaseModel):
    """Structured answer expected from the detection call."""

    model_config = ConfigDict(populate_by_name=True)

    in_stock: bool = Field(
        alias="inStock",
        description="Is the product available for purchase? Check for Add to Cart button (not Sold Out)",
    )
    has_variants: bool = Field(
        alias="hasVariants",
        description="Does the product have variant options like size, color, or style selectors?",
    )
    on_sale: bool = Field(
        alias="onSale",
        description="Is the product on sale? Look for compare-at price or sale badge",
    )
    has_subscription: bool = Field(
        alias="hasSubscription",
        description="Does the product offer subscription/recurring purchase options?",
    )
    has_multiple_images: bool = Field(
        alias="hasMultipleImages",
        description="Does the product have multiple images in a gallery or carousel?",
    )
    additional_states: list[str] | None = Field(
        default=None,
        alias="additionalStates",
        description="Any other notable states like pre-order, low stock, etc.",
    )


@dataclass(frozen=True)
class DetectionResult:
    """Detected capability tokens, in detection order."""

    tokens: tuple[str, ...]
    degraded: bool = False
    error: str | None = None

    def as_set(self) -> CapabilityTokenSet:
        return frozenset(self.tokens)

    def __contains__(self, token: object) -> bool:
        return token in self.tokens


class CapabilityExtractor(Protocol):
    async def extract(self, instruction: str, schema: type[PageCapabilities]) -> PageCapabilities: ...


def normalize_state(value: str) -> str:
    """Normalise a free-form state name to token form."""
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


def _dedupe(tokens: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for token in tokens:
        seen.setdefault(token, None)
    return tuple(seen)


def tokens_from_capabilities(caps: PageCapabilities) -> tuple[str, ...]:
    """Map a detection answer to capability tokens.

    The inventory axis is decided by ``in_stock`` alone; free-form states
    can add tokens but never a second inventory token.
    """
    tokens = [IN_STOCK if caps.in_stock else OUT_OF_STOCK]

    if caps.has_variants:
        tokens.append(HAS_VARIANTS)
    if caps.on_sale:
        tokens.append(ON_SALE)
    if caps.has_subscription:
        tokens.append(HAS_SUBSCRIPTION)
    if caps.has_multiple_images:
        tokens.append(MULTIPLE_IMAGES)

    for state in caps.additional_states or []:
        if not isinstance(state, str):
            continue
        token = normalize_state(state)
        if token and token not in INVENTORY_TOKENS:
            tokens.append(token)

    tokens.append(ANY_STATE)
    return _dedupe(tokens)


class CapabilityDetector:
    """Runs the single capability-detection call for a page."""

    def __init__(self, extractor: CapabilityExtractor) -> None:
        self._extractor = extractor
        self._log = logger.bind(component="capability_detector")

    async def detect(self) -> DetectionResult:
        self._log.info("analyzing_page")
        try:
            caps = await self._extractor.extract(DETECTION_INSTRUCTION, PageCapabilities)
        except Exception as e:
            # Baseline tests still run on the minimal token set.
            self._log.warning("capability_detection_degraded", error=str(e))
            return DetectionResult(tokens=(ANY_STATE,), degraded=True, error=str(e))

        tokens = tokens_from_capabilities(caps)
        self._log.info("capabilities_detected", tokens=list(tokens))
        return DetectionResult(tokens=tokens)
