"""
Structural-first element discovery.

Checks try a fixed, ordered list of structural selectors and take the first
one with a visible match. Only when every candidate misses is the AI
assistant asked to find the element; whatever it returns is verified for
visibility the same way before it is used.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pdpqa.llm.assistant import PageAssistant
    from pdpqa.page import ProductPage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Discovery:
    """Where (and how) an element was found."""

    selector: str | None
    via_ai: bool = False
    candidates_tried: int = 0

    @property
    def found(self) -> bool:
        return self.selector is not None


async def first_visible(
    page: ProductPage,
    candidates: Sequence[str],
    timeout_ms: int | None = None,
) -> str | None:
    """Return the first candidate whose first match is visible."""
    for selector in candidates:
        element = page.locate(selector)
        if await element.count() > 0 and await element.is_visible(timeout_ms):
            return selector
    return None


async def discover(
    page: ProductPage,
    candidates: Sequence[str],
    instruction: str,
    assistant: PageAssistant | None = None,
) -> Discovery:
    """
    Find a visible element for ``instruction``.

    Structural candidates are tried in order; AI discovery runs only when
    all of them miss. The caller records the step for whatever selector is
    returned. Assistant faults propagate to the caller.
    """
    selector = await first_visible(page, candidates)
    if selector is not None:
        return Discovery(selector=selector, candidates_tried=candidates.index(selector) + 1)

    if assistant is None:
        return Discovery(selector=None, candidates_tried=len(candidates))

    log = logger.bind(component="locators", instruction=instruction)
    log.info("structural_candidates_exhausted", tried=len(candidates))

    for observed in await assistant.observe(instruction):
        element = page.locate(observed.selector)
        if await element.count() > 0 and await element.is_visible():
            log.info("ai_discovery_succeeded", selector=observed.selector)
            return Discovery(selector=observed.selector, via_ai=True, candidates_tried=len(candidates))

    log.info("ai_discovery_found_nothing")
    return Discovery(selector=None, via_ai=True, candidates_tried=len(candidates))
