"""
Product page adapter over owl-browser SDK v2.

Wraps a ``(browser, context_id)`` pair behind a small page/element API so
checks never deal with context ids or SDK response shapes. Selectors may be
CSS or XPath (``/...`` / ``xpath=...``); element queries always target the
first match.

SDK v2 Notes:
- All browser operations are async and require context_id
- Boolean checks return either a bare bool or a dict (``visible`` /
  ``success`` / ``result`` keys) depending on the SDK version
"""

from __future__ import annotations

import asyncio
import base64
import json
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from owl_browser import OwlBrowser

logger = structlog.get_logger(__name__)


class ElementNotFoundError(Exception):
    """Raised when an element cannot be found."""

    pass


class BrowserSessionError(Exception):
    """Raised when the browser session or context cannot be used."""

    pass


def _extract_sdk_bool(result: Any, key: str = "success", default: bool = False) -> bool:
    if isinstance(result, dict):
        if key in result:
            return bool(result[key])
        return bool(result.get("success", result.get("result", default)))
    if isinstance(result, bool):
        return result
    return default


def _extract_sdk_value(result: Any, default: Any = None) -> Any:
    if isinstance(result, dict):
        return result.get("result", default)
    return result if result is not None else default


# Resolves the first element for a CSS or XPath selector. Invalid selectors
# resolve to nothing rather than throwing.
_RESOLVE_JS = """
const __resolveAll = (sel) => {
  try {
    if (sel.startsWith('xpath=') || sel.startsWith('/') || sel.startsWith('(/')) {
      const xp = sel.startsWith('xpath=') ? sel.slice(6) : sel;
      const snap = document.evaluate(xp, document, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null);
      const out = [];
      for (let i = 0; i < snap.snapshotLength; i++) out.push(snap.snapshotItem(i));
      return out;
    }
    return Array.from(document.querySelectorAll(sel));
  } catch (e) {
    return [];
  }
};
"""

_OUTLINE_JS = """
(() => {
  const xpathOf = (el) => {
    if (el.id) return `//*[@id="${el.id}"]`;
    const parts = [];
    while (el && el.nodeType === 1 && el !== document.body) {
      let i = 1, sib = el.previousElementSibling;
      while (sib) { if (sib.tagName === el.tagName) i++; sib = sib.previousElementSibling; }
      parts.unshift(`${el.tagName.toLowerCase()}[${i}]`);
      el = el.parentElement;
    }
    return '/html/body/' + parts.join('/');
  };
  const query = 'h1, h2, button, a[href], select, input, img, [class*="price"], [class*="variant"], [data-testid]';
  const out = [];
  for (const el of document.querySelectorAll(query)) {
    const r = el.getBoundingClientRect();
    if (r.width === 0 || r.height === 0) continue;
    out.push({
      tag: el.tagName.toLowerCase(),
      id: el.id || null,
      className: typeof el.className === 'string' ? el.className.slice(0, 120) : null,
      testId: el.getAttribute('data-testid'),
      name: el.getAttribute('name'),
      text: (el.innerText || el.getAttribute('alt') || el.value || '').trim().slice(0, 80),
      xpath: xpathOf(el),
    });
    if (out.length >= %(limit)d) break;
  }
  return out;
})()
"""


class ElementHandle:
    """Lazy handle on the first element matching a selector."""

    def __init__(self, page: ProductPage, selector: str) -> None:
        self._page = page
        self.selector = selector

    def _script(self, body: str) -> str:
        return f"(() => {{ {_RESOLVE_JS} const __els = __resolveAll({json.dumps(self.selector)}); {body} }})()"

    async def count(self) -> int:
        result = await self._page.evaluate(self._script("return __els.length;"))
        try:
            return int(result or 0)
        except (TypeError, ValueError):
            return 0

    async def is_visible(self, timeout_ms: int | None = None) -> bool:
        browser, context_id = self._page.browser, self._page.context_id
        try:
            if timeout_ms:
                await browser.wait_for_selector(
                    context_id=context_id, selector=self.selector, timeout=timeout_ms
                )
            result = await browser.is_visible(context_id=context_id, selector=self.selector)
        except Exception as e:
            self._page.log.debug("visibility_check_failed", selector=self.selector, error=str(e))
            return False
        return _extract_sdk_bool(result, key="visible")

    async def is_enabled(self) -> bool:
        result = await self._page.browser.is_enabled(
            context_id=self._page.context_id, selector=self.selector
        )
        return _extract_sdk_bool(result, key="enabled")

    async def text_content(self) -> str | None:
        result = await self._page.evaluate(
            self._script("return __els.length ? (__els[0].textContent || '') : null;")
        )
        return result if isinstance(result, str) else None

    async def option_count(self) -> int:
        result = await self._page.evaluate(
            self._script("return __els.length && __els[0].options ? __els[0].options.length : 0;")
        )
        try:
            return int(result or 0)
        except (TypeError, ValueError):
            return 0

    async def click(self) -> None:
        if await self.count() == 0:
            raise ElementNotFoundError(f"Element not found: {self.selector}")
        await self._page.browser.click(context_id=self._page.context_id, selector=self.selector)

    async def select_option(self, index: int) -> str:
        """Select the option at ``index`` and return its value."""
        value = await self._page.evaluate(
            self._script(
                f"const o = __els.length && __els[0].options ? __els[0].options[{int(index)}] : null;"
                " return o ? o.value : null;"
            )
        )
        if value is None:
            raise ElementNotFoundError(f"No option {index} in: {self.selector}")
        await self._page.browser.pick(
            context_id=self._page.context_id, selector=self.selector, value=value
        )
        return value


class ProductPage:
    """The page under test, bound to one browser context for the whole run."""

    def __init__(
        self,
        browser: OwlBrowser,
        context_id: str,
        default_timeout_ms: int = 10000,
    ) -> None:
        self.browser = browser
        self.context_id = context_id
        self.default_timeout_ms = default_timeout_ms
        self.url: str | None = None
        self.log = logger.bind(component="product_page", context_id=context_id)

    @classmethod
    async def open(cls, browser: OwlBrowser, default_timeout_ms: int = 10000) -> ProductPage:
        """Create a fresh browser context and wrap it."""
        ctx = await browser.create_context()
        context_id = ctx.get("context_id") if isinstance(ctx, dict) else None
        if not context_id:
            raise BrowserSessionError(f"Browser did not return a context id: {ctx!r}")
        return cls(browser, context_id, default_timeout_ms)

    async def close(self) -> None:
        await self.browser.close_context(context_id=self.context_id)

    async def navigate(self, url: str) -> None:
        """Navigate and wait for the network to go idle."""
        await self.browser.navigate(
            context_id=self.context_id,
            url=url,
            wait_until="domcontentloaded",
            timeout=self.default_timeout_ms * 3,
        )
        try:
            await self.browser.wait_for_network_idle(
                context_id=self.context_id,
                idle_time=500,
                timeout=self.default_timeout_ms,
            )
        except Exception as e:
            # Long-polling pages never go fully idle; DOM is already loaded.
            self.log.debug("network_idle_wait_timed_out", url=url, error=str(e))
        self.url = url
        self.log.info("page_loaded", url=url)

    def locate(self, selector: str) -> ElementHandle:
        return ElementHandle(self, selector)

    async def evaluate(self, expression: str) -> Any:
        result = await self.browser.evaluate(context_id=self.context_id, expression=expression)
        return _extract_sdk_value(result)

    async def wait(self, ms: int) -> None:
        await asyncio.sleep(ms / 1000)

    async def screenshot(self) -> str:
        """Capture the viewport and return it base64-encoded."""
        result = await self.browser.screenshot(context_id=self.context_id)
        data = result.get("data") if isinstance(result, dict) else result
        if isinstance(data, bytes):
            return base64.b64encode(data).decode("ascii")
        if isinstance(data, str) and data:
            return data
        raise BrowserSessionError("Screenshot returned no image data")

    async def outline(self, limit: int = 150) -> list[dict[str, Any]]:
        """Compact description of visible, test-relevant elements."""
        result = await self.evaluate(_OUTLINE_JS % {"limit": limit})
        return result if isinstance(result, list) else []
