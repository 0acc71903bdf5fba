"""
Test executor.

Runs one catalog entry against the shared product page: looks up the
registered check for the entry, lets it record its steps, and seals the
outcome into a TestResult. A single attempt per test, no retries.

Status classification:
- pass:  the check returned normally
- fail:  the check raised an AssertionError (expected vs. actual mismatch)
- error: anything else (missing element, AI failure, browser timeout, ...)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from pdpqa.checks import CheckContext, CheckRegistry, check_page_loaded, registry as default_registry
from pdpqa.trace import RunClock, StepLog, TestResult, TestStatus

if TYPE_CHECKING:
    from pdpqa.catalog import CatalogEntry
    from pdpqa.llm.assistant import PageAssistant
    from pdpqa.page import ProductPage

logger = structlog.get_logger(__name__)


def classify_failure(exc: BaseException) -> TestStatus:
    """Map a fault raised by a check to a test status."""
    if isinstance(exc, AssertionError):
        return TestStatus.FAIL
    return TestStatus.ERROR


class TestExecutor:
    """Executes catalog entries one at a time against a single page."""

    __test__ = False

    def __init__(
        self,
        page: ProductPage,
        assistant: PageAssistant | None = None,
        registry: CheckRegistry | None = None,
        clock: RunClock | None = None,
        cart_update_wait_ms: int = 2000,
    ) -> None:
        self._page = page
        self._assistant = assistant
        self._registry = registry if registry is not None else default_registry
        self._clock = clock or RunClock()
        self._cart_update_wait_ms = cart_update_wait_ms
        self._log = logger.bind(component="test_executor")

    async def execute(self, entry: CatalogEntry) -> TestResult:
        """Run ``entry`` and return its sealed result."""
        start_time = time.monotonic()
        steps = StepLog(self._clock)
        ctx = CheckContext(
            entry=entry,
            page=self._page,
            steps=steps,
            assistant=self._assistant,
            cart_update_wait_ms=self._cart_update_wait_ms,
        )

        check = self._registry.lookup(entry.category, entry.id)
        checked = True
        if check is None and self._registry.is_known_category(entry.category):
            checked = False
            self._log.warning("no_registered_check", test=entry.id, category=entry.category)
        elif check is None:
            check = check_page_loaded

        status = TestStatus.PASS
        error: str | None = None
        try:
            if check is not None:
                await check(ctx)
        except Exception as e:
            status = classify_failure(e)
            error = str(e) or type(e).__name__
            self._log.info("test_not_passed", test=entry.id, status=status, error=error)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        return TestResult(
            test_id=entry.id,
            status=status,
            duration_ms=duration_ms,
            execution_log=steps.snapshot(),
            error=error,
            checked=checked,
        )
