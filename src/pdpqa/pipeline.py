"""
End-to-end run orchestration.

detect capabilities → select applicable tests → execute them one by one in
catalog order against a single shared page → generate a Playwright module
from the passing traces → write it to the output directory.

Everything runs sequentially in one asyncio task with one browser context
and one LLM client for the whole run. Tests are not isolated from each
other: state a test leaves on the page (a cart item, a selected variant)
carries over to the next.
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from pdpqa.capabilities import CapabilityDetector, DetectionResult
from pdpqa.catalog import CatalogDocument, load_catalog
from pdpqa.codegen import generate_test_script
from pdpqa.config import SUCCESS_THRESHOLD, RunConfig
from pdpqa.executor import TestExecutor
from pdpqa.llm.assistant import PageAssistant
from pdpqa.llm.client import LLMClient
from pdpqa.page import BrowserSessionError, ProductPage
from pdpqa.reporting import ConsoleReporter
from pdpqa.selection import SelectionResult, partition_tests
from pdpqa.trace import RunClock, TestResult, TestStatus

if TYPE_CHECKING:
    from owl_browser import OwlBrowser

logger = structlog.get_logger(__name__)


@dataclass
class RunSummary:
    """Outcome of a pipeline run."""

    detection: DetectionResult
    selection: SelectionResult
    results: list[TestResult] = field(default_factory=list)
    script: str = ""
    script_path: Path | None = None

    def _count(self, status: TestStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return self._count(TestStatus.PASS)

    @property
    def failed(self) -> int:
        return self._count(TestStatus.FAIL)

    @property
    def errors(self) -> int:
        return self._count(TestStatus.ERROR)

    @property
    def unchecked(self) -> int:
        return sum(1 for r in self.results if not r.checked)

    @property
    def success_rate(self) -> float:
        if not self.total:
            return 0.0
        return self.passed / self.total * 100

    @property
    def poc_success(self) -> bool:
        return self.passed >= self.total * SUCCESS_THRESHOLD

    @property
    def detection_degraded(self) -> bool:
        return self.detection.degraded


async def execute_run(
    page: ProductPage,
    assistant: PageAssistant,
    catalog: CatalogDocument,
    base_url: str,
    reporter: ConsoleReporter | None = None,
    cart_update_wait_ms: int = 2000,
    generated_at: str | None = None,
) -> RunSummary:
    """Run detection, selection, execution and generation on a loaded page."""
    reporter = reporter or ConsoleReporter()
    log = logger.bind(component="pipeline", url=base_url)

    detection = await CapabilityDetector(assistant).detect()
    reporter.capabilities_detected(detection)

    selection = partition_tests(catalog.templates, detection.tokens)
    reporter.tests_selected(selection)
    log.info(
        "tests_selected",
        selected=len(selection.selected),
        skipped=len(selection.skipped),
        degraded=detection.degraded,
    )

    executor = TestExecutor(
        page,
        assistant,
        clock=RunClock(),
        cart_update_wait_ms=cart_update_wait_ms,
    )

    summary = RunSummary(detection=detection, selection=selection)
    for entry in selection.selected:
        reporter.test_started(entry)
        result = await executor.execute(entry)
        summary.results.append(result)
        reporter.test_finished(result)

    summary.script = generate_test_script(summary.results, catalog, base_url, generated_at)
    log.info(
        "run_executed",
        passed=summary.passed,
        failed=summary.failed,
        errors=summary.errors,
    )
    return summary


def write_generated_script(script: str, output_dir: str | Path, timestamp_ms: int | None = None) -> Path:
    """Write a generated module to ``<output_dir>/test_pdp_<timestamp>.py``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    path = output_dir / f"test_pdp_{stamp}.py"
    path.write_text(script, encoding="utf-8")
    logger.info("script_written", path=str(path))
    return path


def _create_browser(config: RunConfig) -> Any:
    """
    Create an OwlBrowser for the configured browser server.

    Raises:
        BrowserSessionError: If OWL_BROWSER_URL or OWL_BROWSER_TOKEN is missing.
    """
    if not config.uses_remote_browser:
        raise BrowserSessionError(
            "Missing Owl Browser configuration. "
            "Set OWL_BROWSER_URL and OWL_BROWSER_TOKEN (environment or .env)."
        )

    from owl_browser import OwlBrowser, RemoteConfig

    logger.info("using_remote_browser", remote_url=config.owl_browser_url)
    return OwlBrowser(RemoteConfig(url=config.owl_browser_url, token=config.owl_browser_token))


async def run_pipeline(
    config: RunConfig,
    reporter: ConsoleReporter | None = None,
    browser: OwlBrowser | None = None,
    llm_client: LLMClient | None = None,
) -> RunSummary:
    """
    Execute a full run for ``config.product_url``.

    Catalog faults surface before the browser is touched. The browser
    context is closed however the run ends.
    """
    reporter = reporter or ConsoleReporter()
    reporter.run_started(config.product_url)

    catalog = load_catalog(config.catalog_path or None)
    reporter.catalog_loaded(catalog)

    started = datetime.now(UTC)

    async with contextlib.AsyncExitStack() as stack:
        if browser is None:
            browser = await stack.enter_async_context(_create_browser(config))
        client = llm_client or await stack.enter_async_context(LLMClient(config.llm))

        page = await ProductPage.open(browser, config.default_timeout_ms)
        try:
            await page.navigate(config.product_url)
            summary = await execute_run(
                page,
                PageAssistant(client, page),
                catalog,
                config.product_url,
                reporter=reporter,
                cart_update_wait_ms=config.cart_update_wait_ms,
                generated_at=started.isoformat(timespec="seconds"),
            )
        finally:
            with contextlib.suppress(Exception):
                await page.close()

    summary.script_path = write_generated_script(
        summary.script,
        config.output_path,
        int(started.timestamp() * 1000),
    )
    reporter.script_written(summary.script_path)
    reporter.run_finished(summary)
    return summary
