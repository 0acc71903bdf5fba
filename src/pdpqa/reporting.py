"""Console rendering of a pipeline run."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

from pdpqa.trace import TestStatus

if TYPE_CHECKING:
    from pathlib import Path

    from pdpqa.capabilities import DetectionResult
    from pdpqa.catalog import CatalogDocument, CatalogEntry
    from pdpqa.pipeline import RunSummary
    from pdpqa.selection import SelectionResult
    from pdpqa.trace import TestResult

_STATUS_LABELS = {
    TestStatus.PASS: "✓ PASS",
    TestStatus.FAIL: "✗ FAIL",
    TestStatus.ERROR: "⚠ ERROR",
}


class ConsoleReporter:
    """Prints run progress. Holds no state the pipeline reads back."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self._stream)

    def run_started(self, url: str) -> None:
        self._print("=" * 60)
        self._print("  PDPQA - Product Page Test Run")
        self._print("=" * 60)
        self._print(f"  Target: {url}")
        self._print()

    def catalog_loaded(self, catalog: CatalogDocument) -> None:
        self._print(f"Loaded {len(catalog.templates)} tests from catalog {catalog.name or ''}".rstrip())

    def capabilities_detected(self, detection: DetectionResult) -> None:
        if detection.degraded:
            self._print(f"Capability detection DEGRADED ({detection.error}); running baseline tests only")
        else:
            self._print(f"Detected: {', '.join(detection.tokens)}")

    def tests_selected(self, selection: SelectionResult) -> None:
        self._print(
            f"Selected {len(selection.selected)}/{selection.total} tests "
            f"({len(selection.skipped)} skipped)"
        )
        self._print()

    def test_started(self, entry: CatalogEntry) -> None:
        print(f"  {entry.id}... ", end="", file=self._stream, flush=True)

    def test_finished(self, result: TestResult) -> None:
        label = _STATUS_LABELS[result.status]
        if not result.checked:
            label = "? NO CHECK"
        self._print(f"{label} ({result.duration_ms}ms)")
        if result.error:
            self._print(f"      {result.error}")

    def script_written(self, path: Path) -> None:
        self._print()
        self._print(f"Generated tests saved to: {path}")

    def run_finished(self, summary: RunSummary) -> None:
        total = summary.total
        self._print()
        self._print("=" * 60)
        self._print("  RESULTS SUMMARY")
        self._print("=" * 60)
        self._print(f"  Passed:       {summary.passed}/{total}")
        self._print(f"  Failed:       {summary.failed}/{total}")
        self._print(f"  Errors:       {summary.errors}/{total}")
        if summary.unchecked:
            self._print(f"  No check:     {summary.unchecked}/{total}")
        self._print(f"  Success rate: {summary.success_rate:.1f}%")
        if summary.detection_degraded:
            self._print("  Detection:    degraded (minimal capability set)")
        self._print("=" * 60)

        if summary.poc_success:
            self._print("Run succeeded: 70%+ of tests passed.")
        else:
            self._print("Run needs improvement: fewer than 70% of tests passed.")

        if summary.script_path:
            self._print()
            self._print("Next step: run the generated tests with")
            self._print(f"  pytest {summary.script_path}")
