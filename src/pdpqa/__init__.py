"""
pdpqa - AI-assisted product detail page testing.

Detects what an e-commerce product page offers, runs the catalog tests that
apply to it in a real browser, and turns the passing runs into a
standalone Playwright test module.
"""

__version__ = "1.0.0"
__author__ = "Olib AI"

from pdpqa.capabilities import CapabilityDetector, DetectionResult, PageCapabilities
from pdpqa.catalog import CatalogDocument, CatalogEntry, CatalogLoadError, load_catalog
from pdpqa.checks import CheckFailed, CheckRegistry, registry
from pdpqa.codegen import convert_selector, generate_test_script
from pdpqa.executor import TestExecutor
from pdpqa.selection import SelectionResult, select_applicable_tests
from pdpqa.trace import ExecutionStep, StepAction, TestResult, TestStatus

__all__ = [
    "__version__",
    "CapabilityDetector",
    "CatalogDocument",
    "CatalogEntry",
    "CatalogLoadError",
    "CheckFailed",
    "CheckRegistry",
    "DetectionResult",
    "ExecutionStep",
    "PageCapabilities",
    "SelectionResult",
    "StepAction",
    "TestExecutor",
    "TestResult",
    "TestStatus",
    "convert_selector",
    "generate_test_script",
    "load_catalog",
    "registry",
    "select_applicable_tests",
]
