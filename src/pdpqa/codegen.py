"""
Playwright test generation from execution traces.

Turns the step logs of passing tests into a pytest-playwright module: one
test class per catalog category, one test method per passing result.
Generation is a pure function of its inputs. It never talks to the
browser or the AI, so extracted values are documented as comments rather
than re-verified.

AI-discovered selectors are usually XPath. ``convert_selector`` maps the
common attribute-equality shapes to CSS and leaves anything else as XPath
flagged for manual review.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pdpqa.catalog import CatalogDocument, CatalogEntry
from pdpqa.trace import ExecutionStep, StepAction, TestResult

UNKNOWN_CATEGORY = "unknown"

UNCONVERTED_MARKER = " [unconverted XPath: review manually]"

_INDENT = "    "
_PATH_QUERY_PREFIXES = ("/", "(/", "xpath=")


# ── Selector conversion ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class SelectorRule:
    """One XPath-to-CSS conversion rule."""

    name: str
    pattern: re.Pattern[str]
    render: Callable[[str], str | None]


def css_identifier(value: str) -> str:
    """Escape ``value`` for use as a CSS class name or id."""
    if value == "-":
        return "\\-"
    out = []
    for i, ch in enumerate(value):
        leading_digit = ch.isdigit() and (i == 0 or (i == 1 and value[0] == "-"))
        if ord(ch) < 0x20 or ord(ch) == 0x7F or leading_digit:
            out.append(f"\\{ord(ch):x} ")
        elif ch.isascii() and not (ch.isalnum() or ch in "-_"):
            out.append(f"\\{ch}")
        else:
            out.append(ch)
    return "".join(out)


def _first_class(value: str) -> str | None:
    classes = value.split()
    return f".{css_identifier(classes[0])}" if classes else None


# Ranked, first match wins.
SELECTOR_RULES: tuple[SelectorRule, ...] = (
    SelectorRule(
        name="data-testid",
        pattern=re.compile(r"""\[@data-testid=['"]([^'"]+)['"]\]"""),
        render=lambda value: f'[data-testid="{value}"]',
    ),
    SelectorRule(
        name="class",
        pattern=re.compile(r"""\[@class=['"]([^'"]+)['"]\]"""),
        render=_first_class,
    ),
    SelectorRule(
        name="id",
        pattern=re.compile(r"""\[@id=['"]([^'"]+)['"]\]"""),
        render=lambda value: f"#{css_identifier(value)}",
    ),
)


def escape_selector(selector: str) -> str:
    """Escape a selector for a double-quoted Python string literal."""
    return (
        selector.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def is_path_query(selector: str) -> bool:
    return selector.startswith(_PATH_QUERY_PREFIXES)


def convert_selector(selector: str) -> str:
    """
    Convert an AI-discovered selector to a structural one.

    Structural selectors pass through (escaped). XPath selectors are matched
    against SELECTOR_RULES in order; if none applies the XPath is kept
    verbatim with UNCONVERTED_MARKER appended.
    """
    if not is_path_query(selector):
        return escape_selector(selector)

    xpath = selector.removeprefix("xpath=")

    for rule in SELECTOR_RULES:
        match = rule.pattern.search(xpath)
        if match:
            converted = rule.render(match.group(1))
            if converted:
                return escape_selector(converted)

    return escape_selector(xpath) + UNCONVERTED_MARKER


def is_unconverted(converted: str) -> bool:
    return converted.endswith(UNCONVERTED_MARKER)


# ── Naming helpers ────────────────────────────────────────────────────────────

def method_name_for(test_id: str) -> str:
    name = re.sub(r"[^0-9A-Za-z]+", "_", test_id).strip("_").lower()
    return f"test_{name or 'unnamed'}"


def class_name_for(category: str) -> str:
    words = re.split(r"[^0-9A-Za-z]+", category)
    name = "".join(w[:1].upper() + w[1:] for w in words if w)
    return f"Test{name or 'Unknown'}"


def _unique(name: str, taken: set[str]) -> str:
    candidate, n = name, 2
    while candidate in taken:
        candidate = f"{name}_{n}"
        n += 1
    taken.add(candidate)
    return candidate


def _comment(text: Any) -> str:
    return " ".join(str(text).split())


def _docstring(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').strip()


def _literal(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


# ── Code generation ───────────────────────────────────────────────────────────

def _locator(selector: str, nth: int = 0) -> tuple[str, str]:
    """Return a locator for match ``nth`` (the first by default) and a trailing comment."""
    converted = convert_selector(selector)
    note = ""
    if is_unconverted(converted):
        converted = "xpath=" + converted.removesuffix(UNCONVERTED_MARKER)
        note = "  # TODO: unconverted XPath selector, review manually"
    pick = ".first" if nth == 0 else f".nth({nth})"
    return f'page.locator("{converted}"){pick}', note


def _render_step(step: ExecutionStep) -> list[str]:
    instruction = step.instruction or ""

    match step.action:
        case StepAction.OBSERVE:
            if not step.selector:
                return []
            locator, note = _locator(step.selector)
            return [
                f"# Found: {_comment(instruction or 'element')}",
                f"expect({locator}).to_be_visible(){note}",
            ]

        case StepAction.ACT:
            lowered = instruction.lower()
            if "click" in lowered:
                if "add to cart" in lowered:
                    return [
                        "# Click add to cart button",
                        'page.get_by_role("button", name=re.compile(r"add to (cart|bag)", re.IGNORECASE)).first.click()',
                    ]
                if step.selector:
                    locator, note = _locator(step.selector)
                    return [f"# {_comment(instruction)}", f"{locator}.click(){note}"]
            elif "select" in lowered and step.selector and isinstance(step.result, dict):
                index = step.result.get("index")
                if isinstance(index, int):
                    locator, note = _locator(step.selector)
                    return [f"# {_comment(instruction)}", f"{locator}.select_option(index={index}){note}"]
            return []

        case StepAction.EXTRACT:
            lines = [f"# Data extraction: {_comment(instruction)}"]
            if step.result:
                lines.append(f"# Expected result: {_comment(_literal(step.result))}")
            return lines

        case StepAction.ASSERT:
            if step.selector and isinstance(step.result, dict) and isinstance(step.result.get("minimum"), int):
                minimum = max(step.result["minimum"], 1)
                locator, note = _locator(step.selector, nth=minimum - 1)
                return [
                    f"# At least {minimum} matching elements",
                    f"expect({locator}).to_be_attached(){note}",
                ]
            if step.selector:
                locator, note = _locator(step.selector)
                return [f"expect({locator}).to_be_visible(){note}"]
            if step.result is not None:
                return [f"# Assertion passed: {_comment(_literal(step.result))}"]
            return []

    return []


def _render_test(result: TestResult, entry: CatalogEntry, method_name: str) -> list[str]:
    lines = [
        f"def {method_name}(self, page: Page) -> None:",
        f'{_INDENT}"""{_docstring(f"{entry.id} - {entry.name}")}',
    ]
    if entry.description:
        lines += ["", f"{_INDENT}{_docstring(entry.description)}"]
    lines.append(f'{_INDENT}"""')

    body: list[str] = []
    for step in result.execution_log:
        rendered = _render_step(step)
        if rendered:
            if body:
                body.append("")
            body.extend(rendered)

    if not body:
        body = ["# No executable steps were recorded for this test.", "pass"]

    lines.extend(f"{_INDENT}{line}" if line else "" for line in body)
    return lines


def _render_suite(
    category_name: str,
    tests: list[tuple[TestResult, CatalogEntry]],
    class_name: str,
) -> list[str]:
    lines = [
        f"class {class_name}:",
        f'{_INDENT}"""{_docstring(category_name)}"""',
        "",
        f"{_INDENT}@pytest.fixture(autouse=True)",
        f"{_INDENT}def open_product_page(self, page: Page) -> None:",
        f"{_INDENT * 2}page.goto(BASE_URL)",
        f'{_INDENT * 2}page.wait_for_load_state("networkidle")',
    ]

    taken: set[str] = set()
    for result, entry in tests:
        lines.append("")
        method_name = _unique(method_name_for(entry.id), taken)
        lines.extend(
            f"{_INDENT}{line}" if line else "" for line in _render_test(result, entry, method_name)
        )

    return lines


def group_by_category(
    results: Sequence[TestResult],
    catalog: CatalogDocument,
) -> dict[str, list[TestResult]]:
    """Group results by catalog category, in first-occurrence order."""
    groups: dict[str, list[TestResult]] = {}
    for result in results:
        entry = catalog.get(result.test_id)
        category = entry.category if entry else UNKNOWN_CATEGORY
        groups.setdefault(category, []).append(result)
    return groups


def generate_test_script(
    results: Sequence[TestResult],
    catalog: CatalogDocument,
    base_url: str,
    generated_at: str | None = None,
) -> str:
    """
    Generate a pytest-playwright module from execution results.

    Only passing results become tests; failed and errored results are left
    out entirely.

    Args:
        results: Execution results, in execution order
        catalog: Catalog the results refer to
        base_url: Product page every suite navigates to
        generated_at: Optional timestamp for the module header

    Returns:
        Python source text
    """
    suites: list[str] = []
    class_names: set[str] = set()
    uses_re = False

    for category, category_results in group_by_category(results, catalog).items():
        tests: list[tuple[TestResult, CatalogEntry]] = []
        for result in category_results:
            entry = catalog.get(result.test_id)
            if result.passed and entry is not None:
                tests.append((result, entry))

        class_name = _unique(class_name_for(category), class_names)
        suite = _render_suite(catalog.category_name(category), tests, class_name)
        uses_re = uses_re or any("re.compile(" in line for line in suite)
        suites.append("\n".join(suite))

    header = [
        '"""',
        f"Generated Playwright tests for {_docstring(base_url)}",
        "",
        "Generated by pdpqa from execution traces"
        + (f" on {_docstring(generated_at)}." if generated_at else "."),
        "Run with: pytest <this file>",
        '"""',
        "",
    ]
    if uses_re:
        header += ["import re", ""]
    header += [
        "import pytest",
        "from playwright.sync_api import Page, expect",
        "",
        f"BASE_URL = {_literal(base_url)}",
    ]

    parts = ["\n".join(header)] + suites
    return "\n\n\n".join(parts) + "\n"
