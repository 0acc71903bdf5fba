"""
Execution trace model.

Every observable thing a check does (discovering an element, acting on it,
extracting data, asserting a condition) is recorded as an ExecutionStep.
A test's steps, together with its catalog metadata, are all the code
generator needs to rebuild an equivalent test.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class StepAction(StrEnum):
    """Kind of an execution step."""

    OBSERVE = "observe"
    ACT = "act"
    EXTRACT = "extract"
    ASSERT = "assert"


class TestStatus(StrEnum):
    """Outcome of a single test."""

    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


@dataclass(frozen=True)
class ExecutionStep:
    """One entry of a test's execution log."""

    timestamp: int
    action: StepAction
    instruction: str | None = None
    selector: str | None = None
    result: Any = None


class RunClock:
    """Monotonic millisecond clock shared by every test of a run."""

    def __init__(self) -> None:
        self._epoch = time.monotonic()

    def now_ms(self) -> int:
        return int((time.monotonic() - self._epoch) * 1000)


class StepLog:
    """Append-only step recorder for one test."""

    def __init__(self, clock: RunClock | None = None) -> None:
        self._clock = clock or RunClock()
        self._steps: list[ExecutionStep] = []

    def record(
        self,
        action: StepAction,
        instruction: str | None = None,
        selector: str | None = None,
        result: Any = None,
    ) -> ExecutionStep:
        step = ExecutionStep(
            timestamp=self._clock.now_ms(),
            action=action,
            instruction=instruction,
            selector=selector,
            result=result,
        )
        self._steps.append(step)
        return step

    def observe(self, instruction: str | None = None, selector: str | None = None, result: Any = None) -> ExecutionStep:
        return self.record(StepAction.OBSERVE, instruction, selector, result)

    def act(self, instruction: str | None = None, selector: str | None = None, result: Any = None) -> ExecutionStep:
        return self.record(StepAction.ACT, instruction, selector, result)

    def extract(self, instruction: str | None = None, selector: str | None = None, result: Any = None) -> ExecutionStep:
        return self.record(StepAction.EXTRACT, instruction, selector, result)

    def assert_(self, instruction: str | None = None, selector: str | None = None, result: Any = None) -> ExecutionStep:
        return self.record(StepAction.ASSERT, instruction, selector, result)

    def snapshot(self) -> tuple[ExecutionStep, ...]:
        """Steps recorded so far, in recording order."""
        return tuple(self._steps)

    def __len__(self) -> int:
        return len(self._steps)


@dataclass(frozen=True)
class TestResult:
    """Sealed outcome of one executed catalog entry."""

    __test__ = False

    test_id: str
    status: TestStatus
    duration_ms: int
    execution_log: tuple[ExecutionStep, ...] = field(default_factory=tuple)
    error: str | None = None
    checked: bool = True

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASS
