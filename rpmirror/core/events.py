"""
Lifecycle notifications emitted by the test-execution engine.

Ordering contract within one process: ``step_passed``/``step_failed`` for a
step arrive before its ``step_finished``, and ``test_passed``/``test_failed``
arrive before ``test_finished``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..datastructures.meta_step import StepDescriptor
from ..datastructures.type_aliases import ErrorDescription, ItemTitle


class EventKind(Enum):
    """Lifecycle event tags."""

    WORKER_POOL_STARTING = "worker_pool_starting"
    WORKER_POOL_FINISHED = "worker_pool_finished"
    ALL_TESTS_STARTING = "all_tests_starting"
    ALL_TESTS_FINISHED = "all_tests_finished"
    SUITE_STARTING = "suite_starting"
    SUITE_FINISHED = "suite_finished"
    TEST_STARTING = "test_starting"
    TEST_SKIPPED = "test_skipped"
    TEST_PASSED = "test_passed"
    TEST_FAILED = "test_failed"
    TEST_FINISHED = "test_finished"
    STEP_STARTING = "step_starting"
    STEP_FINISHED = "step_finished"
    STEP_FAILED = "step_failed"
    STEP_PASSED = "step_passed"


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """One notification from the execution engine."""

    kind: EventKind
    title: ItemTitle = ""
    error: ErrorDescription | None = None
    step: StepDescriptor | None = None

    @classmethod
    def worker_pool_starting(cls) -> LifecycleEvent:
        return cls(EventKind.WORKER_POOL_STARTING)

    @classmethod
    def worker_pool_finished(cls) -> LifecycleEvent:
        return cls(EventKind.WORKER_POOL_FINISHED)

    @classmethod
    def all_tests_starting(cls) -> LifecycleEvent:
        return cls(EventKind.ALL_TESTS_STARTING)

    @classmethod
    def all_tests_finished(cls) -> LifecycleEvent:
        return cls(EventKind.ALL_TESTS_FINISHED)

    @classmethod
    def suite_starting(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.SUITE_STARTING, title=title)

    @classmethod
    def suite_finished(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.SUITE_FINISHED, title=title)

    @classmethod
    def test_starting(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.TEST_STARTING, title=title)

    @classmethod
    def test_skipped(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.TEST_SKIPPED, title=title)

    @classmethod
    def test_passed(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.TEST_PASSED, title=title)

    @classmethod
    def test_failed(cls, title: ItemTitle, error: ErrorDescription) -> LifecycleEvent:
        return cls(EventKind.TEST_FAILED, title=title, error=error)

    @classmethod
    def test_finished(cls, title: ItemTitle) -> LifecycleEvent:
        return cls(EventKind.TEST_FINISHED, title=title)

    @classmethod
    def step_starting(cls, step: StepDescriptor) -> LifecycleEvent:
        return cls(EventKind.STEP_STARTING, title=step.display, step=step)

    @classmethod
    def step_finished(cls, step: StepDescriptor) -> LifecycleEvent:
        return cls(EventKind.STEP_FINISHED, title=step.display, step=step)

    @classmethod
    def step_failed(cls, step: StepDescriptor) -> LifecycleEvent:
        return cls(EventKind.STEP_FAILED, title=step.display, step=step)

    @classmethod
    def step_passed(cls, step: StepDescriptor) -> LifecycleEvent:
        return cls(EventKind.STEP_PASSED, title=step.display, step=step)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LifecycleEvent:
        """Decode a serialized event (one line of a replay file)."""
        kind = EventKind(data["event"])
        step_data = data.get("step")
        step = StepDescriptor.from_dict(step_data) if step_data else None
        title = data.get("title") or (step.display if step else "")
        return cls(kind, title=title, error=data.get("error"), step=step)
