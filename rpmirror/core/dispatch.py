"""
Lifecycle event dispatch.

An explicit table maps each event tag to a handler. Handlers only touch the
session they are given. Report-mutating work is enqueued on the session's
effect queue; launch startup and finalization are awaited directly because
nothing may be reported before the launch exists, and the launch must not
close before the queue has drained.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TypeAlias

from loguru import logger

from ..datastructures.meta_step import StepDescriptor
from .events import EventKind, LifecycleEvent
from .exceptions import LaunchStartupError
from .session import ReportingSession

Handler: TypeAlias = Callable[[ReportingSession, LifecycleEvent], Awaitable[None]]


async def _start_launch(session: ReportingSession, *, pool: bool) -> None:
    try:
        await session.coordinator.start(pool=pool)
    except LaunchStartupError as e:
        logger.error(str(e))
        session.console.print(
            "[red]❌ Can't connect to ReportPortal, exiting...[/red]"
        )
        raise SystemExit(1) from e


def _step(event: LifecycleEvent) -> StepDescriptor:
    return event.step or StepDescriptor(display=event.title)


async def on_worker_pool_starting(
    session: ReportingSession, event: LifecycleEvent
) -> None:
    await _start_launch(session, pool=True)
    logger.debug(f"Starting aggregate launch: {session.coordinator.launch_id}")


async def on_worker_pool_finished(
    session: ReportingSession, event: LifecycleEvent
) -> None:
    await session.queue.drain()
    await session.coordinator.finalize()


async def on_all_tests_starting(
    session: ReportingSession, event: LifecycleEvent
) -> None:
    await _start_launch(session, pool=False)
    session.console.print(
        f"📋 Writing results to ReportPortal: "
        f"{session.settings.project_name} > {session.settings.endpoint}"
    )


async def on_all_tests_finished(
    session: ReportingSession, event: LifecycleEvent
) -> None:
    session.queue.enqueue(session.finish_suite, label="finish open suite")
    await session.queue.drain()
    coordinator = session.coordinator
    if coordinator.is_controller and not coordinator.pool_mode:
        await coordinator.finalize()


async def on_suite_starting(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(lambda: session.start_suite(event.title), label="start suite")


async def on_suite_finished(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(session.finish_suite, label="finish suite")


async def on_test_starting(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(lambda: session.start_test(event.title), label="start test")


async def on_test_skipped(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(lambda: session.skip_test(event.title), label="skip test")


async def on_test_passed(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(lambda: session.pass_test(event.title), label="pass test")


async def on_test_failed(session: ReportingSession, event: LifecycleEvent) -> None:
    error = event.error or "Test failed"
    session.queue.enqueue(
        lambda: session.fail_test(event.title, error), label="fail test"
    )


async def on_test_finished(session: ReportingSession, event: LifecycleEvent) -> None:
    session.queue.enqueue(lambda: session.finish_test(event.title), label="finish test")


async def on_step_starting(session: ReportingSession, event: LifecycleEvent) -> None:
    step = _step(event)
    session.queue.enqueue(lambda: session.start_step(step), label="start step")


async def on_step_finished(session: ReportingSession, event: LifecycleEvent) -> None:
    step = _step(event)
    session.queue.enqueue(lambda: session.finish_step(step), label="finish step")


async def on_step_failed(session: ReportingSession, event: LifecycleEvent) -> None:
    step = _step(event)
    session.queue.enqueue(lambda: session.fail_step(step), label="fail step")


async def on_step_passed(session: ReportingSession, event: LifecycleEvent) -> None:
    step = _step(event)
    session.queue.enqueue(lambda: session.pass_step(step), label="pass step")


DEFAULT_HANDLERS: Mapping[EventKind, Handler] = {
    EventKind.WORKER_POOL_STARTING: on_worker_pool_starting,
    EventKind.WORKER_POOL_FINISHED: on_worker_pool_finished,
    EventKind.ALL_TESTS_STARTING: on_all_tests_starting,
    EventKind.ALL_TESTS_FINISHED: on_all_tests_finished,
    EventKind.SUITE_STARTING: on_suite_starting,
    EventKind.SUITE_FINISHED: on_suite_finished,
    EventKind.TEST_STARTING: on_test_starting,
    EventKind.TEST_SKIPPED: on_test_skipped,
    EventKind.TEST_PASSED: on_test_passed,
    EventKind.TEST_FAILED: on_test_failed,
    EventKind.TEST_FINISHED: on_test_finished,
    EventKind.STEP_STARTING: on_step_starting,
    EventKind.STEP_FINISHED: on_step_finished,
    EventKind.STEP_FAILED: on_step_failed,
    EventKind.STEP_PASSED: on_step_passed,
}


class EventDispatcher:
    """Routes lifecycle events to their handlers for one session."""

    def __init__(
        self,
        session: ReportingSession | None,
        handlers: Mapping[EventKind, Handler] | None = None,
    ) -> None:
        self.session = session
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)

    @classmethod
    def disabled(cls) -> EventDispatcher:
        """A dispatcher that ignores every event."""
        return cls(None, handlers={})

    @property
    def enabled(self) -> bool:
        return self.session is not None and bool(self.handlers)

    async def dispatch(self, event: LifecycleEvent) -> None:
        handler = self.handlers.get(event.kind)
        if handler is None or self.session is None:
            return
        logger.trace(f"Dispatching {event.kind.value} '{event.title}'")
        await handler(self.session, event)

    async def dispatch_all(self, events: list[LifecycleEvent]) -> None:
        for event in events:
            await self.dispatch(event)
