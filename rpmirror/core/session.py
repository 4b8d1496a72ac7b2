"""
Per-process reporting session.

The session is the explicit context every lifecycle handler works on: the
launch coordinator, the effect queue, the open suite/test/step nodes and the
meta-step frame stack. Methods named after lifecycle transitions
(``start_step``, ``fail_test``, ...) are effect bodies: handlers enqueue them
and the queue runs them one at a time, so each one sees the state left by
the events that came before it.

Remote write failures inside an effect are logged and swallowed here; a node
whose start call failed is marked so that its children and logs are skipped
instead of landing on the wrong parent.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from loguru import logger
from rich.console import Console

from ..datastructures.meta_step import MetaStepFrame, StepDescriptor
from ..datastructures.report_types import (
    Attachment,
    ItemKind,
    ItemStatus,
    LogEntry,
    LogLevel,
    ReportNode,
)
from .artifacts import ArtifactCapture, FailureArtifactBinder, RecordedVideoCapture
from .config import ReporterSettings
from .effect_queue import SequentialEffectQueue
from .handoff import FileHandoffChannel, HandoffChannel
from .launch import LaunchCoordinator
from .reconciler import reconcile
from .report_tree import ReportTree

if TYPE_CHECKING:
    from ..client.service import ReportingService


class ReportingSession:
    """Everything one process knows about the report it is writing."""

    def __init__(
        self,
        settings: ReporterSettings,
        service: ReportingService,
        *,
        handoff: HandoffChannel | None = None,
        capture: ArtifactCapture | None = None,
        console: Console | None = None,
    ) -> None:
        self.settings = settings
        self.service = service
        self.console = console or Console()
        self.handoff = handoff or FileHandoffChannel(
            settings.launch_id_path, settings.launch_url_path
        )
        self.coordinator = LaunchCoordinator(
            settings, service, self.handoff, console=self.console
        )
        self.queue = SequentialEffectQueue("report")
        self.tree = ReportTree()

        video = None
        if settings.video_upload and settings.video_name:
            video = RecordedVideoCapture(settings.video_path, settings.video_name)
        self.binder = FailureArtifactBinder(
            capture,
            video=video,
            full_page_screenshots=settings.full_page_screenshots,
            upload_video=settings.video_upload,
        )

        self.suite_node: ReportNode | None = None
        self.suite_status = ItemStatus.PASSED
        self.test_node: ReportNode | None = None
        self.step_node: ReportNode | None = None
        self.last_step_node: ReportNode | None = None
        self.failed_step: ReportNode | None = None
        self.meta_stack: list[MetaStepFrame] = []

    async def aclose(self) -> None:
        """Drain pending effects and release the service."""
        await self.queue.close()
        await self.service.close()

    # Node primitives

    async def open_node(
        self,
        title: str,
        kind: ItemKind,
        parent: ReportNode | None,
        *,
        has_stats: bool = True,
    ) -> ReportNode:
        node = ReportNode(title=title, kind=kind, parent=parent, has_stats=has_stats)
        self.tree.opened(node)
        try:
            parent_id = await parent.wait_id() if parent is not None else None
            remote_id = await self.service.start_item(
                title,
                kind,
                self.coordinator.launch_id,
                parent_id,
                has_stats,
                node.start_time,
            )
        except Exception as e:
            node.mark_start_failed()
            self.tree.closed(node)
            logger.error(f"Starting {kind.value} '{title}' failed: {e}")
            return node
        node.assign_id(remote_id)
        return node

    async def close_node(
        self, node: ReportNode | None, status: ItemStatus, message: str | None = None
    ) -> None:
        """Close ``node`` after any of its still-open descendants."""
        if node is None or node.closed:
            return
        for child in self.tree.open_descendants(node):
            await self._finish(child, child.final_status(status))
        await self._finish(node, status, message)

    async def _finish(
        self, node: ReportNode, status: ItemStatus, message: str | None = None
    ) -> None:
        node.closed = True
        node.set_status(status)
        node.end_time = time.time()
        node.message = message
        self.tree.closed(node)
        if node.id is None:
            logger.warning(f"'{node.title}' can't be closed, it has no remote id")
            return
        logger.debug(f"Finishing {node.kind.value} '{node.title}': {node.status.value}")
        try:
            await self.service.finish_item(
                node.id,
                self.coordinator.launch_id,
                node.status,
                node.end_time,
                message,
            )
        except Exception as e:
            logger.error(f"Finishing {node.kind.value} '{node.title}' failed: {e}")

    async def send_log(
        self,
        node: ReportNode,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> None:
        try:
            item_id = await node.wait_id()
            await self.service.send_log(
                item_id, self.coordinator.launch_id, entry, attachment
            )
        except Exception as e:
            logger.error(f"Sending log to '{node.title}' failed: {e}")

    def log_current(
        self, level: LogLevel, message: str, attachment: Attachment | None = None
    ) -> None:
        """Queue a log line for the innermost open step, or the test."""

        async def _log() -> None:
            node = self.step_node or self.test_node
            if node is not None:
                await self.send_log(node, LogEntry(level, message), attachment)

        self.queue.enqueue(_log, label="log")

    # Meta-step frames

    async def enter_step_chain(self, descriptor: StepDescriptor) -> ReportNode | None:
        """Reconcile open frames with the step's ancestry; return its parent."""
        plan = reconcile(descriptor.meta_chain, self.meta_stack)
        for frame in plan.to_close:
            await self.close_node(frame.node, frame.status_or(ItemStatus.PASSED))

        owner = self.test_node or self.suite_node
        if owner is None:
            self.meta_stack = list(plan.updated_stack[: plan.reused])
            return None
        parent = plan.updated_stack[plan.reused - 1].node if plan.reused else owner
        for frame in plan.to_open:
            nested = parent is not owner
            frame.node = await self.open_node(
                frame.display, ItemKind.STEP, parent, has_stats=False
            )
            logger.debug(
                f"{frame.node.id}: The stepId '{frame.display}' is started. "
                f"Nested: {nested}"
            )
            parent = frame.node

        self.meta_stack = list(plan.updated_stack)
        return parent

    async def flush_meta_frames(self, status: ItemStatus) -> None:
        """Close every open frame, innermost first."""
        if self.meta_stack:
            logger.debug(f"closing {len(self.meta_stack)} metasteps")
        for frame in reversed(self.meta_stack):
            await self.close_node(frame.node, frame.status_or(status))
        self.meta_stack = []

    async def _close_failed_step(self) -> None:
        if self.failed_step is not None and not self.failed_step.closed:
            await self.close_node(self.failed_step, ItemStatus.FAILED)
        self.failed_step = None

    # Suite lifecycle

    async def start_suite(self, title: str) -> None:
        if self.suite_node is not None and not self.suite_node.closed:
            await self.finish_suite()
        self.suite_node = await self.open_node(title, ItemKind.SUITE, None)
        self.suite_status = ItemStatus.PASSED
        logger.debug(f"{self.suite_node.id}: The suite '{title}' is started.")

    async def finish_suite(self) -> None:
        if self.suite_node is None:
            return
        logger.debug(
            f"{self.suite_node.id}: Suite '{self.suite_node.title}' "
            f"finished {self.suite_status.value}."
        )
        self.coordinator.record_status(self.suite_status)
        await self.close_node(self.suite_node, self.suite_status)
        self.suite_node = None

    # Test lifecycle

    async def start_test(self, title: str) -> None:
        if self.test_node is not None and not self.test_node.closed:
            await self.finish_test(self.test_node.title)
        self.meta_stack = []
        self.step_node = None
        self.last_step_node = None
        self.failed_step = None
        self.test_node = await self.open_node(title, ItemKind.TEST, self.suite_node)
        logger.debug(f"{self.test_node.id}: The test '{title}' is started.")

    async def skip_test(self, title: str) -> None:
        node = self.test_node
        if node is None or node.closed or node.title != title:
            node = await self.open_node(title, ItemKind.TEST, self.suite_node)
        else:
            await self.flush_meta_frames(ItemStatus.SKIPPED)
        await self.close_node(node, ItemStatus.SKIPPED)
        logger.debug(f"{node.id}: Test '{title}' Skipped.")

    async def pass_test(self, title: str) -> None:
        if self.test_node is None:
            logger.warning(f"Test '{title}' passed but was never started")
            return
        await self._close_failed_step()
        await self.flush_meta_frames(ItemStatus.PASSED)
        logger.debug(f"{self.test_node.id}: Test '{title}' passed.")
        await self.close_node(self.test_node, ItemStatus.PASSED)

    async def fail_test(self, title: str, error: str) -> None:
        self.coordinator.record_status(ItemStatus.FAILED)
        self.suite_status = ItemStatus.FAILED
        test = self.test_node
        if test is None or test.closed:
            logger.warning(f"Test '{title}' failed outside of a running test")
            if self.suite_node is not None:
                await self.send_log(
                    self.suite_node, LogEntry(LogLevel.ERROR, error)
                )
            return

        test.set_status(ItemStatus.FAILED)
        logger.debug(f"{test.id}: Test '{title}' failed.")
        await self.binder.bind_failure(test, self.failed_step, error, self.send_log)
        await self._close_failed_step()
        await self.flush_meta_frames(ItemStatus.FAILED)
        await self.close_node(test, ItemStatus.FAILED, message=error)

    async def finish_test(self, title: str) -> None:
        test = self.test_node
        status = test.final_status() if test is not None else ItemStatus.PASSED
        await self._close_failed_step()
        await self.flush_meta_frames(status)
        if test is not None and not test.closed:
            await self.close_node(test, status)
        self.test_node = None
        self.step_node = None
        self.last_step_node = None
        self.failed_step = None

    # Step lifecycle

    async def start_step(self, descriptor: StepDescriptor) -> None:
        await self._close_failed_step()
        parent = await self.enter_step_chain(descriptor)
        if parent is None:
            logger.warning(f"Step '{descriptor}' started outside of a test")
            self.step_node = None
            return
        self.step_node = await self.open_node(
            descriptor.report_name, ItemKind.STEP, parent, has_stats=False
        )

    async def finish_step(self, descriptor: StepDescriptor) -> None:
        node = self.step_node
        if node is None:
            return
        if node.status is ItemStatus.PENDING:
            node.set_status(ItemStatus.from_engine(descriptor.status))
        self.last_step_node = node
        self.step_node = None
        if node is self.failed_step or node.status is ItemStatus.FAILED:
            # held open until the test outcome attaches its evidence
            self.failed_step = node
            return
        await self.close_node(node, node.final_status())

    async def fail_step(self, descriptor: StepDescriptor) -> None:
        for frame in self.meta_stack:
            if frame.node is not None:
                frame.node.set_status(ItemStatus.FAILED)
        self.suite_status = ItemStatus.FAILED
        node = self.step_node or self.last_step_node
        if node is not None:
            node.set_status(ItemStatus.FAILED)
            self.failed_step = node

    async def pass_step(self, descriptor: StepDescriptor) -> None:
        for frame in self.meta_stack:
            if frame.node is not None:
                frame.node.set_status(ItemStatus.PASSED)
        if self.step_node is not None:
            self.step_node.set_status(ItemStatus.PASSED)
        await self._close_failed_step()
