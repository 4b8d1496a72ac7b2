"""
Launch coordination across cooperating processes.

Exactly one process (the controller) creates the shared launch and later
finishes it. Every other process finds the published launch id at startup,
attaches to it, and only ever closes its own items.

State machine: UNSTARTED -> STARTING -> ACTIVE -> FINISHING -> CLOSED
"""

from __future__ import annotations

import inspect
import os
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger
from rich.console import Console

from ..datastructures.report_types import (
    ItemStatus,
    LaunchHandle,
    LaunchOptions,
    LaunchResult,
)
from ..datastructures.type_aliases import LaunchId
from .config import ReporterSettings
from .exceptions import LaunchStartupError
from .handoff import HandoffChannel

if TYPE_CHECKING:
    from ..client.service import ReportingService

LAUNCH_ENV_VAR = "REPORTPORTAL_LAUNCH_UUID"
DEFAULT_LAUNCH_NAME = "rpmirror"

ResultListener: TypeAlias = Callable[[LaunchResult], Awaitable[None] | None]


class LaunchState(Enum):
    """Lifecycle of the launch as seen by one process."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    ACTIVE = "active"
    FINISHING = "finishing"
    CLOSED = "closed"


class StatusAggregator:
    """Launch-wide status: starts PASSED, latches FAILED."""

    def __init__(self) -> None:
        self.status = ItemStatus.PASSED

    def record(self, status: ItemStatus) -> None:
        if status is ItemStatus.FAILED:
            self.status = ItemStatus.FAILED

    @property
    def failed(self) -> bool:
        return self.status is ItemStatus.FAILED


class LaunchCoordinator:
    """Creates or attaches to the shared launch and finalizes it once."""

    def __init__(
        self,
        settings: ReporterSettings,
        service: ReportingService,
        handoff: HandoffChannel,
        console: Console | None = None,
    ) -> None:
        self.settings = settings
        self.service = service
        self.handoff = handoff
        self.console = console or Console()
        self.state = LaunchState.UNSTARTED
        self.handle: LaunchHandle | None = None
        self.is_controller = False
        self.pool_mode = False
        self.aggregator = StatusAggregator()
        self.result: LaunchResult | None = None
        self._listeners: list[ResultListener] = []

    @property
    def launch_id(self) -> LaunchId:
        if self.handle is None:
            raise LaunchStartupError("No launch is active")
        return self.handle.id

    @property
    def status(self) -> ItemStatus:
        return self.aggregator.status

    @property
    def active(self) -> bool:
        return self.state is LaunchState.ACTIVE

    def add_result_listener(self, listener: ResultListener) -> None:
        self._listeners.append(listener)

    def record_status(self, status: ItemStatus) -> None:
        self.aggregator.record(status)
        if self.handle is not None:
            self.handle.status = self.aggregator.status

    async def start(self, *, pool: bool = False) -> LaunchHandle:
        """Attach to the published launch, or create and publish a new one.

        Raises LaunchStartupError when no launch could be obtained; callers
        treat that as fatal.
        """
        if self.handle is not None and self.state is not LaunchState.CLOSED:
            return self.handle

        self.state = LaunchState.STARTING
        shared_id = await self.handoff.read_launch_id()
        options = LaunchOptions(
            name=self.settings.launch_name or DEFAULT_LAUNCH_NAME,
            description=self.settings.launch_description,
            attributes=list(self.settings.launch_attributes),
            mode=self.settings.launch_mode,
            rerun=self.settings.rerun,
            rerun_of=self.settings.rerun_of,
            launch_id=shared_id,
        )
        try:
            handle = await self.service.create_launch(options)
        except Exception as e:
            self.state = LaunchState.UNSTARTED
            raise LaunchStartupError(f"Can't connect to ReportPortal: {e}") from e

        self.handle = handle
        handle.status = self.aggregator.status
        if shared_id:
            self.is_controller = False
            logger.info(f"Attached to shared launch {handle.id}")
        else:
            self.is_controller = True
            self.pool_mode = pool
            await self.handoff.publish_launch_id(handle.id)
            logger.info(
                f"Started {'aggregate ' if pool else ''}launch {handle.id} "
                "as controller"
            )

        os.environ[LAUNCH_ENV_VAR] = handle.id
        self.state = LaunchState.ACTIVE
        return handle

    async def finalize(self) -> LaunchResult | None:
        """Finish the shared launch; a no-op for non-controllers."""
        if not self.is_controller or self.handle is None:
            logger.debug("Not the launch controller, leaving the launch open")
            return None
        if self.state in (LaunchState.FINISHING, LaunchState.CLOSED):
            return self.result

        self.state = LaunchState.FINISHING
        logger.debug(f"{self.handle.id} Finishing launch: {self.status.value}")
        try:
            result = await self.service.finish_launch(self.handle, self.status)
        except Exception as e:
            logger.error(f"Finishing launch {self.handle.id} failed: {e}")
            self.state = LaunchState.CLOSED
            return None

        self.result = result
        self.handle.report_url = result.report_url
        self.handle.number = result.report_number
        self.state = LaunchState.CLOSED

        if result.report_url:
            self.console.print(
                f"📋 Report #{result.report_number} saved ➡ {result.report_url}"
            )
            await self.handoff.publish_report_url(result.report_url)
        await self.handoff.retract_launch_id()
        await self._notify(result)
        return result

    async def _notify(self, result: LaunchResult) -> None:
        for listener in self._listeners:
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Launch result listener failed: {e}")
