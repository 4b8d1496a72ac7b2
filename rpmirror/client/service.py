"""Capability the reporting session calls to mutate the remote report."""

from __future__ import annotations

from typing import Protocol

from ..datastructures.report_types import (
    Attachment,
    ItemKind,
    ItemStatus,
    LaunchHandle,
    LaunchOptions,
    LaunchResult,
    LogEntry,
)
from ..datastructures.type_aliases import LaunchId, RemoteId, Timestamp


class ReportingService(Protocol):
    """Remote hierarchical report store."""

    async def create_launch(self, options: LaunchOptions) -> LaunchHandle:
        """Create a launch, or attach when ``options.launch_id`` is set."""
        ...

    async def finish_launch(
        self, handle: LaunchHandle, status: ItemStatus
    ) -> LaunchResult:
        """Finish a launch and return its report location."""
        ...

    async def start_item(
        self,
        name: str,
        kind: ItemKind,
        launch_id: LaunchId,
        parent_id: RemoteId | None,
        has_stats: bool,
        start_time: Timestamp,
    ) -> RemoteId:
        """Start an item under ``parent_id`` (or the launch root)."""
        ...

    async def finish_item(
        self,
        item_id: RemoteId,
        launch_id: LaunchId,
        status: ItemStatus,
        end_time: Timestamp,
        message: str | None = None,
    ) -> None:
        """Finish a previously started item."""
        ...

    async def send_log(
        self,
        item_id: RemoteId,
        launch_id: LaunchId,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> None:
        """Attach a log entry (and optionally a file) to an item."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
