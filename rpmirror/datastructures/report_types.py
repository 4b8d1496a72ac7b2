"""
Report datastructures shared by the session, the coordinator and the client.

A ReportNode mirrors one remote item (suite, test or step). Its remote id is
assigned asynchronously once the start call completes, so consumers that need
the id await ``wait_id()`` instead of reading the attribute directly.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum

from ..core.exceptions import OrphanedItemError
from .type_aliases import (
    AttributeList,
    ErrorDescription,
    ItemTitle,
    LaunchId,
    RemoteId,
    ReportNumber,
    Timestamp,
    UrlString,
)


class ItemKind(Enum):
    """Kinds of report items."""

    SUITE = "SUITE"
    TEST = "TEST"
    STEP = "STEP"


class ItemStatus(Enum):
    """Item and launch statuses."""

    PENDING = "PENDING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @classmethod
    def from_engine(cls, raw: str | None) -> ItemStatus:
        """Map an execution-engine status string onto a report status."""
        if raw is None:
            return cls.PENDING
        normalized = raw.strip().lower()
        if normalized in {"success", "passed", "pass"}:
            return cls.PASSED
        if normalized in {"failed", "failure", "fail"}:
            return cls.FAILED
        if normalized in {"skipped", "skip", "pending-skip"}:
            return cls.SKIPPED
        return cls.PENDING


class LogLevel(Enum):
    """Log levels understood by the reporting service."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def from_loguru(cls, level_name: str) -> LogLevel:
        return _LOGURU_LEVELS.get(level_name.upper(), cls.INFO)


_LOGURU_LEVELS = {
    "TRACE": LogLevel.TRACE,
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "SUCCESS": LogLevel.INFO,
    "WARNING": LogLevel.WARN,
    "ERROR": LogLevel.ERROR,
    "CRITICAL": LogLevel.FATAL,
}


class LaunchMode(Enum):
    """Launch visibility mode."""

    DEFAULT = "DEFAULT"
    DEBUG = "DEBUG"


@dataclass(eq=False)
class ReportNode:
    """One remote report item and its local lifecycle."""

    title: ItemTitle
    kind: ItemKind
    parent: ReportNode | None = None
    has_stats: bool = True
    status: ItemStatus = ItemStatus.PENDING
    start_time: Timestamp = field(default_factory=time.time)
    end_time: Timestamp | None = None
    message: ErrorDescription | None = None
    id: RemoteId | None = None
    closed: bool = False
    start_failed: bool = False
    _resolved: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def parent_id(self) -> RemoteId | None:
        return self.parent.id if self.parent is not None else None

    @property
    def resolved(self) -> bool:
        return self._resolved.is_set()

    def assign_id(self, remote_id: RemoteId) -> None:
        """Record the id returned by the remote start call."""
        self.id = remote_id
        self._resolved.set()

    def mark_start_failed(self) -> None:
        """Release waiters of a node whose start call failed."""
        self.start_failed = True
        self._resolved.set()

    async def wait_id(self) -> RemoteId:
        """Wait for the remote id; raise if the node was never created."""
        await self._resolved.wait()
        if self.id is None:
            raise OrphanedItemError(
                f"{self.kind.value} '{self.title}' has no remote id"
            )
        return self.id

    def set_status(self, status: ItemStatus) -> None:
        """Apply a status; FAILED latches and is never downgraded."""
        if self.status is ItemStatus.FAILED and status is not ItemStatus.FAILED:
            return
        self.status = status

    def final_status(self, default: ItemStatus = ItemStatus.PASSED) -> ItemStatus:
        return default if self.status is ItemStatus.PENDING else self.status


@dataclass(slots=True)
class LaunchOptions:
    """Options for creating (or attaching to) a launch."""

    name: str
    description: str = ""
    attributes: AttributeList = field(default_factory=list)
    mode: LaunchMode = LaunchMode.DEFAULT
    rerun: bool = False
    rerun_of: LaunchId | None = None
    launch_id: LaunchId | None = None
    start_time: Timestamp = field(default_factory=time.time)


@dataclass(slots=True)
class LaunchHandle:
    """The live launch this process reports into."""

    id: LaunchId
    status: ItemStatus = ItemStatus.PASSED
    report_url: UrlString | None = None
    number: ReportNumber | None = None


@dataclass(frozen=True, slots=True)
class LaunchResult:
    """What the service returns once a launch is finished."""

    report_url: UrlString | None
    report_number: ReportNumber | None


@dataclass(frozen=True, slots=True)
class Attachment:
    """A binary blob uploaded together with a log entry."""

    name: str
    mime_type: str
    content: bytes


@dataclass(frozen=True, slots=True)
class PendingArtifact:
    """Captured evidence and the node it belongs to; discarded after upload."""

    attachment: Attachment
    target: ReportNode


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A log line sent to a report item."""

    level: LogLevel
    message: str
    time: Timestamp = field(default_factory=time.time)
