"""
Error taxonomy for rpmirror.

Fatal errors (configuration, launch startup) abort the process. Remote call
and capture errors are recoverable: they are logged and reporting continues.
"""

from __future__ import annotations

from dataclasses import dataclass


class ReporterError(Exception):
    """Base class for every error raised by rpmirror."""


class ConfigurationError(ReporterError):
    """Configuration is missing a required field or is inconsistent."""


class LaunchStartupError(ReporterError):
    """The shared launch could not be created or attached to."""


@dataclass
class RemoteCallError(ReporterError):
    """A single write against the reporting service failed."""

    operation: str
    status: int | None = None
    detail: str = ""

    def __str__(self) -> str:
        status = f" (HTTP {self.status})" if self.status is not None else ""
        return f"{self.operation} failed{status}: {self.detail}"


class OrphanedItemError(ReporterError):
    """A node was referenced whose remote start call never succeeded."""


class CaptureError(ReporterError):
    """Screenshot or video capture failed."""
