"""
rpmirror core module.

Session, reconciliation, effect ordering, launch coordination and failure
evidence binding.
"""

from .artifacts import (
    ArtifactCapture,
    FailureArtifactBinder,
    PageScreenshotCapture,
    RecordedVideoCapture,
)
from .config import ReporterSettings, load_settings
from .dispatch import EventDispatcher
from .effect_queue import SequentialEffectQueue
from .events import EventKind, LifecycleEvent
from .exceptions import (
    CaptureError,
    ConfigurationError,
    LaunchStartupError,
    OrphanedItemError,
    RemoteCallError,
    ReporterError,
)
from .handoff import FileHandoffChannel, HandoffChannel
from .launch import LaunchCoordinator, LaunchState, StatusAggregator
from .logging import ReportLogSink, configure_logging
from .plugin import build_reporter
from .reconciler import ReconcilePlan, reconcile
from .session import ReportingSession

__all__ = [
    "ArtifactCapture",
    "CaptureError",
    "ConfigurationError",
    "EventDispatcher",
    "EventKind",
    "FailureArtifactBinder",
    "FileHandoffChannel",
    "HandoffChannel",
    "LaunchCoordinator",
    "LaunchStartupError",
    "LaunchState",
    "LifecycleEvent",
    "OrphanedItemError",
    "PageScreenshotCapture",
    "ReconcilePlan",
    "RecordedVideoCapture",
    "RemoteCallError",
    "ReportLogSink",
    "ReporterError",
    "ReporterSettings",
    "ReportingSession",
    "SequentialEffectQueue",
    "StatusAggregator",
    "build_reporter",
    "configure_logging",
    "load_settings",
    "reconcile",
]
