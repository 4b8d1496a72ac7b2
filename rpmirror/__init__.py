"""
rpmirror - real-time test lifecycle mirroring for ReportPortal

rpmirror listens to a test-execution lifecycle (launch, suite, test, step and
nested meta-steps) and mirrors it onto a remote hierarchical report while the
run is in progress. Several worker processes can report into one shared
launch.

## Architecture

- **datastructures**: report nodes, meta-step frames, launch payloads
- **core**: session, step-stack reconciler, sequential effect queue, launch
  coordinator, failure artifact binder, event dispatch
- **client**: the ReportingService capability and its ReportPortal client
- **cli**: replay recorded event streams, validate configuration

## Quick Start

```python
from rpmirror import LifecycleEvent, StepDescriptor, build_reporter

reporter = build_reporter(
    {
        "enabled": True,
        "endpoint": "https://reportportal.example.com",
        "token": "...",
        "project_name": "web",
    }
)

await reporter.dispatch(LifecycleEvent.all_tests_starting())
await reporter.dispatch(LifecycleEvent.suite_starting("Login"))
await reporter.dispatch(LifecycleEvent.test_starting("valid login"))
...
await reporter.dispatch(LifecycleEvent.all_tests_finished())
```
"""

from .client import ReportingService, ReportPortalService
from .core import (
    ConfigurationError,
    EventDispatcher,
    EventKind,
    LaunchStartupError,
    LifecycleEvent,
    ReporterSettings,
    ReportingSession,
    build_reporter,
)
from .datastructures import (
    ItemKind,
    ItemStatus,
    MetaStepFrame,
    ReportNode,
    StepDescriptor,
)

# Version info
__version__ = "1.0.0"
__license__ = "MIT"

__all__ = [
    "ConfigurationError",
    "EventDispatcher",
    "EventKind",
    "ItemKind",
    "ItemStatus",
    "LaunchStartupError",
    "LifecycleEvent",
    "MetaStepFrame",
    "ReportNode",
    "ReportPortalService",
    "ReporterSettings",
    "ReportingService",
    "ReportingSession",
    "StepDescriptor",
    "build_reporter",
]
