"""
Reporter assembly.

``build_reporter`` turns plugin configuration into a ready dispatcher: a
disabled configuration yields a dispatcher that ignores every event, an
enabled one is validated (missing connection fields are fatal) and bound to a
fresh session over the ReportPortal client.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger
from rich.console import Console

from .artifacts import ArtifactCapture
from .config import ReporterSettings
from .dispatch import EventDispatcher
from .handoff import HandoffChannel
from .session import ReportingSession

if TYPE_CHECKING:
    from ..client.service import ReportingService


def build_reporter(
    config: ReporterSettings | Mapping[str, Any],
    *,
    service: ReportingService | None = None,
    capture: ArtifactCapture | None = None,
    handoff: HandoffChannel | None = None,
    console: Console | None = None,
) -> EventDispatcher:
    """Build an event dispatcher for ``config``.

    Raises ConfigurationError when the reporter is enabled but cannot reach
    a server.
    """
    settings = (
        config
        if isinstance(config, ReporterSettings)
        else ReporterSettings.from_mapping(config)
    )
    if not settings.enabled:
        logger.debug("Reporter disabled, ignoring lifecycle events")
        return EventDispatcher.disabled()

    settings.validate()
    if service is None:
        from ..client.reportportal import ReportPortalService

        service = ReportPortalService(settings)

    session = ReportingSession(
        settings,
        service,
        handoff=handoff,
        capture=capture,
        console=console,
    )
    return EventDispatcher(session)
