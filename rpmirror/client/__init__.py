"""
rpmirror client module.

The ReportingService capability and its ReportPortal REST implementation.
"""

from __future__ import annotations

from .reportportal import ReportPortalService
from .service import ReportingService

__all__ = [
    "ReportPortalService",
    "ReportingService",
]
