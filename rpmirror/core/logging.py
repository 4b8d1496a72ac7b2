"""Central logging configuration helpers for rpmirror."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from ..datastructures.report_types import LogLevel

if TYPE_CHECKING:
    from .session import ReportingSession

DEFAULT_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)

REPORT_EXTRA_KEY = "report"


def _qualify_scope(scope: str) -> str:
    scope = scope.strip()
    if scope and scope != "rpmirror" and not scope.startswith("rpmirror."):
        return f"rpmirror.{scope}"
    return scope


def configure_logging(
    level: str,
    *,
    debug_scopes: Iterable[str] = (),
    colorize: bool = False,
) -> tuple[int, ...]:
    """Route loguru output to stderr.

    ``debug_scopes`` lets DEBUG records from selected modules through while
    everything else stays at ``level``. Scopes are module prefixes such as
    ``core.session`` or ``rpmirror.client``.
    """
    logger.remove()
    handler_ids = [
        logger.add(
            sys.stderr, level=level, format=DEFAULT_LOG_FORMAT, colorize=colorize
        )
    ]

    prefixes = tuple(p for p in map(_qualify_scope, debug_scopes) if p)
    if not prefixes or level.upper() == "DEBUG":
        return tuple(handler_ids)

    def in_scope(record: Mapping[str, Any]) -> bool:
        return record["level"].name == "DEBUG" and (
            record["name"] or ""
        ).startswith(prefixes)

    handler_ids.append(
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=DEFAULT_LOG_FORMAT,
            colorize=colorize,
            filter=in_scope,
        )
    )
    return tuple(handler_ids)


class ReportLogSink:
    """Loguru sink mirroring ``report=True`` records into the live report.

    Usage::

        handler_id = ReportLogSink(session).install()
        logger.bind(report=True).info("Opened the login page")

    Records land on the innermost open step, or on the test when no step is
    running. Records without the ``report`` flag are ignored, so the
    reporter's own diagnostics never feed back into the report.
    """

    def __init__(self, session: ReportingSession, level: str = "TRACE") -> None:
        self.session = session
        self.level = level

    def install(self) -> int:
        return logger.add(
            self, level=self.level, filter=self.accepts, format="{message}"
        )

    @staticmethod
    def accepts(record: Mapping[str, Any]) -> bool:
        return bool(record["extra"].get(REPORT_EXTRA_KEY))

    def __call__(self, message: Any) -> None:
        record = message.record
        self.session.log_current(
            LogLevel.from_loguru(record["level"].name), record["message"]
        )
