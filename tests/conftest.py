"""Pytest configuration and fixtures for rpmirror testing.

Sessions are built over an in-memory reporting service and a file hand-off
rooted in the test's temporary directory, so cooperating "processes" can be
simulated by building several sessions over the same directory and service.
"""

import io
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from rich.console import Console

from rpmirror.core.config import ReporterSettings
from rpmirror.core.dispatch import EventDispatcher
from rpmirror.core.session import ReportingSession
from rpmirror.datastructures.meta_step import StepDescriptor
from tests.fakes import FakeCapture, FakeReportingService


def make_settings(handoff_dir: Path, **overrides) -> ReporterSettings:
    values = {
        "endpoint": "https://rp.example.com",
        "token": "secret-token",
        "project_name": "demo",
        "launch_name": "nightly",
        "enabled": True,
        "handoff_dir": handoff_dir,
    }
    values.update(overrides)
    return ReporterSettings(**values)


def make_session(
    settings: ReporterSettings,
    service: FakeReportingService,
    capture: FakeCapture | None = None,
) -> ReportingSession:
    return ReportingSession(
        settings,
        service,
        capture=capture,
        console=Console(file=io.StringIO(), width=200),
    )


def step(
    display: str,
    *meta: StepDescriptor,
    actor: str = "I",
    name: str | None = None,
    args: tuple = (),
) -> StepDescriptor:
    """Build a step whose meta-step ancestry is ``meta`` (outermost first)."""
    return StepDescriptor(
        display=display,
        actor=actor,
        name=name or display,
        args=args,
        meta_chain=tuple(meta),
    )


def meta(display: str, *args: str) -> StepDescriptor:
    actor, _, name = display.partition(" ")
    return StepDescriptor(display=display, actor=actor, name=name, args=args)


@pytest.fixture
def settings(tmp_path: Path) -> ReporterSettings:
    return make_settings(tmp_path)


@pytest.fixture
def service() -> FakeReportingService:
    return FakeReportingService()


@pytest.fixture
def capture() -> FakeCapture:
    return FakeCapture()


@pytest_asyncio.fixture
async def session(
    settings: ReporterSettings,
    service: FakeReportingService,
    capture: FakeCapture,
) -> AsyncGenerator[ReportingSession, None]:
    """A session with its launch already started as controller."""
    reporting_session = make_session(settings, service, capture)
    await reporting_session.coordinator.start()
    yield reporting_session
    await reporting_session.queue.close()


@pytest_asyncio.fixture
async def dispatcher(
    settings: ReporterSettings,
    service: FakeReportingService,
    capture: FakeCapture,
) -> AsyncGenerator[EventDispatcher, None]:
    reporting_session = make_session(settings, service, capture)
    yield EventDispatcher(reporting_session)
    await reporting_session.queue.close()
