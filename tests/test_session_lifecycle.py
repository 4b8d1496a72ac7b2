"""
End-to-end tests of the reporting session driven through the dispatcher.

Events go in exactly as the execution engine would emit them; assertions are
made against the tree the fake service ends up holding.
"""

from pathlib import Path

import pytest

from rpmirror.core.config import ReporterSettings
from rpmirror.core.dispatch import EventDispatcher
from rpmirror.core.events import LifecycleEvent
from rpmirror.core.session import ReportingSession
from rpmirror.datastructures.meta_step import MAX_STEP_NAME_LENGTH, StepDescriptor
from rpmirror.datastructures.report_types import ItemKind, ItemStatus, LogLevel
from tests.conftest import make_session, make_settings, meta, step
from tests.fakes import FakeCapture, FakeItem, FakeReportingService

GIVEN = meta("Given I am on the login page")
WHEN = meta("When I submit the form")


def child(service: FakeReportingService, parent: FakeItem, name: str) -> FakeItem:
    matches = [item for item in service.children(parent.id) if item.name == name]
    assert len(matches) == 1, f"expected one '{name}' under '{parent.name}'"
    return matches[0]


def passing_step(descriptor: StepDescriptor) -> list[LifecycleEvent]:
    return [
        LifecycleEvent.step_starting(descriptor),
        LifecycleEvent.step_passed(descriptor),
        LifecycleEvent.step_finished(descriptor),
    ]


def failing_step(descriptor: StepDescriptor) -> list[LifecycleEvent]:
    return [
        LifecycleEvent.step_starting(descriptor),
        LifecycleEvent.step_failed(descriptor),
        LifecycleEvent.step_finished(descriptor),
    ]


async def run(dispatcher: EventDispatcher, *groups) -> None:
    for group in groups:
        events = group if isinstance(group, list) else [group]
        await dispatcher.dispatch_all(events)
    await dispatcher.session.queue.drain()


class TestLoginScenario:
    @pytest.mark.asyncio
    async def test_passing_then_failing_test(
        self,
        dispatcher: EventDispatcher,
        service: FakeReportingService,
        capture: FakeCapture,
        tmp_path: Path,
    ) -> None:
        a = step("I fill username", GIVEN)
        b = step("I fill password", GIVEN)
        c = step("I click login", WHEN)
        d = step("I fill username", GIVEN)
        e = step("I see welcome", WHEN)

        await run(
            dispatcher,
            LifecycleEvent.all_tests_starting(),
            LifecycleEvent.suite_starting("Login"),
            LifecycleEvent.test_starting("valid login"),
            passing_step(a),
            passing_step(b),
            passing_step(c),
            LifecycleEvent.test_passed("valid login"),
            LifecycleEvent.test_finished("valid login"),
            LifecycleEvent.test_starting("invalid login"),
            passing_step(d),
            failing_step(e),
            LifecycleEvent.test_failed("invalid login", "expected welcome text"),
            LifecycleEvent.test_finished("invalid login"),
            LifecycleEvent.suite_finished("Login"),
            LifecycleEvent.all_tests_finished(),
        )

        assert service.violations == []
        assert all(item.closed for item in service.items.values())

        suite = service.one("Login")
        assert suite.kind is ItemKind.SUITE
        assert suite.status is ItemStatus.FAILED

        valid = service.one("valid login")
        assert valid.parent_id == suite.id
        assert valid.status is ItemStatus.PASSED
        given = child(service, valid, GIVEN.display)
        assert given.has_stats is False
        assert [i.name for i in service.children(given.id)] == [
            "I fill username",
            "I fill password",
        ]
        assert child(service, valid, WHEN.display).status is ItemStatus.PASSED

        invalid = service.one("invalid login")
        assert invalid.status is ItemStatus.FAILED
        assert invalid.message == "expected welcome text"
        assert child(service, invalid, GIVEN.display).status is ItemStatus.PASSED
        when = child(service, invalid, WHEN.display)
        assert when.status is ItemStatus.FAILED

        failed = child(service, when, "I see welcome")
        assert failed.status is ItemStatus.FAILED
        [(entry, attachment)] = failed.logs
        assert entry.level is LogLevel.ERROR
        assert entry.message == "expected welcome text"
        assert attachment.name == "failed.png"
        assert attachment.content == b"\x89PNG-fake"
        assert invalid.logs == []

        assert len(service.launches_finished) == 1
        assert service.launches_finished[0][1] is ItemStatus.FAILED
        assert (tmp_path / "LAUNCH_URL").exists()
        assert not (tmp_path / "LAUNCH_ID").exists()

    @pytest.mark.asyncio
    async def test_all_passing_run_keeps_launch_passed(
        self, dispatcher: EventDispatcher, service: FakeReportingService
    ) -> None:
        await run(
            dispatcher,
            LifecycleEvent.all_tests_starting(),
            LifecycleEvent.suite_starting("Login"),
            LifecycleEvent.test_starting("valid login"),
            passing_step(step("I fill username", GIVEN)),
            passing_step(step("I click login", WHEN)),
            LifecycleEvent.test_passed("valid login"),
            LifecycleEvent.test_finished("valid login"),
            LifecycleEvent.suite_finished("Login"),
            LifecycleEvent.all_tests_finished(),
        )

        assert service.one("Login").status is ItemStatus.PASSED
        assert service.launches_finished[0][1] is ItemStatus.PASSED


class TestNestingAndOrdering:
    @pytest.mark.asyncio
    async def test_shared_prefix_opens_no_new_frames(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        outer = meta("LoginPage login", "john")
        inner = meta("LoginPage fillForm", "john")
        await session.start_suite("S")
        await session.start_test("T")
        for name in ("I fill a", "I fill b"):
            descriptor = step(name, outer, inner)
            await session.start_step(descriptor)
            await session.pass_step(descriptor)
            await session.finish_step(descriptor)

        starts = [name for kind, name in service.calls if kind == "start"]
        assert starts.count("LoginPage login") == 1
        assert starts.count("LoginPage fillForm") == 1
        assert len(session.meta_stack) == 2

    @pytest.mark.asyncio
    async def test_shorter_chain_closes_excess_frames_innermost_first(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        outer, middle, inner = meta("A outer"), meta("A middle"), meta("A inner")
        await session.start_suite("S")
        await session.start_test("T")
        deep = step("I go deep", outer, middle, inner)
        await session.start_step(deep)
        await session.finish_step(deep)

        shallow = step("I stay shallow", outer)
        await session.start_step(shallow)

        finishes = [name for kind, name in service.calls if kind == "finish"]
        assert finishes[-2:] == ["A inner", "A middle"]
        last_start = [name for kind, name in service.calls if kind == "start"][-1]
        assert last_start == "I stay shallow"
        assert service.one("I stay shallow").parent_id == service.one("A outer").id
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_step_without_meta_steps_goes_under_test(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        await session.start_step(step("I wait"))

        assert service.one("I wait").parent_id == service.one("T").id

    @pytest.mark.asyncio
    async def test_meta_step_with_unencodable_arguments_is_reported(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        form = StepDescriptor(
            display="Form fill", actor="Form", name="fill", args=({1: "x"}, 2**70)
        )
        await session.start_suite("S")
        await session.start_test("T")
        filled = step("I fill", form)
        await session.start_step(filled)
        await session.pass_step(filled)
        await session.finish_step(filled)
        await session.pass_test("T")
        await session.finish_test("T")

        assert service.one("I fill").parent_id == service.one("Form fill").id
        assert service.one("I fill").status is ItemStatus.PASSED
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_passing_test_flushes_open_frames(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        descriptor = step("I click", meta("Page a"), meta("Page b"))
        await session.start_step(descriptor)
        await session.finish_step(descriptor)
        await session.pass_test("T")

        assert session.meta_stack == []
        assert service.one("Page a").status is ItemStatus.PASSED
        assert service.one("Page b").status is ItemStatus.PASSED
        assert service.calls[-1] == ("finish", "T")
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_long_step_names_are_truncated(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        await session.start_step(step("I type " + "x" * 500))

        [item] = [i for i in service.items.values() if i.name.startswith("I type")]
        assert len(item.name) == MAX_STEP_NAME_LENGTH

    @pytest.mark.asyncio
    async def test_unfinished_test_is_closed_when_next_starts(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("first")
        await session.start_step(step("I hang", meta("Page x")))
        await session.start_test("second")

        assert service.one("first").closed
        assert service.one("I hang").closed
        assert service.one("Page x").closed
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_closing_suite_closes_open_children(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        await session.start_step(step("I linger", meta("Page y")))
        await session.finish_suite()

        assert all(item.closed for item in service.items.values())
        assert service.calls[-1] == ("finish", "S")
        assert service.violations == []


class TestStatusPropagation:
    @pytest.mark.asyncio
    async def test_failed_step_fails_frames_and_suite(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        frame = meta("Checkout pay")
        await session.start_suite("S")
        await session.start_test("T")
        bad = step("I pay", frame)
        await session.start_step(bad)
        await session.fail_step(bad)
        await session.finish_step(bad)
        good = step("I see receipt", frame)
        await session.start_step(good)
        await session.pass_step(good)
        await session.finish_step(good)
        await session.pass_test("T")
        await session.finish_test("T")
        await session.finish_suite()

        assert service.one("I pay").status is ItemStatus.FAILED
        assert service.one("I see receipt").status is ItemStatus.PASSED
        assert service.one("Checkout pay").status is ItemStatus.FAILED
        assert service.one("S").status is ItemStatus.FAILED
        assert session.coordinator.status is ItemStatus.FAILED
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_failed_suite_keeps_launch_failed(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("first")
        await session.start_test("broken")
        await session.fail_test("broken", "boom")
        await session.finish_test("broken")
        await session.finish_suite()
        await session.start_suite("second")
        await session.start_test("fine")
        await session.pass_test("fine")
        await session.finish_test("fine")
        await session.finish_suite()

        assert service.one("second").status is ItemStatus.PASSED
        assert session.coordinator.status is ItemStatus.FAILED


class TestFailureArtifacts:
    @pytest.mark.asyncio
    async def test_failure_without_step_attaches_to_test(
        self,
        session: ReportingSession,
        service: FakeReportingService,
        capture: FakeCapture,
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        await session.fail_test("T", "assertion error")

        test = service.one("T")
        [(entry, attachment)] = test.logs
        assert entry.message == "assertion error"
        assert attachment.name == "failed.png"
        assert test.status is ItemStatus.FAILED
        assert capture.full_page_requests == [False]

    @pytest.mark.asyncio
    async def test_failure_after_next_step_started_attaches_to_test(
        self,
        session: ReportingSession,
        service: FakeReportingService,
        capture: FakeCapture,
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        bad = step("I pay")
        await session.start_step(bad)
        await session.fail_step(bad)
        await session.finish_step(bad)
        await session.start_step(step("I retry"))
        await session.fail_test("T", "payment declined")

        paid = service.one("I pay")
        test = service.one("T")
        assert paid.closed
        assert paid.status is ItemStatus.FAILED
        assert paid.logs == []
        [(entry, attachment)] = test.logs
        assert entry.message == "payment declined"
        assert attachment.name == "failed.png"
        assert session.failed_step is None
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_screenshot_failure_still_logs_error(
        self, settings: ReporterSettings, service: FakeReportingService
    ) -> None:
        session = make_session(settings, service, FakeCapture(fail_screenshot=True))
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        await session.fail_test("T", "boom")

        test = service.one("T")
        [(entry, attachment)] = test.logs
        assert entry.message == "boom"
        assert attachment is None
        assert test.status is ItemStatus.FAILED

    @pytest.mark.asyncio
    async def test_full_page_screenshots_setting_is_honoured(
        self, tmp_path: Path, service: FakeReportingService
    ) -> None:
        capture = FakeCapture()
        session = make_session(
            make_settings(tmp_path, full_page_screenshots=True), service, capture
        )
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        await session.fail_test("T", "boom")

        assert capture.full_page_requests == [True]

    @pytest.mark.asyncio
    async def test_video_goes_to_test_node(
        self, tmp_path: Path, service: FakeReportingService
    ) -> None:
        video_dir = tmp_path / "video"
        video_dir.mkdir()
        (video_dir / "session.mp4").write_bytes(b"recording")
        settings = make_settings(
            tmp_path,
            video_upload=True,
            video_name="session.mp4",
            video_path=video_dir,
        )
        session = make_session(settings, service, FakeCapture())
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        failing = step("I click", meta("Page buy"))
        await session.start_step(failing)
        await session.fail_step(failing)
        await session.finish_step(failing)
        await session.fail_test("T", "button missing")

        step_logs = service.one("I click").logs
        assert [a.name for _, a in step_logs] == ["failed.png"]
        [(entry, video)] = service.one("T").logs
        assert entry.message == "Add Video for failed test"
        assert video.name == "TestVideo.mp4"
        assert video.mime_type == "video/mp4"
        assert video.content == b"recording"
        assert not (video_dir / "session.mp4").exists()

    @pytest.mark.asyncio
    async def test_failure_outside_test_logs_to_suite(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.fail_test("hook", "beforeAll hook failed")

        [(entry, _)] = service.one("S").logs
        assert entry.message == "beforeAll hook failed"
        assert session.suite_status is ItemStatus.FAILED


class TestRemoteFailures:
    @pytest.mark.asyncio
    async def test_failed_start_does_not_break_the_run(
        self, tmp_path: Path
    ) -> None:
        service = FakeReportingService(fail_start={"I break"})
        session = make_session(make_settings(tmp_path), service, FakeCapture())
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        broken = step("I break")
        await session.start_step(broken)
        await session.fail_step(broken)
        await session.finish_step(broken)
        await session.fail_test("T", "lost step")
        await session.finish_test("T")
        await session.start_test("T2")
        await session.start_step(step("I work"))
        await session.pass_test("T2")
        await session.finish_suite()

        assert service.named("I break") == []
        # evidence falls back to the test when the failed step never existed
        [(entry, _)] = service.one("T").logs
        assert entry.message == "lost step"
        assert service.one("I work").closed
        assert service.one("T2").status is ItemStatus.PASSED
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_children_of_a_missing_parent_are_skipped(
        self, tmp_path: Path
    ) -> None:
        service = FakeReportingService(fail_start={"Page gone"})
        session = make_session(make_settings(tmp_path), service)
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        await session.start_step(step("I click", meta("Page gone")))

        assert service.named("I click") == []
        assert session.step_node is not None
        assert session.step_node.start_failed

    @pytest.mark.asyncio
    async def test_failed_finish_is_logged_and_run_continues(
        self, tmp_path: Path
    ) -> None:
        service = FakeReportingService(fail_finish={"T"})
        session = make_session(make_settings(tmp_path), service)
        await session.coordinator.start()
        await session.start_suite("S")
        await session.start_test("T")
        await session.pass_test("T")
        await session.finish_test("T")
        await session.finish_suite()

        assert not service.one("T").closed
        assert service.one("S").closed


class TestSkipAndLogs:
    @pytest.mark.asyncio
    async def test_skipped_test_without_start(
        self, dispatcher: EventDispatcher, service: FakeReportingService
    ) -> None:
        await run(
            dispatcher,
            LifecycleEvent.all_tests_starting(),
            LifecycleEvent.suite_starting("S"),
            LifecycleEvent.test_skipped("later"),
        )

        skipped = service.one("later")
        assert skipped.status is ItemStatus.SKIPPED
        assert skipped.closed
        assert skipped.parent_id == service.one("S").id

    @pytest.mark.asyncio
    async def test_started_test_that_is_skipped(
        self, dispatcher: EventDispatcher, service: FakeReportingService
    ) -> None:
        await run(
            dispatcher,
            LifecycleEvent.all_tests_starting(),
            LifecycleEvent.suite_starting("S"),
            LifecycleEvent.test_starting("maybe"),
            LifecycleEvent.test_skipped("maybe"),
            LifecycleEvent.test_finished("maybe"),
        )

        assert service.one("maybe").status is ItemStatus.SKIPPED
        assert service.violations == []

    @pytest.mark.asyncio
    async def test_log_current_targets_innermost_step(
        self, session: ReportingSession, service: FakeReportingService
    ) -> None:
        await session.start_suite("S")
        await session.start_test("T")
        session.log_current(LogLevel.INFO, "on the test")
        await session.queue.drain()
        await session.start_step(step("I look"))
        session.log_current(LogLevel.DEBUG, "on the step")
        await session.queue.drain()

        assert [e.message for e, _ in service.one("T").logs] == ["on the test"]
        assert [e.message for e, _ in service.one("I look").logs] == ["on the step"]
