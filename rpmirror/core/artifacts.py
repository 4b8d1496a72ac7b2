"""
Failure evidence capture and binding.

When a test fails, the error log and screenshot belong on the most specific
node that failed: the recorded failed step when there is one, the test
otherwise. Video recordings are scoped per test and always go to the test
node. Capture is best effort: a capture failure is logged and the attachment
is simply omitted.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Protocol, TypeAlias

import aiofiles
import aiofiles.os
from loguru import logger

from ..datastructures.report_types import (
    Attachment,
    LogEntry,
    LogLevel,
    PendingArtifact,
    ReportNode,
)
from .exceptions import CaptureError

SCREENSHOT_NAME = "failed.png"
VIDEO_NAME = "TestVideo.mp4"
VIDEO_LOG_MESSAGE = "Add Video for failed test"

LogSender: TypeAlias = Callable[[ReportNode, LogEntry, Attachment | None], Awaitable[None]]


class ArtifactCapture(Protocol):
    """External capture collaborator."""

    async def capture_screenshot(self, full_page: bool) -> bytes: ...

    async def capture_video(self) -> bytes: ...


class PageScreenshotCapture:
    """Screenshots from a browser page object with an async ``screenshot``.

    Playwright pages fit as-is; any object whose ``screenshot(full_page=...)``
    coroutine returns PNG bytes works.
    """

    def __init__(self, page: Any) -> None:
        self.page = page

    async def capture_screenshot(self, full_page: bool) -> bytes:
        return await self.page.screenshot(full_page=full_page)

    async def capture_video(self) -> bytes:
        raise CaptureError("Pages do not record video")


class RecordedVideoCapture:
    """Reads (and removes) a recording left on disk by the browser grid."""

    def __init__(self, video_dir: Path, video_name: str) -> None:
        self.video_file = Path(video_dir) / video_name

    async def capture_screenshot(self, full_page: bool) -> bytes:
        raise CaptureError("Video recorder cannot take screenshots")

    async def capture_video(self) -> bytes:
        try:
            async with aiofiles.open(self.video_file, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise CaptureError(f"Can't read video {self.video_file}: {e}") from e
        await aiofiles.os.remove(self.video_file)
        return content


class FailureArtifactBinder:
    """Attaches failure logs and evidence to the right report node."""

    def __init__(
        self,
        capture: ArtifactCapture | None = None,
        *,
        video: ArtifactCapture | None = None,
        full_page_screenshots: bool = False,
        upload_video: bool = False,
    ) -> None:
        self.capture = capture
        self.video_source = video or capture
        self.full_page_screenshots = full_page_screenshots
        self.upload_video = upload_video

    @staticmethod
    def select_target(
        test_node: ReportNode, failed_step: ReportNode | None
    ) -> ReportNode:
        """The failed step while it is still open, the test otherwise."""
        if (
            failed_step is not None
            and not failed_step.closed
            and not failed_step.start_failed
        ):
            return failed_step
        return test_node

    async def screenshot(self, target: ReportNode) -> PendingArtifact | None:
        if self.capture is None:
            return None
        try:
            content = await self.capture.capture_screenshot(self.full_page_screenshots)
        except Exception as e:
            logger.error(f"Couldn't save screenshot: {e}")
            return None
        return PendingArtifact(
            Attachment(SCREENSHOT_NAME, "image/png", content), target
        )

    async def video(self, test_node: ReportNode) -> PendingArtifact | None:
        if self.video_source is None or not self.upload_video:
            return None
        try:
            content = await self.video_source.capture_video()
        except Exception as e:
            logger.error(f"Couldn't capture video: {e}")
            return None
        return PendingArtifact(Attachment(VIDEO_NAME, "video/mp4", content), test_node)

    async def bind_failure(
        self,
        test_node: ReportNode,
        failed_step: ReportNode | None,
        error: str,
        send_log: LogSender,
    ) -> ReportNode:
        """Send the error log, screenshot and video; return the log target."""
        target = self.select_target(test_node, failed_step)
        if target is not test_node:
            logger.debug("Attaching screenshot & error to failed step")

        screenshot = await self.screenshot(target)
        await send_log(
            target,
            LogEntry(LogLevel.ERROR, error, time=time.time()),
            screenshot.attachment if screenshot else None,
        )

        recording = await self.video(test_node)
        if recording is not None:
            await send_log(
                recording.target,
                LogEntry(LogLevel.ERROR, VIDEO_LOG_MESSAGE, time=test_node.start_time),
                recording.attachment,
            )
        return target
