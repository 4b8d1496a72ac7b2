"""
Cross-process launch hand-off.

The controller process publishes the shared launch id; worker processes read
it once at startup and attach. The file channel is single-writer /
multi-reader: only the controller writes or removes the id file, so no file
locking is needed. Writes go through a temporary file and an atomic rename so
a reader never observes a half-written id.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os
from loguru import logger

from ..datastructures.type_aliases import LaunchId, UrlString


class HandoffChannel(Protocol):
    """Broadcast channel for the shared launch identity."""

    async def read_launch_id(self) -> LaunchId | None: ...

    async def publish_launch_id(self, launch_id: LaunchId) -> None: ...

    async def retract_launch_id(self) -> None: ...

    async def publish_report_url(self, url: UrlString) -> None: ...


class FileHandoffChannel:
    """Hand-off through files in a shared directory."""

    def __init__(self, launch_id_path: Path, report_url_path: Path) -> None:
        self.launch_id_path = Path(launch_id_path)
        self.report_url_path = Path(report_url_path)

    async def read_launch_id(self) -> LaunchId | None:
        try:
            async with aiofiles.open(self.launch_id_path, encoding="utf-8") as f:
                launch_id = (await f.read()).strip()
        except FileNotFoundError:
            return None
        return launch_id or None

    async def publish_launch_id(self, launch_id: LaunchId) -> None:
        await _write_atomic(self.launch_id_path, launch_id)
        logger.debug(f"Writing launch id {launch_id} to file {self.launch_id_path}")

    async def retract_launch_id(self) -> None:
        try:
            await aiofiles.os.remove(self.launch_id_path)
        except FileNotFoundError:
            logger.debug(f"Launch id file {self.launch_id_path} already removed")

    async def publish_report_url(self, url: UrlString) -> None:
        await _write_atomic(self.report_url_path, url)
        logger.info(f"Output launch url to file: {self.report_url_path}")


async def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(content)
    await aiofiles.os.replace(tmp_path, path)
