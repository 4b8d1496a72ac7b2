"""
ReportPortal REST client.

Implements the ReportingService capability over the ReportPortal v1 API with
aiohttp. Each call is a single request; failures surface as RemoteCallError
and it is up to the caller (the effect queue) to log and carry on.
"""

from __future__ import annotations

import time
from typing import Any

import aiohttp
import orjson
from loguru import logger
from pydantic import BaseModel

from ..core.config import ReporterSettings
from ..core.exceptions import RemoteCallError
from ..datastructures.report_types import (
    Attachment,
    ItemKind,
    ItemStatus,
    LaunchHandle,
    LaunchOptions,
    LaunchResult,
    LogEntry,
)
from ..datastructures.type_aliases import (
    JsonDict,
    LaunchId,
    RemoteId,
    Timestamp,
    TimestampMilliseconds,
)
from .payloads import (
    FinishItemRequest,
    FinishLaunchRequest,
    FinishLaunchResponse,
    ItemAttribute,
    LogFile,
    SaveLogRequest,
    StartItemRequest,
    StartItemResponse,
    StartLaunchRequest,
    StartLaunchResponse,
)


def to_millis(timestamp: Timestamp) -> TimestampMilliseconds:
    return int(timestamp * 1000)


class ReportPortalService:
    """aiohttp-backed ReportingService."""

    def __init__(
        self,
        settings: ReporterSettings,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = (
            f"{settings.endpoint.rstrip('/')}/api/v1/{settings.project_name}"
        )
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ReportPortalService:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.settings.token}"},
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout),
                json_serialize=lambda obj: orjson.dumps(obj).decode(),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def create_launch(self, options: LaunchOptions) -> LaunchHandle:
        if options.launch_id:
            logger.debug(f"Attaching to existing launch {options.launch_id}")
            return LaunchHandle(id=options.launch_id)

        request = StartLaunchRequest(
            name=options.name,
            start_time=to_millis(options.start_time),
            description=options.description,
            attributes=[ItemAttribute(**attr) for attr in options.attributes],
            mode=options.mode.value,
            rerun=options.rerun,
            rerun_of=options.rerun_of,
        )
        data = await self._request("POST", "/launch", "start launch", request)
        response = StartLaunchResponse.model_validate(data)
        return LaunchHandle(id=response.id, number=response.number)

    async def finish_launch(
        self, handle: LaunchHandle, status: ItemStatus
    ) -> LaunchResult:
        request = FinishLaunchRequest(
            end_time=to_millis(time.time()), status=status.value
        )
        data = await self._request(
            "PUT", f"/launch/{handle.id}/finish", "finish launch", request
        )
        response = FinishLaunchResponse.model_validate(data)
        return LaunchResult(report_url=response.link, report_number=response.number)

    async def start_item(
        self,
        name: str,
        kind: ItemKind,
        launch_id: LaunchId,
        parent_id: RemoteId | None,
        has_stats: bool,
        start_time: Timestamp,
    ) -> RemoteId:
        request = StartItemRequest(
            name=name,
            type=kind.value,
            launch_uuid=launch_id,
            start_time=to_millis(start_time),
            has_stats=has_stats,
        )
        path = f"/item/{parent_id}" if parent_id else "/item"
        data = await self._request("POST", path, f"start item '{name}'", request)
        return StartItemResponse.model_validate(data).id

    async def finish_item(
        self,
        item_id: RemoteId,
        launch_id: LaunchId,
        status: ItemStatus,
        end_time: Timestamp,
        message: str | None = None,
    ) -> None:
        request = FinishItemRequest(
            launch_uuid=launch_id,
            end_time=to_millis(end_time),
            status=status.value,
            description=message,
        )
        await self._request(
            "PUT", f"/item/{item_id}", f"finish item {item_id}", request
        )

    async def send_log(
        self,
        item_id: RemoteId,
        launch_id: LaunchId,
        entry: LogEntry,
        attachment: Attachment | None = None,
    ) -> None:
        request = SaveLogRequest(
            launch_uuid=launch_id,
            item_uuid=item_id,
            time=to_millis(entry.time),
            level=entry.level.value,
            message=entry.message,
            file=LogFile(name=attachment.name) if attachment else None,
        )
        if attachment is None:
            await self._request("POST", "/log", "send log", request)
            return

        body = [request.model_dump(by_alias=True, exclude_none=True)]
        form = aiohttp.FormData()
        form.add_field(
            "json_request_part",
            orjson.dumps(body).decode(),
            content_type="application/json",
        )
        form.add_field(
            "file",
            attachment.content,
            filename=attachment.name,
            content_type=attachment.mime_type,
        )
        await self._send("POST", "/log", "send log with attachment", data=form)

    async def _request(
        self, method: str, path: str, operation: str, payload: BaseModel
    ) -> JsonDict:
        body = payload.model_dump(by_alias=True, exclude_none=True)
        if self.settings.debug:
            logger.debug(f"{method} {path}: {body}")
        return await self._send(method, path, operation, json=body)

    async def _send(
        self, method: str, path: str, operation: str, **kwargs: Any
    ) -> JsonDict:
        url = f"{self.base_url}{path}"
        try:
            async with self._client().request(method, url, **kwargs) as response:
                text = await response.text()
                if response.status >= 400:
                    raise RemoteCallError(operation, response.status, text[:500])
                if not text:
                    return {}
                data = orjson.loads(text)
        except aiohttp.ClientError as e:
            raise RemoteCallError(operation, None, str(e)) from e
        if self.settings.debug:
            logger.debug(f"{method} {path} -> {data}")
        return data if isinstance(data, dict) else {"items": data}
