"""
Wire payloads for the ReportPortal REST API.

Requests are serialized with ``by_alias=True`` so field names match the
camelCase the API expects; responses ignore fields we do not use.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ItemAttribute(_WireModel):
    key: str | None = None
    value: str


class StartLaunchRequest(_WireModel):
    name: str
    start_time: int = Field(alias="startTime")
    description: str = ""
    attributes: list[ItemAttribute] = Field(default_factory=list)
    mode: Literal["DEFAULT", "DEBUG"] = "DEFAULT"
    rerun: bool = False
    rerun_of: str | None = Field(default=None, alias="rerunOf")


class StartLaunchResponse(_WireModel):
    id: str
    number: int | None = None


class FinishLaunchRequest(_WireModel):
    end_time: int = Field(alias="endTime")
    status: str | None = None


class FinishLaunchResponse(_WireModel):
    id: str | None = None
    number: int | None = None
    link: str | None = None


class StartItemRequest(_WireModel):
    name: str
    type: Literal["SUITE", "TEST", "STEP"]
    launch_uuid: str = Field(alias="launchUuid")
    start_time: int = Field(alias="startTime")
    has_stats: bool = Field(default=True, alias="hasStats")


class StartItemResponse(_WireModel):
    id: str


class FinishItemRequest(_WireModel):
    launch_uuid: str = Field(alias="launchUuid")
    end_time: int = Field(alias="endTime")
    status: str
    description: str | None = None


class LogFile(_WireModel):
    name: str


class SaveLogRequest(_WireModel):
    launch_uuid: str = Field(alias="launchUuid")
    item_uuid: str = Field(alias="itemUuid")
    time: int
    level: str
    message: str
    file: LogFile | None = None
