"""
Reporter configuration.

Settings come from a mapping (plugin configuration), a TOML/JSON file, or
``RP_*`` environment variables. Keys are accepted in snake_case as well as
the camelCase names used by the JavaScript reporter configs most projects
already have.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import orjson

from ..datastructures.report_types import LaunchMode
from ..datastructures.type_aliases import (
    AttributeList,
    DurationSeconds,
    LaunchId,
    ProjectName,
    UrlString,
)
from .exceptions import ConfigurationError

REQUIRED_FIELDS = ("project_name", "token", "endpoint")

_CAMEL_CASE_KEYS = {
    "projectName": "project_name",
    "launchName": "launch_name",
    "launchDescription": "launch_description",
    "launchAttributes": "launch_attributes",
    "attributes": "launch_attributes",
    "rerunOf": "rerun_of",
    "selenoidVideoPath": "video_path",
    "selenoidVideoUpload": "video_upload",
    "videoName": "video_name",
    "debugMode": "debug_mode",
    "fullPageScreenshots": "full_page_screenshots",
}

_ENV_KEYS = {
    "RP_ENDPOINT": "endpoint",
    "RP_TOKEN": "token",
    "RP_PROJECT": "project_name",
    "RP_LAUNCH": "launch_name",
    "RP_LAUNCH_DESCRIPTION": "launch_description",
    "RP_RERUN_OF": "rerun_of",
    "RP_ENABLED": "enabled",
    "RP_DEBUG": "debug",
}

_BOOL_FIELDS = {
    "debug",
    "rerun",
    "enabled",
    "video_upload",
    "debug_mode",
    "full_page_screenshots",
}


@dataclass(slots=True)
class ReporterSettings:
    """Reporter configuration settings."""

    endpoint: UrlString = ""
    token: str = ""
    project_name: ProjectName = ""
    launch_name: str = ""
    launch_description: str = ""
    launch_attributes: AttributeList = field(default_factory=list)
    debug: bool = False
    rerun: bool = False
    rerun_of: LaunchId | None = None
    enabled: bool = False

    # Evidence capture
    video_path: Path = Path("./output/video")
    video_upload: bool = False
    video_name: str | None = None
    full_page_screenshots: bool = False

    debug_mode: bool = False

    # Cross-process hand-off files
    handoff_dir: Path = Path(".")
    launch_id_file: str = "LAUNCH_ID"
    launch_url_file: str = "LAUNCH_URL"

    log_level: str = "INFO"
    request_timeout: DurationSeconds | None = None

    def __post_init__(self) -> None:
        self.video_path = Path(self.video_path)
        self.handoff_dir = Path(self.handoff_dir)

    @property
    def launch_mode(self) -> LaunchMode:
        return LaunchMode.DEBUG if self.debug_mode else LaunchMode.DEFAULT

    @property
    def launch_id_path(self) -> Path:
        return self.handoff_dir / self.launch_id_file

    @property
    def launch_url_path(self) -> Path:
        return self.handoff_dir / self.launch_url_file

    def validate(self) -> ReporterSettings:
        """Raise ConfigurationError unless the settings can reach a server."""
        for name in REQUIRED_FIELDS:
            if not getattr(self, name):
                raise ConfigurationError(
                    f"Reporter config is invalid. Key {name} is missing in config.\n"
                    f"Required fields: {', '.join(REQUIRED_FIELDS)}"
                )
        if self.video_upload and not self.video_name:
            raise ConfigurationError(
                "Video upload is enabled but no video name is configured"
            )
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ReporterSettings:
        """Build settings from a config mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _CAMEL_CASE_KEYS.get(raw_key, raw_key)
            if key in known:
                values[key] = _coerce(key, value)
        return cls(**values)

    def with_environment(
        self, environ: Mapping[str, str] | None = None
    ) -> ReporterSettings:
        """Return a copy with ``RP_*`` environment variables applied."""
        env = os.environ if environ is None else environ
        overrides = {
            name: _coerce(name, env[var])
            for var, name in _ENV_KEYS.items()
            if var in env
        }
        return replace(self, **overrides) if overrides else self


def load_settings(path: str | Path) -> ReporterSettings:
    """Load settings from a TOML or JSON file.

    A TOML file may keep its options under a ``[rpmirror]`` table.
    """
    config_path = Path(path)
    raw = config_path.read_bytes()
    if config_path.suffix == ".json":
        data = orjson.loads(raw)
    else:
        try:
            data = tomllib.loads(raw.decode("utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
        data = data.get("rpmirror", data)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a table")
    return ReporterSettings.from_mapping(data)


def _coerce(name: str, value: Any) -> Any:
    if name in _BOOL_FIELDS and isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if name in {"video_path", "handoff_dir"}:
        return Path(value)
    if name == "launch_attributes":
        return _attributes(value)
    return value


def _attributes(value: Any) -> AttributeList:
    if isinstance(value, Mapping):
        return [{"key": str(k), "value": str(v)} for k, v in value.items()]
    attributes: AttributeList = []
    for item in value or ():
        if isinstance(item, Mapping):
            attributes.append({k: str(v) for k, v in item.items()})
        else:
            attributes.append({"value": str(item)})
    return attributes
