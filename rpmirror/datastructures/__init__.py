"""
rpmirror datastructures.

Key datastructures:
- ReportNode: a remote report item with asynchronously assigned id
- MetaStepFrame / StepDescriptor: step identity and nesting ancestry
- LaunchHandle / LaunchOptions / LaunchResult: launch lifecycle payloads
"""

from __future__ import annotations

from .meta_step import (
    MAX_STEP_NAME_LENGTH,
    MetaStepFrame,
    StepDescriptor,
    flatten_meta_steps,
    frames_for_chain,
    serialize_arguments,
)
from .report_types import (
    Attachment,
    ItemKind,
    ItemStatus,
    LaunchHandle,
    LaunchMode,
    LaunchOptions,
    LaunchResult,
    LogEntry,
    LogLevel,
    PendingArtifact,
    ReportNode,
)

__all__ = [
    "MAX_STEP_NAME_LENGTH",
    "Attachment",
    "ItemKind",
    "ItemStatus",
    "LaunchHandle",
    "LaunchMode",
    "LaunchOptions",
    "LaunchResult",
    "LogEntry",
    "LogLevel",
    "MetaStepFrame",
    "PendingArtifact",
    "ReportNode",
    "StepDescriptor",
    "flatten_meta_steps",
    "frames_for_chain",
    "serialize_arguments",
]
