"""
Semantic type aliases for rpmirror datastructures.

These aliases keep signatures self-documenting: a remote item id, a launch id
and a report URL are all strings on the wire but mean different things.
"""

from collections.abc import Mapping
from typing import Any, TypeAlias

# Time and timestamp types
Timestamp: TypeAlias = float
TimestampMilliseconds: TypeAlias = int
DurationSeconds: TypeAlias = float

# Remote identifiers
RemoteId: TypeAlias = str
LaunchId: TypeAlias = str
ReportNumber: TypeAlias = int
UrlString: TypeAlias = str

# Report content
ItemTitle: TypeAlias = str
ErrorDescription: TypeAlias = str
ActorName: TypeAlias = str
StepName: TypeAlias = str
SerializedArguments: TypeAlias = str
AttributeList: TypeAlias = list[Mapping[str, str]]

# Configuration and payload types
JsonDict: TypeAlias = dict[str, Any]
SettingName: TypeAlias = str
FeatureFlag: TypeAlias = bool
ProjectName: TypeAlias = str
