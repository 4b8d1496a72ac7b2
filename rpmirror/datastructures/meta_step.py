"""
Step descriptors and meta-step frames.

A step can be wrapped by any number of meta-steps (page-object methods,
Gherkin steps, ...). The engine exposes that ancestry as parent links; here it
is flattened into an outermost-first tuple so the reconciler can compare
chains position by position.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import orjson

from .report_types import ItemStatus, ReportNode
from .type_aliases import ActorName, SerializedArguments, StepName

MAX_STEP_NAME_LENGTH = 300
_ARGUMENT_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS


def _serialize_argument(arg: Any) -> str:
    if isinstance(arg, str):
        return arg
    try:
        return orjson.dumps(arg, default=str, option=_ARGUMENT_OPTIONS).decode()
    except TypeError:
        # orjson.JSONEncodeError: ints beyond 64 bits, mixed-type keys
        return str(arg)


def serialize_arguments(args: Iterable[Any]) -> SerializedArguments:
    """Serialize step arguments into the comparable identity string."""
    return ",".join(_serialize_argument(arg) for arg in args)


@dataclass(frozen=True, slots=True)
class StepDescriptor:
    """A step as announced by the execution engine."""

    display: str
    actor: ActorName | None = None
    name: StepName | None = None
    args: tuple[Any, ...] = ()
    meta_chain: tuple[StepDescriptor, ...] = ()
    status: str | None = None

    @property
    def report_name(self) -> str:
        return self.display[:MAX_STEP_NAME_LENGTH]

    def __str__(self) -> str:
        return self.display

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StepDescriptor:
        """Build a descriptor from an engine payload.

        Ancestry may be given either as an explicit ``meta_chain`` list
        (outermost first) or as nested ``meta_step`` parent links.
        """
        if "meta_chain" in data:
            chain = tuple(cls._single(item) for item in data["meta_chain"] or ())
        else:
            chain = tuple(cls._single(item) for item in flatten_meta_steps(data))
        return cls(
            display=str(data.get("display") or data.get("name") or ""),
            actor=data.get("actor"),
            name=data.get("name"),
            args=tuple(data.get("args") or ()),
            meta_chain=chain,
            status=data.get("status"),
        )

    @classmethod
    def _single(cls, data: Mapping[str, Any]) -> StepDescriptor:
        return cls(
            display=str(data.get("display") or data.get("name") or ""),
            actor=data.get("actor"),
            name=data.get("name"),
            args=tuple(data.get("args") or ()),
        )


def flatten_meta_steps(step: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Walk ``meta_step`` parent links and return them outermost first."""
    chain: list[Mapping[str, Any]] = []
    current = step.get("meta_step")
    while current:
        chain.append(current)
        current = current.get("meta_step")
    chain.reverse()
    return chain


@dataclass
class MetaStepFrame:
    """An open meta-step in the current nesting path.

    Equality is semantic: two frames are equal when actor, step name and
    serialized arguments match, regardless of their remote nodes.
    """

    actor: ActorName | None
    name: StepName | None
    args_serialized: SerializedArguments
    display: str = field(default="", compare=False)
    node: ReportNode | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_descriptor(cls, descriptor: StepDescriptor) -> MetaStepFrame:
        return cls(
            actor=descriptor.actor,
            name=descriptor.name,
            args_serialized=serialize_arguments(descriptor.args),
            display=descriptor.display,
        )

    @property
    def key(self) -> tuple[ActorName | None, StepName | None, SerializedArguments]:
        return (self.actor, self.name, self.args_serialized)

    @property
    def status(self) -> ItemStatus:
        return self.node.status if self.node is not None else ItemStatus.PENDING

    def status_or(self, default: ItemStatus) -> ItemStatus:
        """The frame status, or ``default`` while it is still pending."""
        return self.node.final_status(default) if self.node is not None else default


def frames_for_chain(chain: Sequence[StepDescriptor]) -> list[MetaStepFrame]:
    return [MetaStepFrame.from_descriptor(descriptor) for descriptor in chain]
