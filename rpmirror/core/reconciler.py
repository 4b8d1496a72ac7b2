"""
Step-stack reconciliation.

Given the meta-step ancestry of the step about to start and the stack of
currently open meta-step frames, compute which frames to close and which to
open so the remote tree matches the step's logical nesting:

- the longest common prefix (by frame equality) is reused untouched;
- the rest of the open stack closes, innermost first;
- the rest of the new chain opens, outermost first.

The function is pure. Applying the plan (remote calls, parenting) is the
session's job.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ..datastructures.meta_step import MetaStepFrame, StepDescriptor, frames_for_chain


@dataclass(frozen=True, slots=True)
class ReconcilePlan:
    """Frames to close (innermost first), frames to open (outermost first)."""

    to_close: tuple[MetaStepFrame, ...] = ()
    to_open: tuple[MetaStepFrame, ...] = ()
    updated_stack: tuple[MetaStepFrame, ...] = field(default=())
    reused: int = 0

    @property
    def is_noop(self) -> bool:
        return not self.to_close and not self.to_open


def common_prefix_length(
    left: Sequence[MetaStepFrame], right: Sequence[MetaStepFrame]
) -> int:
    length = 0
    for a, b in zip(left, right):
        if a != b:
            break
        length += 1
    return length


def reconcile(
    new_chain: Sequence[StepDescriptor], current_stack: Sequence[MetaStepFrame]
) -> ReconcilePlan:
    """Plan the frame changes needed before a step with ``new_chain`` starts."""
    wanted = frames_for_chain(new_chain)
    reused = common_prefix_length(wanted, current_stack)

    to_close = tuple(reversed(current_stack[reused:]))
    to_open = tuple(wanted[reused:])
    return ReconcilePlan(
        to_close=to_close,
        to_open=to_open,
        updated_stack=tuple(current_stack[:reused]) + to_open,
        reused=reused,
    )
