"""Bookkeeping of open report nodes so no node closes before its children."""

from __future__ import annotations

from ..datastructures.report_types import ReportNode


class ReportTree:
    """Tracks open nodes in the order they were opened."""

    def __init__(self) -> None:
        self._open: list[ReportNode] = []

    def opened(self, node: ReportNode) -> None:
        self._open.append(node)

    def closed(self, node: ReportNode) -> None:
        if node in self._open:
            self._open.remove(node)

    def is_open(self, node: ReportNode) -> bool:
        return node in self._open

    def open_descendants(self, node: ReportNode) -> list[ReportNode]:
        """Open descendants of ``node``, innermost (latest opened) first."""
        return [
            candidate
            for candidate in reversed(self._open)
            if candidate is not node and _descends_from(candidate, node)
        ]

    @property
    def open_nodes(self) -> tuple[ReportNode, ...]:
        return tuple(self._open)

    def __len__(self) -> int:
        return len(self._open)


def _descends_from(candidate: ReportNode, ancestor: ReportNode) -> bool:
    parent = candidate.parent
    while parent is not None:
        if parent is ancestor:
            return True
        parent = parent.parent
    return False
