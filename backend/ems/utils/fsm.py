from __future__ import annotations
"""Finite state machine guard for report status transitions.

Usage:
    from ems.utils.fsm import REPORT_FSM
    REPORT_FSM.assert_can_transition(report.status, STATUS_IN_PROGRESS)

Raises ``InvalidTransitionError`` (HTTP 400) if the edge is not in the graph.
Forced admin edits do not go through this guard.
"""
from typing import Dict, Iterable, Optional, Set

from ems.constants.roles import (
    STATUS_ASSIGNED, STATUS_CLOSED, STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_NEW, STATUS_PENDING_PARTS,
)
from ems.errors import InvalidTransitionError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise InvalidTransitionError(current, target, self.field_name)
        return True

    def targets(self, current: str) -> Set[str]:
        return set(self.graph.get(current, set()))

    def reachable(self, current: str, target: str, via: Optional[Iterable[str]] = None) -> bool:
        """True when ``target`` is one or more edges away, every step landing in ``via``."""
        allowed = None if via is None else set(via)
        seen: Set[str] = set()
        frontier = [current]
        while frontier:
            for nxt in self.graph.get(frontier.pop(), set()):
                if allowed is not None and nxt not in allowed:
                    continue
                if nxt == target:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return False


REPORT_FSM = TransitionValidator({
    STATUS_NEW: {STATUS_ASSIGNED, STATUS_IN_PROGRESS},
    STATUS_ASSIGNED: {STATUS_IN_PROGRESS},
    STATUS_IN_PROGRESS: {STATUS_PENDING_PARTS, STATUS_COMPLETED},
    STATUS_PENDING_PARTS: {STATUS_IN_PROGRESS, STATUS_COMPLETED},
    STATUS_COMPLETED: {STATUS_CLOSED},
    STATUS_CLOSED: set(),
})

__all__ = ['TransitionValidator', 'REPORT_FSM']
