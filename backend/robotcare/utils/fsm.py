from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Designed for lightweight lifecycle models (Ticket.status, TicketStage.status).
Usage:
    from robotcare.utils.fsm import TransitionValidator
    STAGE_FSM = TransitionValidator({
        'not_started': {'in_progress', 'completed'},
        'in_progress': {'completed'},
        'completed': set(),
    }, field_name='stage status')
    STAGE_FSM.assert_can_transition(current_status, target_status)

Raises Conflict if invalid.
"""
from typing import Dict, Iterable, Set
from robotcare.errors import Conflict

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise Conflict(
                f"Invalid {self.field_name} transition {current} -> {target}",
                meta={'current': current, 'attempted': target},
            )
        return True

    def sources_of(self, target: str) -> Iterable[str]:
        """States from which ``target`` is reachable in one step (used for conditional updates)."""
        return sorted(s for s, allowed in self.graph.items() if target in allowed)

    def states(self):
        return list(self.graph.keys())

__all__ = ['TransitionValidator']
