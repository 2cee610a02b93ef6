"""
Transition-table state machines.

Each machine owns the single authoritative table of allowed edges for one
status field. Models never compare status strings to decide legality; they
ask their machine.
"""
from typing import Dict, FrozenSet, Iterable, Mapping

from .exceptions import InvalidTransition


class StateMachine:
    """
    Immutable transition table.

    Construction fails if the table references a state that is not declared,
    so a typo in an edge cannot silently create an unreachable status.
    """

    def __init__(self, name: str, states: Iterable[str], transitions: Mapping[str, Iterable[str]]):
        self.name = name
        self.states: FrozenSet[str] = frozenset(states)
        table: Dict[str, FrozenSet[str]] = {}
        for source, targets in transitions.items():
            targets = frozenset(targets)
            unknown = ({source} | targets) - self.states
            if unknown:
                raise ValueError(f'{name}: unknown states in transition table: {sorted(unknown)}')
            table[source] = targets
        for state in self.states:
            table.setdefault(state, frozenset())
        self._table = table

    def allowed(self, current: str) -> FrozenSet[str]:
        return self._table[current]

    def is_terminal(self, state: str) -> bool:
        return not self._table[state]

    def can_transition(self, current: str, target: str) -> bool:
        return target in self._table.get(current, frozenset())

    def check(self, current: str, target: str) -> None:
        """Raise InvalidTransition unless current -> target is an edge."""
        if target not in self.states or not self.can_transition(current, target):
            raise InvalidTransition(self.name, current, target)

    @property
    def terminal_states(self) -> FrozenSet[str]:
        return frozenset(s for s in self.states if self.is_terminal(s))
