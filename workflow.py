"""
Status state machines for custom orders and orders.

Every endpoint that changes a status goes through ``StatusMachine.transition``
so the legal moves live in one table per document type.
"""

import logging
from typing import Dict, FrozenSet, Iterable

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    def __init__(self, kind: str, current: str, target: str):
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Cannot change {kind} status from {current} to {target}")


class StatusMachine:
    def __init__(self, kind: str, transitions: Dict[str, Iterable[str]]):
        self.kind = kind
        self.transitions: Dict[str, FrozenSet[str]] = {
            state: frozenset(targets) for state, targets in transitions.items()
        }
        unknown = {t for targets in self.transitions.values() for t in targets} - set(self.transitions)
        if unknown:
            raise ValueError(f"{kind} transitions reference unknown states: {sorted(unknown)}")

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def can(self, current: str, target: str) -> bool:
        return target in self.transitions.get(current, frozenset())

    def is_terminal(self, state: str) -> bool:
        return not self.transitions.get(state)

    def transition(self, current: str, target: str) -> str:
        if not self.can(current, target):
            raise InvalidTransition(self.kind, current, target)
        logger.info("%s status %s -> %s", self.kind, current, target)
        return target


CUSTOM_ORDER_STATUS = StatusMachine(
    "custom order",
    {
        "pending": {"approved", "rejected", "cancelled"},
        "approved": {"processing", "cancelled"},
        "processing": {"shipped", "cancelled"},
        "shipped": {"delivered"},
        "delivered": set(),
        "rejected": set(),
        "cancelled": set(),
    },
)

ORDER_STATUS = StatusMachine(
    "order",
    {
        "pending": {"processing", "cancelled"},
        "processing": {"shipped", "cancelled"},
        "shipped": {"delivered"},
        "delivered": set(),
        "cancelled": set(),
    },
)
