"""Status state machines embedded in entities.

Each machine is an allowed-edges table. A status absent from the table's
keys is not part of the machine; a status whose edge set is empty is
terminal.
"""

from __future__ import annotations

from dataclasses import dataclass

from harmony.errors import InvalidTransitionError, ValidationError


@dataclass(slots=True, frozen=True)
class StateMachine:
    entity: str
    edges: dict[str, frozenset[str]]

    @property
    def states(self) -> frozenset[str]:
        return frozenset(self.edges)

    def is_terminal(self, status: str) -> bool:
        return not self.edges.get(status)

    def can_transition(self, current: str, requested: str) -> bool:
        return requested in self.edges.get(current, frozenset())


APPLICATION_STATUS = StateMachine(
    entity="job application",
    edges={
        "applied": frozenset({"shortlisted", "rejected"}),
        "shortlisted": frozenset({"interview", "rejected"}),
        "interview": frozenset({"hired", "rejected"}),
        "hired": frozenset(),
        "rejected": frozenset(),
    },
)

PASSWORD_RESET_STATUS = StateMachine(
    entity="password reset request",
    edges={
        "pending": frozenset({"approved", "rejected"}),
        "approved": frozenset(),
        "rejected": frozenset(),
    },
)

CONNECTION_STATUS = StateMachine(
    entity="connection",
    edges={
        "pending": frozenset({"accepted", "rejected"}),
        "accepted": frozenset(),
        "rejected": frozenset(),
    },
)

JOB_ARCHIVE_STATE = StateMachine(
    entity="job",
    edges={
        "active": frozenset({"archived"}),
        "archived": frozenset({"active"}),
    },
)


def job_state(is_archived: bool) -> str:
    return "archived" if is_archived else "active"


def ensure_transition(machine: StateMachine, current: str, requested: str) -> None:
    if requested not in machine.states:
        raise ValidationError("status", f"'{requested}' is not a valid {machine.entity} status")
    if not machine.can_transition(current, requested):
        raise InvalidTransitionError(machine.entity, current, requested)
