from __future__ import annotations

from enum import Enum

from .errors import InvalidStatusError


class TicketStatus(str, Enum):
    """Statuses an incident ticket moves through.

    A ticket with no status at all is treated the same as ``OPEN``.
    """

    OPEN = "Open"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


# Statuses that still need someone to pick the ticket up.
UNACKNOWLEDGED_STATUSES: frozenset[str | None] = frozenset({TicketStatus.OPEN.value, None})

# Statuses excluded from the active dashboard counts.
INACTIVE_STATUSES: frozenset[str] = frozenset({TicketStatus.CLOSED.value, TicketStatus.RESOLVED.value})


class TicketStateMachine:
    """Gatekeeper for status changes requested by operators.

    Operators may move a ticket to any of the offered targets from any
    current status; there is no transition graph. ``Open`` and ``Resolved``
    are only ever set by the upstream feed.
    """

    _TARGETS: tuple[TicketStatus, ...] = (
        TicketStatus.ASSIGNED,
        TicketStatus.IN_PROGRESS,
        TicketStatus.ON_HOLD,
        TicketStatus.CLOSED,
    )

    def __init__(self, targets: tuple[TicketStatus, ...] | None = None) -> None:
        self._targets = targets or self._TARGETS

    @property
    def targets(self) -> tuple[TicketStatus, ...]:
        return self._targets

    @classmethod
    def acknowledged_state(cls) -> TicketStatus:
        return TicketStatus.ASSIGNED

    def parse_target(self, value: str | TicketStatus) -> TicketStatus:
        """Return ``value`` as a target status or raise ``InvalidStatusError``."""

        raw = value.value if isinstance(value, TicketStatus) else value
        for status in self._targets:
            if status.value == raw:
                return status
        allowed = ", ".join(status.value for status in self._targets)
        raise InvalidStatusError(f"Invalid status {raw!r}. Must be one of: {allowed}")

    def can_transition(self, current: str | None, target: str | TicketStatus) -> bool:
        # Every current status, including None, may reach every target.
        try:
            self.parse_target(target)
        except InvalidStatusError:
            return False
        return True
