"""Pure planning of lifecycle mutations.

Each ``plan_*`` function receives the ticket as currently stored and returns a
:class:`TicketChange`: the fields to write and the activity describing the
write. Stores call the planner while holding the ticket's write lock, so the
read, the plan and the persist form one unit per ticket.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .criteria import to_utc
from .models import ActivityDraft, ActivityKind, Ticket, TicketChange
from .state import TicketStateMachine, TicketStatus

ACKNOWLEDGE_REMARK = "Ticket acknowledged and assigned"

_MIN_STEP = timedelta(microseconds=1)


def format_log_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. ``2025-03-01T08:15:00.000Z``."""

    return to_utc(moment).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def append_remark(log: str | None, line: str) -> str:
    """Append ``line`` to the remarks log, keeping the old log as an exact prefix."""

    if not log:
        return line
    return f"{log}\n{line}"


def mutation_time(ticket: Ticket, now: datetime) -> datetime:
    """Timestamp for a mutation, strictly after the ticket's last update."""

    now = to_utc(now)
    previous = to_utc(ticket.last_status_update)
    if previous is not None and now <= previous:
        return previous + _MIN_STEP
    return now


def plan_acknowledge(ticket: Ticket, *, actor: str, now: datetime) -> TicketChange:
    touched = mutation_time(ticket, now)
    assigned = TicketStateMachine.acknowledged_state().value
    return TicketChange(
        updates={
            "status": assigned,
            "cleared_date": None,
            "last_status_update": touched,
        },
        activity=ActivityDraft(
            activity_type=ActivityKind.ACKNOWLEDGED,
            created_by=actor,
            created_at=touched,
            old_value=ticket.status,
            new_value=assigned,
            remarks=ACKNOWLEDGE_REMARK,
        ),
    )


def plan_status_update(
    ticket: Ticket,
    *,
    status: TicketStatus,
    actor: str,
    now: datetime,
    remarks: str | None = None,
    attachment_id: int | None = None,
) -> TicketChange:
    touched = mutation_time(ticket, now)
    note = remarks.strip() if remarks else None
    updates: dict[str, object] = {
        "status": status.value,
        "cleared_date": touched if status is TicketStatus.CLOSED else None,
        "last_status_update": touched,
    }
    if note:
        updates["system_rca"] = append_remark(ticket.system_rca, f"[{format_log_timestamp(touched)}]: {note}")
    return TicketChange(
        updates=updates,
        activity=ActivityDraft(
            activity_type=ActivityKind.STATUS_UPDATE,
            created_by=actor,
            created_at=touched,
            old_value=ticket.status,
            new_value=status.value,
            remarks=note or None,
            attachment_id=attachment_id,
        ),
    )


def plan_remark(
    ticket: Ticket,
    *,
    text: str,
    actor: str,
    now: datetime,
    attachment_id: int | None = None,
) -> TicketChange:
    touched = mutation_time(ticket, now)
    note = text.strip()
    line = f"[{format_log_timestamp(touched)} - {actor}]: {note}"
    return TicketChange(
        updates={
            "system_rca": append_remark(ticket.system_rca, line),
            "last_status_update": touched,
        },
        activity=ActivityDraft(
            activity_type=ActivityKind.ADD_REMARK,
            created_by=actor,
            created_at=touched,
            remarks=note,
            attachment_id=attachment_id,
        ),
    )
