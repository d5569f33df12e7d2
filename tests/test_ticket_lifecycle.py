from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.tickets.lifecycle import (
    ACKNOWLEDGE_REMARK,
    append_remark,
    format_log_timestamp,
    mutation_time,
    plan_acknowledge,
    plan_remark,
    plan_status_update,
)
from app.tickets.models import ActivityKind, Ticket
from app.tickets.state import TicketStatus

NOW = datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)


def _ticket(**overrides) -> Ticket:
    values = {
        "tt_number": "TT-1",
        "status": None,
        "severity": "Critical",
        "open_time": NOW - timedelta(hours=30),
    }
    values.update(overrides)
    return Ticket(**values)


def test_format_log_timestamp():
    assert format_log_timestamp(NOW) == "2025-03-02T12:00:00.000Z"


def test_append_remark_keeps_prefix():
    assert append_remark(None, "first") == "first"
    assert append_remark("", "first") == "first"
    assert append_remark("old  ", "new") == "old  \nnew"


def test_mutation_time_is_strictly_increasing():
    ticket = _ticket(last_status_update=NOW)

    assert mutation_time(ticket, NOW) == NOW + timedelta(microseconds=1)
    assert mutation_time(ticket, NOW - timedelta(hours=1)) == NOW + timedelta(microseconds=1)
    assert mutation_time(ticket, NOW + timedelta(seconds=5)) == NOW + timedelta(seconds=5)
    assert mutation_time(_ticket(), NOW) == NOW


def test_plan_acknowledge():
    change = plan_acknowledge(_ticket(status="Open"), actor="jdoe", now=NOW)

    assert change.updates == {"status": "Assigned", "cleared_date": None, "last_status_update": NOW}
    assert change.activity.activity_type is ActivityKind.ACKNOWLEDGED
    assert change.activity.old_value == "Open"
    assert change.activity.new_value == "Assigned"
    assert change.activity.remarks == ACKNOWLEDGE_REMARK
    assert change.activity.created_by == "jdoe"


def test_plan_status_update_closed_sets_cleared_date_and_appends_log():
    change = plan_status_update(
        _ticket(system_rca="[earlier]: note"),
        status=TicketStatus.CLOSED,
        actor="jdoe",
        now=NOW,
        remarks="  fixed ",
    )

    assert change.updates["status"] == "Closed"
    assert change.updates["cleared_date"] == NOW
    assert change.updates["system_rca"] == "[earlier]: note\n[2025-03-02T12:00:00.000Z]: fixed"
    assert change.activity.activity_type is ActivityKind.STATUS_UPDATE
    assert change.activity.old_value is None
    assert change.activity.new_value == "Closed"
    assert change.activity.remarks == "fixed"


def test_plan_status_update_reopening_clears_cleared_date():
    closed = _ticket(status="Closed", cleared_date=NOW - timedelta(hours=2))

    change = plan_status_update(closed, status=TicketStatus.IN_PROGRESS, actor="jdoe", now=NOW)

    assert change.updates["cleared_date"] is None
    assert "system_rca" not in change.updates
    assert change.activity.remarks is None


def test_plan_remark_includes_actor():
    change = plan_remark(_ticket(), text=" checked power ", actor="jdoe", now=NOW, attachment_id=4)

    assert change.updates["system_rca"] == "[2025-03-02T12:00:00.000Z - jdoe]: checked power"
    assert change.updates["last_status_update"] == NOW
    assert "status" not in change.updates
    assert change.activity.activity_type is ActivityKind.ADD_REMARK
    assert change.activity.attachment_id == 4
    assert change.activity.old_value is None and change.activity.new_value is None
