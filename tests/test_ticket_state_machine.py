import pytest

from app.tickets.errors import InvalidStatusError
from app.tickets.state import INACTIVE_STATUSES, UNACKNOWLEDGED_STATUSES, TicketStateMachine, TicketStatus


def test_operator_targets():
    machine = TicketStateMachine()

    assert machine.targets == (
        TicketStatus.ASSIGNED,
        TicketStatus.IN_PROGRESS,
        TicketStatus.ON_HOLD,
        TicketStatus.CLOSED,
    )


@pytest.mark.parametrize("current", [None, "Open", "Assigned", "Closed", "Resolved"])
@pytest.mark.parametrize("target", ["Assigned", "In Progress", "On Hold", "Closed"])
def test_any_status_may_reach_any_target(current, target):
    assert TicketStateMachine().can_transition(current, target)


@pytest.mark.parametrize("target", ["Open", "Resolved", "closed", "Done", ""])
def test_feed_only_or_unknown_targets_rejected(target):
    machine = TicketStateMachine()

    assert not machine.can_transition("Assigned", target)
    with pytest.raises(InvalidStatusError) as excinfo:
        machine.parse_target(target)
    assert "Must be one of: Assigned, In Progress, On Hold, Closed" in str(excinfo.value)


def test_parse_target_accepts_enum_members():
    assert TicketStateMachine().parse_target(TicketStatus.ON_HOLD) is TicketStatus.ON_HOLD


def test_acknowledged_state_is_assigned():
    assert TicketStateMachine.acknowledged_state() is TicketStatus.ASSIGNED


def test_status_groups():
    assert None in UNACKNOWLEDGED_STATUSES
    assert "Open" in UNACKNOWLEDGED_STATUSES
    assert INACTIVE_STATUSES == {"Closed", "Resolved"}
