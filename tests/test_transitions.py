import pytest

from intranet.core.exceptions import InvalidTransitionError
from intranet.core.transitions import (
    can_cancel,
    can_complete,
    can_put_on_hold,
    can_reopen,
    get_valid_next_statuses,
    is_terminal_status,
    is_valid_transition,
    transition_error_message,
    validate_transition,
)


@pytest.mark.parametrize("entity_type, from_status, to_status, expected", [
    ("leave_request", "pending", "approved", True),
    ("leave_request", "approved", "cancelled", True),
    ("leave_request", "approved", "rejected", False),
    ("leave_request", "rejected", "approved", False),
    ("task", "open", "completed", False),
    ("task", "in_progress", "on_hold", True),
    ("maintenance_ticket", "completed", "closed", True),
    ("job_posting", "filled", "open", False),
])
def test_is_valid_transition(entity_type, from_status, to_status, expected):
    assert is_valid_transition(entity_type, from_status, to_status) is expected


def test_unknown_current_status_is_never_valid():
    assert is_valid_transition("task", "archived", "open") is False
    assert get_valid_next_statuses("task", "archived") == []
    assert is_terminal_status("task", "archived") is False


def test_unknown_entity_type_raises():
    with pytest.raises(ValueError):
        is_valid_transition("invoice", "draft", "sent")


def test_validate_transition_names_valid_options():
    with pytest.raises(InvalidTransitionError) as exc_info:
        validate_transition("leave_request", "approved", "rejected")
    err = exc_info.value
    assert err.status_code == 409
    assert err.details["valid_next"] == ["cancelled"]
    assert "cancelled" in err.message


def test_validate_transition_terminal_state_message():
    with pytest.raises(InvalidTransitionError) as exc_info:
        validate_transition("leave_request", "rejected", "approved")
    assert "none (terminal state)" in exc_info.value.message


def test_transition_error_message():
    assert "final state" in transition_error_message("task", "completed", "open")
    message = transition_error_message("maintenance_ticket", "open", "closed")
    assert message.startswith('Cannot transition maintenance ticket from "open" to "closed"')
    assert "in_progress, cancelled" in message


def test_helpers():
    assert can_cancel("leave_request", "pending")
    assert not can_cancel("leave_request", "rejected")
    assert can_complete("maintenance_ticket", "pending_parts")
    assert not can_complete("task", "open")
    assert can_put_on_hold("job_posting", "open")
    assert can_reopen("job_posting", "on_hold")
    assert can_reopen("task", "on_hold")
    assert not can_reopen("task", "completed")
