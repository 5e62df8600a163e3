"""
Status transition validation.

Defines the valid state transitions for every entity with a status field so
that invalid status changes are rejected before they reach the database.
"""
import logging
from typing import Dict, List

from intranet.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

# Key: current status, value: valid next statuses. An empty list marks a terminal state.
STATUS_TRANSITIONS: Dict[str, Dict[str, List[str]]] = {
    "task": {
        "open": ["in_progress", "cancelled"],
        "in_progress": ["completed", "cancelled", "on_hold"],
        "on_hold": ["in_progress", "cancelled"],
        "completed": [],
        "cancelled": [],
    },
    "maintenance_ticket": {
        "open": ["in_progress", "cancelled"],
        "in_progress": ["completed", "pending_parts", "on_hold", "cancelled"],
        "pending_parts": ["in_progress", "completed", "cancelled"],
        "on_hold": ["in_progress", "cancelled"],
        "completed": ["closed"],
        "closed": [],
        "cancelled": [],
    },
    "leave_request": {
        "pending": ["approved", "rejected", "cancelled"],
        "approved": ["cancelled"],
        "rejected": [],
        "cancelled": [],
    },
    "job_posting": {
        "draft": ["open", "cancelled"],
        "open": ["filled", "closed", "on_hold", "cancelled"],
        "on_hold": ["open", "cancelled"],
        "filled": ["closed"],
        "closed": [],
        "cancelled": [],
    },
}


def _table(entity_type: str) -> Dict[str, List[str]]:
    try:
        return STATUS_TRANSITIONS[entity_type]
    except KeyError:
        raise ValueError(f"Unknown entity type: {entity_type}")


def is_valid_transition(entity_type: str, from_status: str, to_status: str) -> bool:
    valid_next = _table(entity_type).get(from_status)
    if valid_next is None:
        logger.warning(f'Unknown status "{from_status}" for entity type "{entity_type}"')
        return False
    return to_status in valid_next


def get_valid_next_statuses(entity_type: str, current_status: str) -> List[str]:
    return list(_table(entity_type).get(current_status, []))


def validate_transition(entity_type: str, from_status: str, to_status: str) -> None:
    """Raise InvalidTransitionError when the change is not allowed."""
    if not is_valid_transition(entity_type, from_status, to_status):
        raise InvalidTransitionError(
            entity_type, from_status, to_status, get_valid_next_statuses(entity_type, from_status)
        )


def is_terminal_status(entity_type: str, status: str) -> bool:
    valid_next = _table(entity_type).get(status)
    return valid_next is not None and len(valid_next) == 0


def transition_error_message(entity_type: str, from_status: str, to_status: str) -> str:
    if is_terminal_status(entity_type, from_status):
        return f'Cannot change status from "{from_status}" - this is a final state.'

    valid_options = get_valid_next_statuses(entity_type, from_status)
    entity_name = entity_type.replace("_", " ")
    return (
        f'Cannot transition {entity_name} from "{from_status}" to "{to_status}". '
        f'Valid options: {", ".join(valid_options)}'
    )


def can_cancel(entity_type: str, current_status: str) -> bool:
    return "cancelled" in get_valid_next_statuses(entity_type, current_status)


def can_complete(entity_type: str, current_status: str) -> bool:
    return "completed" in get_valid_next_statuses(entity_type, current_status)


def can_put_on_hold(entity_type: str, current_status: str) -> bool:
    return "on_hold" in get_valid_next_statuses(entity_type, current_status)


def can_reopen(entity_type: str, current_status: str) -> bool:
    valid_next = get_valid_next_statuses(entity_type, current_status)
    return "open" in valid_next or "in_progress" in valid_next
