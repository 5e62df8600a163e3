"""
Role-based permission matrix.

Roles are ordered by authority (level 1 = most senior). Resources mirror the
intranet's functional areas; ``hr`` covers HR requests and leave approval.
"""
from typing import Dict, FrozenSet, List, Tuple

from intranet.models.user import AppRole

ROLE_LEVELS: Dict[AppRole, int] = {
    AppRole.REGIONAL_ADMIN: 1,
    AppRole.REGIONAL_HR: 2,
    AppRole.PROPERTY_MANAGER: 3,
    AppRole.PROPERTY_HR: 4,
    AppRole.DEPARTMENT_HEAD: 5,
    AppRole.STAFF: 6,
}

ROLE_LABELS: Dict[AppRole, str] = {
    AppRole.REGIONAL_ADMIN: "Regional Admin",
    AppRole.REGIONAL_HR: "Regional HR",
    AppRole.PROPERTY_MANAGER: "Property Manager",
    AppRole.PROPERTY_HR: "Property HR",
    AppRole.DEPARTMENT_HEAD: "Department Head",
    AppRole.STAFF: "Staff",
}

EXECUTIVE_ROLES: FrozenSet[AppRole] = frozenset({AppRole.REGIONAL_ADMIN, AppRole.REGIONAL_HR})
PROPERTY_ROLES: FrozenSet[AppRole] = frozenset({AppRole.PROPERTY_MANAGER, AppRole.PROPERTY_HR})
HR_ROLES: FrozenSet[AppRole] = frozenset({AppRole.REGIONAL_ADMIN, AppRole.REGIONAL_HR, AppRole.PROPERTY_HR})

WILDCARD = "*"

# (resource, actions) pairs per role
ROLE_PERMISSIONS: Dict[AppRole, List[Tuple[str, Tuple[str, ...]]]] = {
    AppRole.STAFF: [
        ("directory", ("read",)),
        ("profile", ("read", "update")),
        ("hr", ("read", "create")),
        ("leave", ("read", "create")),
        ("notifications", ("read", "update")),
        ("tasks", ("read", "create", "update")),
        ("maintenance", ("read", "create")),
    ],
    AppRole.DEPARTMENT_HEAD: [
        ("directory", ("read",)),
        ("profile", ("read", "update")),
        ("hr", ("read", "create", "approve")),
        ("leave", ("read", "create", "approve")),
        ("staff", ("read",)),
        ("notifications", ("read", "update")),
        ("team", ("read", "manage")),
        ("tasks", ("read", "create", "update", "manage")),
        ("maintenance", ("read", "create", "update", "manage")),
    ],
    AppRole.PROPERTY_HR: [
        ("directory", ("read",)),
        ("profile", ("read", "update")),
        ("hr", ("create", "read", "update", "delete", "approve")),
        ("leave", ("read", "create", "update", "approve")),
        ("staff", ("read", "create", "update", "delete")),
        ("departments", ("read",)),
        ("job_titles", ("read",)),
        ("reports", ("read",)),
        ("notifications", ("read", "update")),
        ("tasks", ("read", "create", "update")),
        ("maintenance", ("read", "create")),
    ],
    AppRole.PROPERTY_MANAGER: [
        ("directory", ("read",)),
        ("profile", ("read", "update")),
        ("hr", ("read", "create", "approve")),
        ("leave", ("read", "create", "approve")),
        ("staff", ("read",)),
        ("reports", ("read", "create")),
        ("departments", ("read", "manage")),
        ("properties", ("read",)),
        ("job_titles", ("read",)),
        ("notifications", ("read", "update")),
        ("tasks", ("read", "create", "update", "delete", "manage")),
        ("maintenance", ("read", "create", "update", "manage")),
    ],
    AppRole.REGIONAL_HR: [
        ("directory", ("read",)),
        ("profile", ("read", "update")),
        ("hr", (WILDCARD,)),
        ("leave", (WILDCARD,)),
        ("staff", (WILDCARD,)),
        ("reports", ("read", "create")),
        ("departments", ("read", "manage")),
        ("properties", ("read",)),
        ("job_titles", ("read", "manage")),
        ("pii_audit", ("read",)),
        ("notifications", ("read", "update")),
        ("tasks", ("read", "create", "update")),
        ("maintenance", ("read", "create")),
    ],
    AppRole.REGIONAL_ADMIN: [
        (WILDCARD, (WILDCARD,)),
    ],
}


def has_permission(role: AppRole, resource: str, action: str) -> bool:
    """Check whether ``role`` may perform ``action`` on ``resource``."""
    if role == AppRole.REGIONAL_ADMIN:
        return True

    for granted_resource, actions in ROLE_PERMISSIONS.get(role, []):
        if granted_resource == resource or granted_resource == WILDCARD:
            return action in actions or WILDCARD in actions
    return False


def outranks(role: AppRole, other: AppRole) -> bool:
    """True when ``role`` sits strictly above ``other`` in the hierarchy."""
    return ROLE_LEVELS[role] < ROLE_LEVELS[other]


def role_label(role: AppRole) -> str:
    return ROLE_LABELS[role]


def can_manage_user(actor, target) -> bool:
    """
    Whether ``actor`` may change where ``target`` sits: manager, assignments
    or job title. Nobody edits someone who outranks them; department heads
    are limited to their own departments and property roles to their own
    properties.
    """
    if actor.role == AppRole.REGIONAL_ADMIN:
        return True
    if outranks(target.role, actor.role):
        return False
    if actor.role == AppRole.DEPARTMENT_HEAD:
        return bool(set(actor.department_ids) & set(target.department_ids))
    if actor.role in PROPERTY_ROLES:
        return bool(set(actor.property_ids) & set(target.property_ids))
    return actor.role == AppRole.REGIONAL_HR
