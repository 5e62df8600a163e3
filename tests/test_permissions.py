import pytest

from intranet.core.permissions import has_permission, outranks, role_label
from intranet.models.user import AppRole


@pytest.mark.parametrize("role, resource, action, expected", [
    (AppRole.REGIONAL_ADMIN, "anything", "delete", True),
    (AppRole.REGIONAL_HR, "staff", "delete", True),
    (AppRole.REGIONAL_HR, "properties", "manage", False),
    (AppRole.REGIONAL_HR, "pii_audit", "read", True),
    (AppRole.PROPERTY_MANAGER, "departments", "manage", True),
    (AppRole.PROPERTY_MANAGER, "staff", "update", False),
    (AppRole.PROPERTY_HR, "staff", "create", True),
    (AppRole.PROPERTY_HR, "pii_audit", "read", False),
    (AppRole.DEPARTMENT_HEAD, "leave", "approve", True),
    (AppRole.DEPARTMENT_HEAD, "staff", "read", True),
    (AppRole.STAFF, "leave", "create", True),
    (AppRole.STAFF, "leave", "approve", False),
    (AppRole.STAFF, "staff", "read", False),
])
def test_has_permission(role, resource, action, expected):
    assert has_permission(role, resource, action) is expected


def test_outranks():
    assert outranks(AppRole.REGIONAL_ADMIN, AppRole.STAFF)
    assert outranks(AppRole.PROPERTY_MANAGER, AppRole.PROPERTY_HR)
    assert not outranks(AppRole.STAFF, AppRole.DEPARTMENT_HEAD)
    assert not outranks(AppRole.REGIONAL_HR, AppRole.REGIONAL_HR)


def test_role_label():
    assert role_label(AppRole.PROPERTY_HR) == "Property HR"
    assert role_label(AppRole.STAFF) == "Staff"
