# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    organization, user, hotel_property, department, job_title,
    leave_request, hr_request, notification, audit_log, pii_access_log,
    task, maintenance_ticket,
)

# Explicit class exports for cleaner imports
from .organization import Organization
from .user import AppRole, User, UserSession
from .hotel_property import Property
from .department import Department
from .notification import Notification

__all__ = [
    "AppRole",
    "User",
    "UserSession",
    "Organization",
    "Property",
    "Department",
    "Notification",
]
