from sqlalchemy import Column, Integer, String, Date, ForeignKey, DateTime, Text, Boolean, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from intranet.database import Base
import enum


class MaintenanceStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_PARTS = "pending_parts"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class MaintenancePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class MaintenanceCategory(str, enum.Enum):
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    HVAC = "hvac"
    APPLIANCE = "appliance"
    STRUCTURAL = "structural"
    COSMETIC = "cosmetic"
    SAFETY = "safety"
    OTHER = "other"


class MaintenanceTicket(Base):
    """A reported fault at a property, worked by an assignee until completed and closed."""
    __tablename__ = "maintenance_tickets"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    priority = Column(String, default=MaintenancePriority.MEDIUM.value, nullable=False, index=True)
    status = Column(String, default=MaintenanceStatus.OPEN.value, nullable=False, index=True)

    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    room_number = Column(String, nullable=True)
    reported_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    estimated_completion_date = Column(Date, nullable=True)
    actual_completion_date = Column(Date, nullable=True)
    parts_needed = Column(Text, nullable=True)
    labor_hours = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    material_cost = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    reporter = relationship("User", foreign_keys=[reported_by_id])
    assignee = relationship("User", foreign_keys=[assigned_to_id])
    comments = relationship("MaintenanceComment", back_populates="ticket", order_by="MaintenanceComment.id",
                            cascade="all, delete-orphan")


class MaintenanceComment(Base):
    __tablename__ = "maintenance_comments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("maintenance_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=False)
    # Hidden from the reporter and other non-maintenance staff
    internal_only = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    ticket = relationship("MaintenanceTicket", back_populates="comments")
