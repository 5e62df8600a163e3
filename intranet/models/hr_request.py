"""
HR request workflow models: a generic request with steps, comments and an
event trail, plus the promotion and transfer records it governs.
"""
from sqlalchemy import Column, Integer, String, Date, ForeignKey, DateTime, Text, JSON, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from intranet.database import Base
from intranet.models.user import AppRole
import enum


class RequestEntityType(str, enum.Enum):
    PROMOTION = "promotion"
    TRANSFER = "transfer"


class RequestStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_SUPERVISOR_APPROVAL = "pending_supervisor_approval"
    PENDING_HR_REVIEW = "pending_hr_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED_FOR_CORRECTION = "returned_for_correction"
    CLOSED = "closed"
    CANCELLED = "cancelled"


PENDING_REQUEST_STATUSES = (
    RequestStatus.PENDING_SUPERVISOR_APPROVAL.value,
    RequestStatus.PENDING_HR_REVIEW.value,
)

# The requester may still edit or cancel a request handed back to them
EDITABLE_REQUEST_STATUSES = PENDING_REQUEST_STATUSES + (RequestStatus.RETURNED_FOR_CORRECTION.value,)


class StepStatus(str, enum.Enum):
    WAITING = "waiting"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    SKIPPED = "skipped"


class ChangeStatus(str, enum.Enum):
    """Lifecycle of a promotion or transfer record."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Request(Base):
    __tablename__ = "hr_requests"
    __table_args__ = (UniqueConstraint("organization_id", "request_no", name="uq_hr_request_org_no"),)

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    request_no = Column(Integer, nullable=False)
    entity_type = Column(String, nullable=False, index=True)
    entity_id = Column(Integer, nullable=False)

    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    current_assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    status = Column(String, default=RequestStatus.DRAFT.value, nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    details = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    steps = relationship("RequestStep", back_populates="request", order_by="RequestStep.step_order",
                         cascade="all, delete-orphan")
    comments = relationship("RequestComment", back_populates="request", order_by="RequestComment.id",
                            cascade="all, delete-orphan")
    events = relationship("RequestEvent", back_populates="request", order_by="RequestEvent.id",
                          cascade="all, delete-orphan")


class RequestStep(Base):
    __tablename__ = "hr_request_steps"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("hr_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    approver_role = Column(Enum(AppRole), nullable=True)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    status = Column(String, default=StepStatus.WAITING.value, nullable=False)
    acted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    acted_at = Column(DateTime(timezone=True), nullable=True)
    comment = Column(Text, nullable=True)

    request = relationship("Request", back_populates="steps")


class RequestComment(Base):
    __tablename__ = "hr_request_comments"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("hr_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)
    visibility = Column(String(20), default="all", nullable=False)  # all, internal
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    request = relationship("Request", back_populates="comments")


class RequestEvent(Base):
    __tablename__ = "hr_request_events"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("hr_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    event_type = Column(String, nullable=False)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    request = relationship("Request", back_populates="events")


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    old_role = Column(Enum(AppRole), nullable=True)
    new_role = Column(Enum(AppRole), nullable=True)
    old_job_title = Column(String, nullable=True)
    new_job_title = Column(String, nullable=True)
    old_department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    new_department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)

    effective_date = Column(Date, nullable=False)
    status = Column(String, default=ChangeStatus.PENDING.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id])


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    from_property_id = Column(Integer, ForeignKey("properties.id"), nullable=True)
    to_property_id = Column(Integer, ForeignKey("properties.id"), nullable=False)
    from_department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    to_department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)

    effective_date = Column(Date, nullable=False)
    status = Column(String, default=ChangeStatus.PENDING.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id])
