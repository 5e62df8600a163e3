"""
User (staff profile) model with role and assignment context.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from intranet.database import Base
from intranet.core.security import encrypt_data, decrypt_data


class AppRole(str, enum.Enum):
    """
    System roles, most to least authority:
    - REGIONAL_ADMIN: Whole hotel group
    - REGIONAL_HR: HR across all properties
    - PROPERTY_MANAGER: General manager of assigned properties
    - PROPERTY_HR: HR within assigned properties
    - DEPARTMENT_HEAD: Head of assigned departments
    - STAFF: Self-service access
    """
    REGIONAL_ADMIN = "regional_admin"
    REGIONAL_HR = "regional_hr"
    PROPERTY_MANAGER = "property_manager"
    PROPERTY_HR = "property_hr"
    DEPARTMENT_HEAD = "department_head"
    STAFF = "staff"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=False)

    role = Column(Enum(AppRole), default=AppRole.STAFF, nullable=False)
    job_title = Column(String, nullable=True)
    # Fernet ciphertext; use the ``phone`` property
    phone_encrypted = Column("phone", String, nullable=True)
    avatar_url = Column(String, nullable=True)

    reporting_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    # Relationships
    organization = relationship("Organization", back_populates="users")
    manager = relationship("User", remote_side=[id], back_populates="direct_reports")
    direct_reports = relationship("User", back_populates="manager")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    property_assignments = relationship(
        "UserProperty", back_populates="user", order_by="UserProperty.id", cascade="all, delete-orphan"
    )
    department_assignments = relationship(
        "UserDepartment", back_populates="user", order_by="UserDepartment.id", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def phone(self):
        return decrypt_data(self.phone_encrypted)

    @phone.setter
    def phone(self, value):
        self.phone_encrypted = encrypt_data(value)

    @property
    def property_ids(self):
        return [a.property_id for a in self.property_assignments]

    @property
    def department_ids(self):
        return [a.department_id for a in self.department_assignments]

    @property
    def primary_property_id(self):
        """The first assigned property, if any."""
        ids = self.property_ids
        return ids[0] if ids else None

    @property
    def primary_department_id(self):
        ids = self.department_ids
        return ids[0] if ids else None

    @property
    def is_regional(self) -> bool:
        return self.role in (AppRole.REGIONAL_ADMIN, AppRole.REGIONAL_HR)

    @property
    def is_hr(self) -> bool:
        return self.role in (AppRole.REGIONAL_ADMIN, AppRole.REGIONAL_HR, AppRole.PROPERTY_HR)


class UserProperty(Base):
    __tablename__ = "user_properties"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="property_assignments")
    property = relationship("Property")


class UserDepartment(Base):
    __tablename__ = "user_departments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="department_assignments")
    department = relationship("Department")


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    refresh_token = Column(String, unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_revoked = Column(Boolean, default=False, nullable=False)

    # Session metadata
    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)

    user = relationship("User", back_populates="sessions")
