from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from intranet.database import Base


class Organization(Base):
    """A tenant: one hotel group with its properties and staff."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    users = relationship("User", back_populates="organization")
    properties = relationship("Property", back_populates="organization")
    departments = relationship("Department", back_populates="organization")

    def __repr__(self):
        return f"<Organization {self.slug}>"
