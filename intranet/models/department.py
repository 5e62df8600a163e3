from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from intranet.database import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    # Null for group-wide departments
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=True, index=True)

    name = Column(String, nullable=False, index=True)
    code = Column(String, nullable=True, index=True)  # Short code like "FO", "HK", "FB"
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    organization = relationship("Organization", back_populates="departments")
    property = relationship("Property", back_populates="departments")

    def __repr__(self):
        return f"<Department {self.code}: {self.name}>"
