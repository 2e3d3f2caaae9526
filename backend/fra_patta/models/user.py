from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Text
from datetime import datetime
import enum

from fra_patta.core.database import Base
from fra_patta.core.types import id_column


class UserRole(str, enum.Enum):
    """Actor roles. Closed set: every role check covers both members."""
    MINISTRY = "ministry"
    NGO = "ngo"


class User(Base):
    """Ministry official or NGO account"""
    __tablename__ = "users"

    id = id_column()
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    role = Column(SQLEnum(UserRole), nullable=False, index=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Profile fields
    name = Column(String(255), nullable=False)
    organization = Column(String(255), nullable=True)
    district = Column(String(100), nullable=True, index=True)
    area_of_operation = Column(Text, nullable=True)
    contact_number = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    PROFILE_FIELDS = (
        "name", "organization", "district",
        "area_of_operation", "contact_number", "address",
    )

    @property
    def profile(self) -> dict:
        return {field: getattr(self, field) for field in self.PROFILE_FIELDS}

    @property
    def is_ministry(self) -> bool:
        return self.role == UserRole.MINISTRY

    def __repr__(self):
        return f"<User {self.email} ({self.role.value if self.role else None})>"
