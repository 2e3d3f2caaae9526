from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, JSON
from datetime import datetime

from fra_patta.core.database import Base
from fra_patta.core.types import id_column, user_reference


POLICY_CATEGORIES = [
    "Forest Rights Act",
    "Tribal Welfare",
    "Land Rights",
    "Environmental Guidelines",
    "Implementation Guidelines",
    "Legal Framework",
    "Procedures",
    "Forms and Templates",
    "Circulars",
    "Amendments",
    "General",
]

DEFAULT_POLICY_CATEGORY = "General"


class Policy(Base):
    """Policy document distributed by the ministry"""
    __tablename__ = "policies"

    id = id_column()
    policy_number = Column(String(20), unique=True, index=True, nullable=False)  # POL-<year>-<NNNN>

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), default=DEFAULT_POLICY_CATEGORY, nullable=False, index=True)

    # File details
    file_path = Column(Text, nullable=False)
    file_name = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)  # in bytes
    mime_type = Column(String(100), nullable=True)

    uploaded_by = user_reference()

    # Soft delete
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    download_count = Column(Integer, default=0, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Policy {self.policy_number} {self.name}>"
