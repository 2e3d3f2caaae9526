from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, JSON
from datetime import datetime
import enum

from fra_patta.core.database import Base
from fra_patta.core.types import id_column, user_reference


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class AssignmentStatus(str, enum.Enum):
    """Assignment lifecycle states. OVERDUE is derived from the deadline."""
    ACTIVE = "active"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class AssignmentPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Assignment(Base):
    """Field-verification work given by the ministry to an NGO"""
    __tablename__ = "assignments"

    id = id_column()
    assigned_to = user_reference(cascade=True, index=True)
    assigned_by = user_reference()

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Target area
    area_district = Column(String(100), nullable=False, index=True)
    area_villages = Column(JSON, nullable=False, default=list)
    area_coordinates = Column(JSON, nullable=True)

    instructions = Column(Text, nullable=False)
    objectives = Column(JSON, nullable=False, default=list)
    expected_deliverables = Column(JSON, nullable=False, default=list)

    deadline = Column(DateTime, nullable=False, index=True)  # naive UTC
    priority = Column(
        SQLEnum(AssignmentPriority, values_callable=_enum_values),
        default=AssignmentPriority.MEDIUM,
        nullable=False,
    )
    status = Column(
        SQLEnum(AssignmentStatus, values_callable=_enum_values),
        default=AssignmentStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    progress = Column(Integer, default=0, nullable=False)

    # Set together with status=completed
    report = Column(JSON, nullable=True)
    completion_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    feedback = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def area(self) -> dict:
        return {
            "district": self.area_district,
            "villages": self.area_villages or [],
            "coordinates": self.area_coordinates,
        }

    def __repr__(self):
        return f"<Assignment {self.title} [{self.status.value if self.status else None}]>"
