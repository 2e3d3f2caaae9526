from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone

from fra_patta.models.assignment import AssignmentStatus, AssignmentPriority
from fra_patta.schemas.ngo import NGOSummary
from fra_patta.schemas.patta import Coordinates


class AssignmentArea(BaseModel):
    district: str = Field(..., min_length=1, max_length=100)
    villages: List[str] = []
    coordinates: Optional[Coordinates] = None


class AssignmentCreate(BaseModel):
    ngo_id: str
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    area: AssignmentArea
    instructions: str = Field(..., min_length=1)
    objectives: List[str] = []
    expected_deliverables: List[str] = []
    deadline: datetime
    priority: AssignmentPriority = AssignmentPriority.MEDIUM

    @field_validator("deadline")
    @classmethod
    def deadline_to_naive_utc(cls, value: datetime) -> datetime:
        """Deadlines are stored as naive UTC"""
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus
    progress: Optional[int] = Field(None, ge=0, le=100)
    completion_notes: Optional[str] = None


class AssignmentFeedback(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=2000)


class VillageVisit(BaseModel):
    name: str
    visit_date: Optional[str] = None
    notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: str
    assigned_to: str
    assigned_by: Optional[str] = None
    title: str
    description: Optional[str] = None
    area: AssignmentArea
    instructions: str
    objectives: List[str] = []
    expected_deliverables: List[str] = []
    deadline: datetime
    priority: AssignmentPriority
    status: AssignmentStatus
    progress: int
    report: Optional[Dict[str, Any]] = None
    completion_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    feedback: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    ngo: Optional[NGOSummary] = None

    class Config:
        from_attributes = True
