from fra_patta.schemas.auth import UserLogin, UserResponse, LoginResponse, ProfileResponse
from fra_patta.schemas.ngo import NGORegister, NGOProfileUpdate, NGORejectRequest, NGOSummary
from fra_patta.schemas.patta import (
    Coordinates,
    PattaResponse,
    PattaManualCreate,
    PattaUpdate,
    PattaMapPoint,
)
from fra_patta.schemas.assignment import (
    AssignmentArea,
    AssignmentCreate,
    AssignmentStatusUpdate,
    AssignmentFeedback,
    AssignmentResponse,
)
from fra_patta.schemas.policy import PolicyResponse, PolicyUpdate

__all__ = [
    "UserLogin",
    "UserResponse",
    "LoginResponse",
    "ProfileResponse",
    "NGORegister",
    "NGOProfileUpdate",
    "NGORejectRequest",
    "NGOSummary",
    "Coordinates",
    "PattaResponse",
    "PattaManualCreate",
    "PattaUpdate",
    "PattaMapPoint",
    "AssignmentArea",
    "AssignmentCreate",
    "AssignmentStatusUpdate",
    "AssignmentFeedback",
    "AssignmentResponse",
    "PolicyResponse",
    "PolicyUpdate",
]
