from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

from fra_patta.models.user import UserRole


class UserLogin(BaseModel):
    email: EmailStr
    password: str
    role: Optional[UserRole] = None


class ProfileResponse(BaseModel):
    name: str
    organization: Optional[str] = None
    district: Optional[str] = None
    area_of_operation: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    is_approved: bool
    is_active: bool
    profile: ProfileResponse
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
