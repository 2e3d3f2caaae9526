from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict


class NGORegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=255)
    organization: str = Field(..., min_length=2, max_length=255)
    district: str = Field(..., min_length=2, max_length=100)
    area_of_operation: Optional[str] = None
    contact_number: Optional[str] = Field(None, pattern=r'^\+?\d{10,15}$')
    address: Optional[str] = None


class NGOProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    organization: Optional[str] = Field(None, min_length=2, max_length=255)
    district: Optional[str] = Field(None, min_length=2, max_length=100)
    area_of_operation: Optional[str] = None
    contact_number: Optional[str] = Field(None, pattern=r'^\+?\d{10,15}$')
    address: Optional[str] = None


class NGORejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class NGOSummary(BaseModel):
    """Compact NGO view embedded in assignment responses"""
    id: str
    email: str
    name: str
    organization: Optional[str] = None
    district: Optional[str] = None

    class Config:
        from_attributes = True


class NGOStatsResponse(BaseModel):
    total: int
    approved: int
    pending: int
    district_stats: List[Dict[str, object]]
    recent_registrations: int
