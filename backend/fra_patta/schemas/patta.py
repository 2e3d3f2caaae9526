from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class PattaResponse(BaseModel):
    id: str
    claimant_name: str
    district: str
    village: str
    state: str
    approval_date: Optional[date] = None
    land_area: Optional[float] = None
    coordinates: Optional[Coordinates] = None
    extracted_data: Optional[Dict[str, Any]] = None
    confidence: int
    is_verified: bool
    file_name: Optional[str] = None
    uploaded_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PattaManualCreate(BaseModel):
    """
    Hand-entered record. Values go through the same acceptance rules as
    extracted ones, so rejected text fields are stored as sentinels.
    """
    claimant_name: Optional[str] = None
    district: Optional[str] = None
    village: Optional[str] = None
    state: Optional[str] = None
    approval_date: Optional[date] = None
    land_area: Optional[float] = None
    coordinates: Optional[Dict[str, Any]] = None


class PattaUpdate(BaseModel):
    claimant_name: Optional[str] = None
    district: Optional[str] = None
    village: Optional[str] = None
    state: Optional[str] = None
    approval_date: Optional[date] = None
    land_area: Optional[float] = None
    coordinates: Optional[Dict[str, Any]] = None
    is_verified: Optional[bool] = None


class PattaUploadResponse(BaseModel):
    message: str
    patta_id: str
    extracted_data: Dict[str, Any]
    file_name: str


class BatchUploadResult(BaseModel):
    file_name: str
    status: str  # "success" | "error"
    patta_id: Optional[str] = None
    confidence: Optional[int] = None
    error: Optional[str] = None


class BatchUploadResponse(BaseModel):
    message: str
    results: List[BatchUploadResult]


class PattaMapPoint(BaseModel):
    id: str
    name: str
    district: str
    village: str
    lat: float
    lng: float
    verified: bool
    approval_date: Optional[date] = None


class PattaStatsResponse(BaseModel):
    total: int
    verified: int
    pending: int
    district_stats: List[Dict[str, Any]]
    monthly_stats: List[Dict[str, Any]]
