from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class PolicyResponse(BaseModel):
    """Policy metadata. The storage path is never exposed."""
    id: str
    policy_number: str
    name: str
    description: Optional[str] = None
    category: str
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    is_active: bool
    download_count: int
    view_count: int
    tags: List[str] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PolicyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class PolicyStatsResponse(BaseModel):
    total: int
    category_stats: List[Dict[str, Any]]
    monthly_stats: List[Dict[str, Any]]
    most_downloaded: List[Dict[str, Any]]
