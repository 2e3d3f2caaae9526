from sqlalchemy import Column, String, Boolean, DateTime, Date, Float, Integer, Text, JSON
from datetime import datetime

from fra_patta.core.database import Base
from fra_patta.core.types import id_column, user_reference


class Patta(Base):
    """
    Forest Rights Act land-title record.

    claimant_name, district, village and state are never empty: a failed
    extraction stores the sentinel text instead.
    """
    __tablename__ = "pattas"

    id = id_column()

    claimant_name = Column(String(100), nullable=False, index=True)
    district = Column(String(50), nullable=False, index=True)
    village = Column(String(50), nullable=False, index=True)
    state = Column(String(50), nullable=False, index=True)

    approval_date = Column(Date, nullable=True)
    land_area = Column(Float, nullable=True)  # hectares
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Raw extractor output, JSON-safe
    extracted_data = Column(JSON, nullable=True)
    confidence = Column(Integer, default=0, nullable=False)

    is_verified = Column(Boolean, default=False, nullable=False, index=True)

    # Manually added records carry no file
    file_path = Column(Text, nullable=True)
    file_name = Column(String(500), nullable=True)

    uploaded_by = user_reference()

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}

    def __repr__(self):
        return f"<Patta {self.claimant_name} ({self.district})>"
