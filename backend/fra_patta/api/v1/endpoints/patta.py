"""
Patta endpoints

Upload (single and batch), manual entry, listing, statistics, map data,
update, verification and deletion of FRA land-title records.
"""

import asyncio
from datetime import timedelta, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fra_patta.core.config import settings
from fra_patta.core.database import get_db
from fra_patta.core.exceptions import PattaNotFoundError, ValidationError
from fra_patta.core.logging_config import logger
from fra_patta.models.patta import Patta
from fra_patta.models.user import User
from fra_patta.modules.auth.dependencies import require_any_role, require_ministry
from fra_patta.schemas.patta import (
    BatchUploadResponse,
    PattaManualCreate,
    PattaMapPoint,
    PattaResponse,
    PattaStatsResponse,
    PattaUpdate,
    PattaUploadResponse,
)
from fra_patta.services.patta_extractor import (
    calculate_confidence,
    extract_patta_data,
    validate_approval_date,
    validate_coordinates,
    validate_fields,
    validate_land_area,
    validate_location,
    validate_name,
)
from fra_patta.services.storage_service import PATTA_CATEGORY, StoredFile, storage_service
from fra_patta.utils.pagination import paginate
from fra_patta.utils.stats import count_rows, monthly_counts


router = APIRouter()


async def get_patta_or_404(db: AsyncSession, patta_id: str) -> Patta:
    patta = (await db.execute(select(Patta).where(Patta.id == patta_id))).scalar_one_or_none()
    if not patta:
        raise PattaNotFoundError(patta_id)
    return patta


async def run_extraction(file_path: str) -> Dict[str, Any]:
    """pdfplumber and python-docx are blocking; keep them off the event loop"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_patta_data, file_path)


def build_patta(record: Dict[str, Any], uploaded_by: Optional[str],
                stored: Optional[StoredFile] = None) -> Patta:
    """Merge a validated record into a new Patta row"""
    coordinates = record.get("coordinates") or {}
    metadata = record.get("extraction_metadata") or {}
    return Patta(
        claimant_name=record["claimant_name"],
        district=record["district"],
        village=record["village"],
        state=record["state"],
        approval_date=record.get("approval_date"),
        land_area=record.get("land_area"),
        latitude=coordinates.get("latitude"),
        longitude=coordinates.get("longitude"),
        extracted_data=jsonable_encoder(record),
        confidence=metadata.get("confidence", calculate_confidence(record)),
        file_path=stored.path if stored else None,
        file_name=stored.file_name if stored else None,
        uploaded_by=uploaded_by,
    )


# ============================================
# Upload
# ============================================

@router.post("/upload", response_model=PattaUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_patta(
    patta_file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Store a patta document, extract its fields and create the record"""
    stored = await storage_service.save_upload(
        patta_file, PATTA_CATEGORY, "patta", settings.DOCUMENT_EXTENSIONS
    )
    uploader_id = str(current_user.id)
    try:
        extracted = await run_extraction(stored.path)
        patta = build_patta(extracted, uploader_id, stored)
        db.add(patta)
        await db.commit()
    except Exception:
        await db.rollback()
        storage_service.delete_file(stored.path)
        raise

    logger.info(
        f"[Patta] Uploaded {stored.file_name} as {patta.id} (confidence {patta.confidence}%)",
        extra={"event_type": "patta_uploaded", "patta_id": str(patta.id)}
    )

    return {
        "message": "Patta uploaded and processed successfully",
        "patta_id": str(patta.id),
        "extracted_data": patta.extracted_data,
        "file_name": stored.file_name,
    }


@router.post("/upload-multiple", response_model=BatchUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_multiple_pattas(
    patta_files: List[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """
    Batch upload. Every file is saved, extracted and committed on its own;
    a failure produces an error entry for that file and the loop moves on.
    """
    if len(patta_files) > settings.MAX_BATCH_FILES:
        raise ValidationError(
            f"At most {settings.MAX_BATCH_FILES} files can be uploaded at once",
            field="patta_files"
        )

    # A rollback expires current_user, so read the id up front
    uploader_id = str(current_user.id)
    results: List[Dict[str, Any]] = []

    for upload in patta_files:
        stored: Optional[StoredFile] = None
        try:
            stored = await storage_service.save_upload(
                upload, PATTA_CATEGORY, "patta", settings.DOCUMENT_EXTENSIONS
            )
            extracted = await run_extraction(stored.path)

            patta = build_patta(extracted, uploader_id, stored)
            db.add(patta)
            await db.commit()

            results.append({
                "file_name": upload.filename,
                "status": "success",
                "patta_id": str(patta.id),
                "confidence": patta.confidence,
            })
        except Exception as e:
            await db.rollback()
            if stored is not None:
                storage_service.delete_file(stored.path)
            logger.log_error_with_context(e, context="batch patta upload", file_name=upload.filename)
            results.append({
                "file_name": upload.filename,
                "status": "error",
                "error": getattr(e, "message", None) or str(e),
            })

    succeeded = sum(1 for r in results if r["status"] == "success")
    return {
        "message": f"Processed {len(results)} files: {succeeded} succeeded, {len(results) - succeeded} failed",
        "results": results,
    }


@router.post("/manual-add", response_model=PattaResponse, status_code=status.HTTP_201_CREATED)
async def add_patta_manually(
    payload: PattaManualCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Create a record from hand-entered values"""
    record = validate_fields(payload.model_dump())
    record["source"] = "manual"

    patta = build_patta(record, str(current_user.id))
    db.add(patta)
    await db.commit()
    await db.refresh(patta)

    logger.info(f"[Patta] Manually added {patta.id}", extra={"event_type": "patta_manual_add"})
    return patta


# ============================================
# Queries
# ============================================

@router.get("")
async def list_pattas(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    district: Optional[str] = None,
    state: Optional[str] = None,
    verified: Optional[bool] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    """Paginated patta list with filters"""
    query = select(Patta)

    if district:
        query = query.where(Patta.district.ilike(f"%{district}%"))
    if state:
        query = query.where(Patta.state.ilike(f"%{state}%"))
    if verified is not None:
        query = query.where(Patta.is_verified == verified)
    if search:
        term = f"%{search}%"
        query = query.where(or_(
            Patta.claimant_name.ilike(term),
            Patta.village.ilike(term),
            Patta.district.ilike(term),
        ))

    query = query.order_by(Patta.created_at.desc())
    page_data = await paginate(db, query, page, page_size)
    page_data["items"] = [PattaResponse.model_validate(p) for p in page_data["items"]]
    return page_data


@router.get("/stats", response_model=PattaStatsResponse)
async def patta_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    total = await count_rows(db, Patta)
    verified = await count_rows(db, Patta, Patta.is_verified.is_(True))

    district_rows = await db.execute(
        select(
            Patta.district,
            func.count(Patta.id),
            func.sum(case((Patta.is_verified.is_(True), 1), else_=0)),
        )
        .group_by(Patta.district)
        .order_by(func.count(Patta.id).desc())
        .limit(10)
    )
    district_stats = [
        {"district": district, "count": count, "verified": int(verified_count or 0)}
        for district, count, verified_count in district_rows.all()
    ]

    now = datetime.utcnow()
    created = await db.execute(
        select(Patta.created_at).where(Patta.created_at >= now - timedelta(days=366))
    )

    return {
        "total": total,
        "verified": verified,
        "pending": total - verified,
        "district_stats": district_stats,
        "monthly_stats": monthly_counts(created.scalars().all(), now),
    }


@router.get("/map-data", response_model=List[PattaMapPoint])
async def patta_map_data(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    """Records with coordinates, shaped for map markers"""
    result = await db.execute(
        select(Patta).where(Patta.latitude.isnot(None), Patta.longitude.isnot(None))
    )
    return [
        {
            "id": str(p.id),
            "name": p.claimant_name,
            "district": p.district,
            "village": p.village,
            "lat": p.latitude,
            "lng": p.longitude,
            "verified": p.is_verified,
            "approval_date": p.approval_date,
        }
        for p in result.scalars().all()
    ]


@router.get("/{patta_id}", response_model=PattaResponse)
async def get_patta(
    patta_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    return await get_patta_or_404(db, patta_id)


# ============================================
# Changes
# ============================================

TEXT_VALIDATORS = {
    "claimant_name": validate_name,
    "district": validate_location,
    "village": validate_location,
    "state": validate_location,
}


def current_fields(patta: Patta) -> Dict[str, Any]:
    return {
        "claimant_name": patta.claimant_name,
        "district": patta.district,
        "village": patta.village,
        "state": patta.state,
        "land_area": patta.land_area,
        "approval_date": patta.approval_date,
    }


@router.put("/{patta_id}", response_model=PattaResponse)
async def update_patta(
    patta_id: str,
    payload: PattaUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """
    Update fields. Each value must pass the same thresholds as extracted
    data; a rejected value fails the request instead of storing a sentinel.

    confidence is rescored from the corrected record. extracted_data keeps
    what the extractor originally produced.
    """
    patta = await get_patta_or_404(db, patta_id)
    changes = payload.model_dump(exclude_unset=True)

    for field, validator in TEXT_VALIDATORS.items():
        if field not in changes:
            continue
        accepted = validator(changes[field])
        if accepted is None:
            raise ValidationError(f"Invalid value for {field}", field=field)
        setattr(patta, field, accepted)

    if "land_area" in changes:
        if changes["land_area"] is None:
            patta.land_area = None
        else:
            land_area = validate_land_area(changes["land_area"])
            if land_area is None:
                raise ValidationError("Land area must be a positive number", field="land_area")
            patta.land_area = land_area

    if "approval_date" in changes:
        patta.approval_date = validate_approval_date(changes["approval_date"])

    if "coordinates" in changes:
        if changes["coordinates"] is None:
            patta.latitude = patta.longitude = None
        else:
            coordinates = validate_coordinates(changes["coordinates"])
            if coordinates is None:
                raise ValidationError("Coordinates out of range", field="coordinates")
            patta.latitude = coordinates["latitude"]
            patta.longitude = coordinates["longitude"]

    if changes.get("is_verified") is not None:
        patta.is_verified = changes["is_verified"]

    patta.confidence = calculate_confidence(current_fields(patta))
    patta.updated_at = datetime.utcnow()
    await db.commit()
    logger.info(f"[Patta] Updated {patta_id}: {sorted(changes)}")
    return patta


@router.put("/{patta_id}/verify", response_model=PattaResponse)
async def verify_patta(
    patta_id: str,
    verified: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    patta = await get_patta_or_404(db, patta_id)
    patta.is_verified = verified
    patta.updated_at = datetime.utcnow()
    await db.commit()
    logger.info(f"[Patta] {patta_id} marked {'verified' if verified else 'unverified'}")
    return patta


@router.delete("/{patta_id}")
async def delete_patta(
    patta_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Delete the record and its stored document"""
    patta = await get_patta_or_404(db, patta_id)
    storage_service.delete_file(patta.file_path)
    await db.delete(patta)
    await db.commit()
    logger.info(f"[Patta] Deleted {patta_id}")
    return {"message": "Patta deleted successfully"}
