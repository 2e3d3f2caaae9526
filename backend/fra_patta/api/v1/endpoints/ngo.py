"""
NGO endpoints

Self-registration, ministry approval workflow, NGO dashboard and profile.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fra_patta.api.v1.endpoints.assignment import ngo_assignment_stats, to_response
from fra_patta.core.config import settings
from fra_patta.core.database import get_db
from fra_patta.core.exceptions import AuthorizationError, DuplicateRegistrationError, NGONotFoundError
from fra_patta.core.logging_config import logger
from fra_patta.core.rate_limiter import limiter
from fra_patta.core.security import get_password_hash
from fra_patta.models.assignment import Assignment
from fra_patta.models.user import User, UserRole
from fra_patta.modules.auth.dependencies import require_any_role, require_ministry, require_ngo
from fra_patta.schemas.auth import UserResponse
from fra_patta.schemas.ngo import NGOProfileUpdate, NGORegister, NGORejectRequest, NGOStatsResponse
from fra_patta.services.assignment_lifecycle import refresh_overdue_assignments
from fra_patta.services.email_service import dispatch_notification, email_service
from fra_patta.utils.pagination import paginate
from fra_patta.utils.stats import count_rows


router = APIRouter()


async def get_ngo_or_404(db: AsyncSession, ngo_id: str) -> User:
    ngo = (
        await db.execute(select(User).where(User.id == ngo_id, User.role == UserRole.NGO))
    ).scalar_one_or_none()
    if not ngo:
        raise NGONotFoundError(ngo_id)
    return ngo


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTER_RATE_LIMIT)
async def register_ngo(
    request: Request,
    payload: NGORegister,
    db: AsyncSession = Depends(get_db)
):
    """Public NGO registration. The account stays unusable until approved."""
    existing = (await db.execute(select(User).where(User.email == payload.email))).scalar_one_or_none()
    if existing:
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=payload.email,
            reason="Email already registered"
        )
        raise DuplicateRegistrationError(payload.email)

    ngo = User(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        role=UserRole.NGO,
        is_approved=False,
        is_active=True,
        name=payload.name,
        organization=payload.organization,
        district=payload.district,
        area_of_operation=payload.area_of_operation,
        contact_number=payload.contact_number,
        address=payload.address,
    )
    db.add(ngo)
    await db.commit()
    await db.refresh(ngo)

    logger.log_auth_event(event="register", success=True, user_email=ngo.email, user_role="ngo")
    dispatch_notification(email_service.send_ngo_registration_email(ngo))

    return {
        "message": "Registration submitted. You can log in once the ministry approves your account.",
        "ngo": UserResponse.model_validate(ngo),
    }


@router.get("/list")
async def list_ngos(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    approved: Optional[bool] = None,
    district: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    query = select(User).where(User.role == UserRole.NGO)
    if approved is not None:
        query = query.where(User.is_approved == approved)
    if district:
        query = query.where(User.district.ilike(f"%{district}%"))

    page_data = await paginate(db, query.order_by(User.created_at.desc()), page, page_size)
    page_data["items"] = [UserResponse.model_validate(u) for u in page_data["items"]]
    return page_data


@router.get("/stats", response_model=NGOStatsResponse)
async def ngo_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    is_ngo = User.role == UserRole.NGO
    total = await count_rows(db, User, is_ngo)
    approved = await count_rows(db, User, is_ngo, User.is_approved.is_(True))
    recent = await count_rows(db, User, is_ngo, User.created_at >= datetime.utcnow() - timedelta(days=30))

    rows = await db.execute(
        select(
            User.district,
            func.count(User.id),
            func.sum(case((User.is_approved.is_(True), 1), else_=0)),
        )
        .where(is_ngo)
        .group_by(User.district)
        .order_by(func.count(User.id).desc())
    )

    return {
        "total": total,
        "approved": approved,
        "pending": total - approved,
        "district_stats": [
            {"district": district or "Unknown", "count": count, "approved": int(approved_count or 0)}
            for district, count, approved_count in rows.all()
        ],
        "recent_registrations": recent,
    }


@router.put("/approve/{ngo_id}")
async def approve_ngo(
    ngo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    ngo = await get_ngo_or_404(db, ngo_id)
    ngo.is_approved = True
    await db.commit()

    logger.info(f"[NGO] {ngo.email} approved by {current_user.email}")
    dispatch_notification(email_service.send_ngo_approval_email(ngo))

    return {"message": "NGO approved successfully", "ngo": UserResponse.model_validate(ngo)}


@router.put("/reject/{ngo_id}")
async def reject_ngo(
    ngo_id: str,
    payload: Optional[NGORejectRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Notify the NGO, then remove the account"""
    ngo = await get_ngo_or_404(db, ngo_id)
    reason = payload.reason if payload else None

    dispatch_notification(email_service.send_ngo_rejection_email(ngo, reason))
    await db.delete(ngo)
    await db.commit()

    logger.info(f"[NGO] {ngo.email} rejected by {current_user.email}" + (f": {reason}" if reason else ""))
    return {"message": "NGO rejected and removed"}


@router.get("/dashboard")
async def ngo_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ngo)
):
    """Ten most recent assignments plus status counts"""
    await refresh_overdue_assignments(db)

    ngo_id = str(current_user.id)
    result = await db.execute(
        select(Assignment)
        .where(Assignment.assigned_to == ngo_id)
        .order_by(Assignment.created_at.desc())
        .limit(10)
    )

    return {
        "ngo": UserResponse.model_validate(current_user),
        "recent_assignments": [to_response(a) for a in result.scalars().all()],
        "stats": await ngo_assignment_stats(db, ngo_id),
    }


@router.get("/{ngo_id}", response_model=UserResponse)
async def get_ngo(
    ngo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    return await get_ngo_or_404(db, ngo_id)


@router.put("/{ngo_id}/profile", response_model=UserResponse)
async def update_ngo_profile(
    ngo_id: str,
    payload: NGOProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ngo)
):
    """An NGO may only edit its own profile"""
    if str(current_user.id) != ngo_id:
        raise AuthorizationError("NGOs can only update their own profile")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, value)

    await db.commit()
    return current_user
