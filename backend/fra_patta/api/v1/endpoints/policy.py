"""
Policy endpoints

Ministry-published policy documents. Every role can browse, view and
download them; only the ministry uploads, edits and retires them.
"""

import os
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fra_patta.core.config import settings
from fra_patta.core.database import get_db
from fra_patta.core.exceptions import PolicyFileMissingError, PolicyNotFoundError, ValidationError
from fra_patta.core.logging_config import logger
from fra_patta.models.policy import DEFAULT_POLICY_CATEGORY, POLICY_CATEGORIES, Policy
from fra_patta.models.user import User
from fra_patta.modules.auth.dependencies import require_any_role, require_ministry
from fra_patta.schemas.policy import PolicyResponse, PolicyStatsResponse, PolicyUpdate
from fra_patta.services.storage_service import POLICY_CATEGORY, storage_service
from fra_patta.utils.pagination import paginate
from fra_patta.utils.stats import count_rows, grouped_counts, monthly_counts


router = APIRouter()


def check_category(category: str) -> str:
    if category not in POLICY_CATEGORIES:
        raise ValidationError(f"Invalid category '{category}'", field="category")
    return category


def parse_tags(raw: Optional[str]) -> List[str]:
    """Comma-separated tags from a form field"""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


async def next_policy_number(db: AsyncSession, year: int) -> str:
    """POL-<year>-<NNNN>, numbered per year"""
    prefix = f"POL-{year}-"
    issued = await count_rows(db, Policy, Policy.policy_number.like(f"{prefix}%"))
    return f"{prefix}{issued + 1:04d}"


async def get_policy_or_404(db: AsyncSession, policy_id: str) -> Policy:
    policy = (
        await db.execute(select(Policy).where(Policy.id == policy_id, Policy.is_active.is_(True)))
    ).scalar_one_or_none()
    if not policy:
        raise PolicyNotFoundError(policy_id)
    return policy


def serve_policy_file(policy: Policy, disposition: str) -> FileResponse:
    if not policy.file_path or not os.path.exists(policy.file_path):
        raise PolicyFileMissingError(str(policy.id))
    return FileResponse(
        policy.file_path,
        media_type=policy.mime_type or "application/octet-stream",
        filename=policy.file_name,
        content_disposition_type=disposition,
    )


@router.post("/upload", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def upload_policy(
    policy_file: UploadFile = File(...),
    name: str = Form(...),
    category: str = Form(DEFAULT_POLICY_CATEGORY),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    if not name.strip():
        raise ValidationError("Policy name is required", field="name")
    check_category(category)

    stored = await storage_service.save_upload(
        policy_file, POLICY_CATEGORY, "policy", settings.DOCUMENT_EXTENSIONS
    )

    policy = Policy(
        policy_number=await next_policy_number(db, datetime.utcnow().year),
        name=name.strip(),
        description=description,
        category=category,
        file_path=stored.path,
        file_name=stored.file_name,
        file_size=stored.size,
        mime_type=stored.mime_type,
        uploaded_by=str(current_user.id),
        tags=parse_tags(tags),
    )
    db.add(policy)
    await db.commit()
    await db.refresh(policy)

    logger.info(f"[Policy] Uploaded {policy.policy_number}: {policy.name}")
    return policy


@router.get("/list")
async def list_policies(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    query = select(Policy).where(Policy.is_active.is_(True))
    if category:
        query = query.where(Policy.category == category)
    if search:
        term = f"%{search}%"
        query = query.where(or_(
            Policy.name.ilike(term),
            Policy.description.ilike(term),
            Policy.policy_number.ilike(term),
        ))

    page_data = await paginate(db, query.order_by(Policy.created_at.desc()), page, page_size)
    page_data["items"] = [PolicyResponse.model_validate(p) for p in page_data["items"]]
    return page_data


@router.get("/categories")
async def policy_categories(current_user: User = Depends(require_any_role)):
    return {"categories": POLICY_CATEGORIES}


@router.get("/stats", response_model=PolicyStatsResponse)
async def policy_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    active = Policy.is_active.is_(True)
    categories = await grouped_counts(db, Policy.category, active)

    now = datetime.utcnow()
    created = await db.execute(
        select(Policy.created_at).where(active, Policy.created_at >= now - timedelta(days=366))
    )
    top = await db.execute(
        select(Policy).where(active).order_by(Policy.download_count.desc()).limit(5)
    )

    return {
        "total": sum(categories.values()),
        "category_stats": [
            {"category": name, "count": count}
            for name, count in sorted(categories.items(), key=lambda item: -item[1])
        ],
        "monthly_stats": monthly_counts(created.scalars().all(), now),
        "most_downloaded": [
            {
                "id": str(p.id),
                "policy_number": p.policy_number,
                "name": p.name,
                "download_count": p.download_count,
            }
            for p in top.scalars().all()
        ],
    }


@router.get("/view/{policy_id}")
async def view_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    """Serve the file inline"""
    policy = await get_policy_or_404(db, policy_id)
    response = serve_policy_file(policy, "inline")
    policy.view_count = (policy.view_count or 0) + 1
    await db.commit()
    return response


@router.get("/download/{policy_id}")
async def download_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    """Serve the file as an attachment"""
    policy = await get_policy_or_404(db, policy_id)
    response = serve_policy_file(policy, "attachment")
    policy.download_count = (policy.download_count or 0) + 1
    await db.commit()
    return response


@router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    return await get_policy_or_404(db, policy_id)


@router.put("/{policy_id}", response_model=PolicyResponse)
async def update_policy(
    policy_id: str,
    payload: PolicyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    policy = await get_policy_or_404(db, policy_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("category") is not None:
        check_category(changes["category"])

    for field, value in changes.items():
        if value is not None:
            setattr(policy, field, value)

    await db.commit()
    return policy


@router.delete("/{policy_id}")
async def delete_policy(
    policy_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Soft delete; the file stays on disk"""
    policy = await get_policy_or_404(db, policy_id)
    policy.is_active = False
    await db.commit()
    logger.info(f"[Policy] Deactivated {policy.policy_number}")
    return {"message": "Policy deleted successfully"}
