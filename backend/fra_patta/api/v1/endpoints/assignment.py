"""
Assignment endpoints

The ministry creates, lists, rates and deletes assignments. The assigned
NGO moves them forward and submits the field report. Status rules live in
services.assignment_lifecycle.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fra_patta.core.config import settings
from fra_patta.core.database import get_db
from fra_patta.core.exceptions import (
    AssignmentNotFoundError,
    AuthorizationError,
    UnapprovedNGOError,
    ValidationError,
)
from fra_patta.core.logging_config import logger
from fra_patta.models.assignment import Assignment, AssignmentPriority, AssignmentStatus
from fra_patta.models.user import User, UserRole
from fra_patta.modules.auth.dependencies import require_any_role, require_ministry, require_ngo
from fra_patta.schemas.assignment import (
    AssignmentCreate,
    AssignmentFeedback,
    AssignmentResponse,
    AssignmentStatusUpdate,
    VillageVisit,
)
from fra_patta.schemas.ngo import NGOSummary
from fra_patta.services.assignment_lifecycle import (
    apply_feedback,
    apply_report,
    apply_status_update,
    authorize_report,
    can_view,
    refresh_overdue_assignments,
    with_derived_status,
)
from fra_patta.services.email_service import dispatch_notification, email_service
from fra_patta.services.storage_service import REPORT_CATEGORY, storage_service
from fra_patta.utils.pagination import paginate
from fra_patta.utils.stats import grouped_counts, monthly_counts


router = APIRouter()


# ============================================
# Helpers
# ============================================

async def get_assignment_or_404(db: AsyncSession, assignment_id: str) -> Assignment:
    """Fetch by id with the overdue status applied"""
    assignment = (
        await db.execute(select(Assignment).where(Assignment.id == assignment_id))
    ).scalar_one_or_none()
    if not assignment:
        raise AssignmentNotFoundError(assignment_id)
    return with_derived_status(assignment)


async def load_users(db: AsyncSession, user_ids) -> Dict[str, User]:
    ids = {str(uid) for uid in user_ids if uid}
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {str(user.id): user for user in result.scalars().all()}


def to_response(assignment: Assignment, ngo: Optional[User] = None) -> AssignmentResponse:
    response = AssignmentResponse.model_validate(assignment)
    if ngo is not None:
        response.ngo = NGOSummary.model_validate(ngo)
    return response


async def to_responses(db: AsyncSession, assignments: List[Assignment]) -> List[AssignmentResponse]:
    ngos = await load_users(db, (a.assigned_to for a in assignments))
    return [to_response(a, ngos.get(str(a.assigned_to))) for a in assignments]


def status_summary(counts: Dict[AssignmentStatus, int]) -> Dict[str, int]:
    return {
        "total": sum(counts.values()),
        "active": counts.get(AssignmentStatus.ACTIVE, 0),
        "in_progress": counts.get(AssignmentStatus.IN_PROGRESS, 0),
        "completed": counts.get(AssignmentStatus.COMPLETED, 0),
        "cancelled": counts.get(AssignmentStatus.CANCELLED, 0),
        "overdue": counts.get(AssignmentStatus.OVERDUE, 0),
    }


async def ngo_assignment_stats(db: AsyncSession, ngo_id: str) -> Dict[str, int]:
    counts = await grouped_counts(db, Assignment.status, Assignment.assigned_to == ngo_id)
    return status_summary(counts)


def parse_villages_visited(raw: Optional[str]) -> List[Dict[str, Any]]:
    """villages_visited arrives as a JSON string in the multipart form"""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("villages_visited must be valid JSON", field="villages_visited")
    if not isinstance(data, list):
        raise ValidationError("villages_visited must be a list", field="villages_visited")
    try:
        return [VillageVisit.model_validate(item).model_dump() for item in data]
    except PydanticValidationError:
        raise ValidationError("Each visited village needs at least a name", field="villages_visited")


# ============================================
# Ministry
# ============================================

@router.post("/create", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: AssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    """Assign field work to an approved NGO"""
    ngo = (await db.execute(select(User).where(User.id == payload.ngo_id))).scalar_one_or_none()
    if not ngo or ngo.role != UserRole.NGO or not ngo.is_approved:
        raise UnapprovedNGOError(payload.ngo_id)

    assignment = Assignment(
        assigned_to=str(ngo.id),
        assigned_by=str(current_user.id),
        title=payload.title,
        description=payload.description,
        area_district=payload.area.district,
        area_villages=payload.area.villages,
        area_coordinates=payload.area.coordinates.model_dump() if payload.area.coordinates else None,
        instructions=payload.instructions,
        objectives=payload.objectives,
        expected_deliverables=payload.expected_deliverables,
        deadline=payload.deadline,
        priority=payload.priority,
        status=AssignmentStatus.ACTIVE,
        progress=0,
    )
    with_derived_status(assignment)
    db.add(assignment)
    await db.commit()
    await db.refresh(assignment)

    logger.log_lifecycle_event(str(assignment.id), "new", assignment.status.value, actor_id=str(current_user.id))
    dispatch_notification(email_service.send_assignment_created_email(ngo, assignment))

    return to_response(assignment, ngo)


@router.get("/all")
async def list_assignments(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status_filter: Optional[AssignmentStatus] = Query(None, alias="status"),
    priority: Optional[AssignmentPriority] = None,
    ngo_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    await refresh_overdue_assignments(db)

    query = select(Assignment)
    if status_filter:
        query = query.where(Assignment.status == status_filter)
    if priority:
        query = query.where(Assignment.priority == priority)
    if ngo_id:
        query = query.where(Assignment.assigned_to == ngo_id)

    page_data = await paginate(db, query.order_by(Assignment.created_at.desc()), page, page_size)
    page_data["items"] = await to_responses(db, page_data["items"])
    return page_data


@router.get("/stats")
async def assignment_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    await refresh_overdue_assignments(db)

    summary = status_summary(await grouped_counts(db, Assignment.status))
    priorities = await grouped_counts(db, Assignment.priority)

    now = datetime.utcnow()
    created = await db.execute(
        select(Assignment.created_at).where(Assignment.created_at >= now - timedelta(days=366))
    )

    return {
        **summary,
        "priority_stats": [
            {"priority": priority.value, "count": priorities.get(priority, 0)}
            for priority in AssignmentPriority
        ],
        "monthly_stats": monthly_counts(created.scalars().all(), now),
    }


# ============================================
# NGO
# ============================================

@router.get("/my-assignments")
async def my_assignments(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status_filter: Optional[AssignmentStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ngo)
):
    await refresh_overdue_assignments(db)

    ngo_id = str(current_user.id)
    query = select(Assignment).where(Assignment.assigned_to == ngo_id)
    if status_filter:
        query = query.where(Assignment.status == status_filter)

    page_data = await paginate(db, query.order_by(Assignment.deadline.asc()), page, page_size)
    page_data["items"] = [to_response(a) for a in page_data["items"]]
    page_data["stats"] = await ngo_assignment_stats(db, ngo_id)
    return page_data


# ============================================
# Single assignment
# ============================================

@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    """NGOs can only read their own assignments"""
    assignment = await get_assignment_or_404(db, assignment_id)
    if not can_view(assignment, current_user):
        raise AuthorizationError("Not authorized to view this assignment")

    ngos = await load_users(db, [assignment.assigned_to])
    return to_response(assignment, ngos.get(str(assignment.assigned_to)))


@router.put("/{assignment_id}/status", response_model=AssignmentResponse)
async def update_assignment_status(
    assignment_id: str,
    payload: AssignmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_any_role)
):
    assignment = await get_assignment_or_404(db, assignment_id)
    previous = assignment.status

    apply_status_update(
        assignment,
        current_user,
        payload.status,
        progress=payload.progress,
        completion_notes=payload.completion_notes,
    )
    await db.commit()

    if assignment.status == AssignmentStatus.COMPLETED and previous != AssignmentStatus.COMPLETED:
        users = await load_users(db, [assignment.assigned_by, assignment.assigned_to])
        creator = users.get(str(assignment.assigned_by))
        ngo = users.get(str(assignment.assigned_to))
        if creator and ngo:
            dispatch_notification(email_service.send_assignment_completed_email(creator, assignment, ngo))

    return to_response(assignment)


@router.put("/{assignment_id}/report", response_model=AssignmentResponse)
async def submit_report(
    assignment_id: str,
    summary: str = Form(...),
    findings: List[str] = Form([]),
    recommendations: List[str] = Form([]),
    challenges: List[str] = Form([]),
    beneficiaries_reached: int = Form(0),
    villages_visited: Optional[str] = Form(None),
    report_files: Optional[List[UploadFile]] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ngo)
):
    """Attach the field report; the assignment becomes completed"""
    assignment = await get_assignment_or_404(db, assignment_id)
    authorize_report(assignment, current_user)

    files = [f for f in (report_files or []) if f.filename]
    if len(files) > settings.MAX_REPORT_FILES:
        raise ValidationError(
            f"At most {settings.MAX_REPORT_FILES} report files are allowed",
            field="report_files"
        )
    if beneficiaries_reached < 0:
        raise ValidationError("beneficiaries_reached cannot be negative", field="beneficiaries_reached")

    visits = parse_villages_visited(villages_visited)

    allowed = settings.DOCUMENT_EXTENSIONS + settings.IMAGE_EXTENSIONS
    attachments = []
    for upload in files:
        stored = await storage_service.save_upload(upload, REPORT_CATEGORY, "report", allowed)
        attachments.append({
            "filename": stored.file_name,
            "path": stored.path,
            "uploaded_at": datetime.utcnow().isoformat(),
        })

    apply_report(assignment, current_user, {
        "summary": summary,
        "findings": [f for f in findings if f.strip()],
        "recommendations": [r for r in recommendations if r.strip()],
        "challenges": [c for c in challenges if c.strip()],
        "beneficiaries_reached": beneficiaries_reached,
        "villages_visited": visits,
        "attachments": attachments,
    })
    await db.commit()

    users = await load_users(db, [assignment.assigned_by])
    creator = users.get(str(assignment.assigned_by))
    if creator:
        dispatch_notification(email_service.send_report_submitted_email(creator, assignment, current_user))

    return to_response(assignment)


@router.put("/{assignment_id}/feedback", response_model=AssignmentResponse)
async def give_feedback(
    assignment_id: str,
    payload: AssignmentFeedback,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    assignment = await get_assignment_or_404(db, assignment_id)
    apply_feedback(assignment, current_user, payload.rating, payload.comments)
    await db.commit()
    logger.info(f"[Assignment] Feedback {payload.rating}/5 recorded for {assignment_id}")
    return to_response(assignment)


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_ministry)
):
    assignment = await get_assignment_or_404(db, assignment_id)

    for attachment in (assignment.report or {}).get("attachments", []):
        storage_service.delete_file(attachment.get("path"))

    await db.delete(assignment)
    await db.commit()
    logger.info(f"[Assignment] Deleted {assignment_id}")
    return {"message": "Assignment deleted successfully"}
