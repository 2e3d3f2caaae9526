"""
Assignment Lifecycle - status rules for NGO field assignments

    active ──┬──> in-progress ──> completed
    overdue ─┤
             ├──> completed
             └──> cancelled (ministry only)

OVERDUE is never requested. It is derived from the deadline by
derive_status() at every read and before every write.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from fra_patta.core.exceptions import (
    AuthorizationError,
    InvalidStatusTransitionError,
    ValidationError,
)
from fra_patta.core.logging_config import logger
from fra_patta.models.assignment import Assignment, AssignmentStatus
from fra_patta.models.user import User, UserRole


TERMINAL_STATUSES: FrozenSet[AssignmentStatus] = frozenset({
    AssignmentStatus.COMPLETED,
    AssignmentStatus.CANCELLED,
})

ALLOWED_TRANSITIONS: Dict[AssignmentStatus, FrozenSet[AssignmentStatus]] = {
    AssignmentStatus.ACTIVE: frozenset({
        AssignmentStatus.IN_PROGRESS,
        AssignmentStatus.COMPLETED,
        AssignmentStatus.CANCELLED,
    }),
    AssignmentStatus.OVERDUE: frozenset({
        AssignmentStatus.IN_PROGRESS,
        AssignmentStatus.COMPLETED,
        AssignmentStatus.CANCELLED,
    }),
    AssignmentStatus.IN_PROGRESS: frozenset({
        AssignmentStatus.COMPLETED,
    }),
    AssignmentStatus.COMPLETED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}


def derive_status(status: AssignmentStatus, deadline: Optional[datetime], now: datetime) -> AssignmentStatus:
    """ACTIVE past its deadline reads as OVERDUE; everything else is unchanged"""
    if status == AssignmentStatus.ACTIVE and deadline is not None and deadline < now:
        return AssignmentStatus.OVERDUE
    return status


def with_derived_status(assignment: Assignment, now: Optional[datetime] = None) -> Assignment:
    """Apply derive_status() in place. A change marks the row dirty for get_db to commit."""
    now = now or datetime.utcnow()
    derived = derive_status(assignment.status, assignment.deadline, now)
    if derived != assignment.status:
        logger.log_lifecycle_event(str(assignment.id), assignment.status.value, derived.value, reason="deadline passed")
        assignment.status = derived
    return assignment


async def refresh_overdue_assignments(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Bulk form of with_derived_status(), run before listing queries. Commits when rows change."""
    now = now or datetime.utcnow()
    result = await db.execute(
        update(Assignment)
        .where(Assignment.status == AssignmentStatus.ACTIVE, Assignment.deadline < now)
        .values(status=AssignmentStatus.OVERDUE)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        await db.commit()
        logger.info(f"Marked {result.rowcount} assignment(s) overdue")
    return result.rowcount or 0


def is_assigned_ngo(assignment: Assignment, user: User) -> bool:
    return user.role == UserRole.NGO and str(assignment.assigned_to) == str(user.id)


def can_view(assignment: Assignment, user: User) -> bool:
    if user.role == UserRole.MINISTRY:
        return True
    elif user.role == UserRole.NGO:
        return is_assigned_ngo(assignment, user)
    else:
        raise ValueError(f"Unknown role: {user.role}")


def check_transition(current: AssignmentStatus, requested: AssignmentStatus) -> None:
    """Raise InvalidStatusTransitionError unless requested is reachable from current"""
    if requested == AssignmentStatus.OVERDUE:
        raise InvalidStatusTransitionError(current.value, requested.value)
    # Re-submitting the current state updates progress and notes only
    if requested == current and current not in TERMINAL_STATUSES:
        return
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current.value, requested.value)


def _authorize_status_update(assignment: Assignment, user: User, requested: AssignmentStatus) -> None:
    if user.role == UserRole.MINISTRY:
        return
    elif user.role == UserRole.NGO:
        if not is_assigned_ngo(assignment, user):
            raise AuthorizationError("Not authorized to update this assignment")
        if requested == AssignmentStatus.CANCELLED:
            raise AuthorizationError("Only the ministry can cancel an assignment")
    else:
        raise ValueError(f"Unknown role: {user.role}")


def apply_status_update(
    assignment: Assignment,
    user: User,
    requested: AssignmentStatus,
    progress: Optional[int] = None,
    completion_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Assignment:
    """Authorize, check and apply a status change requested by user"""
    now = now or datetime.utcnow()
    with_derived_status(assignment, now)

    _authorize_status_update(assignment, user, requested)
    check_transition(assignment.status, requested)

    if progress is not None:
        if not 0 <= progress <= 100:
            raise ValidationError("Progress must be between 0 and 100", field="progress")
        assignment.progress = progress
    if completion_notes is not None:
        assignment.completion_notes = completion_notes

    previous = assignment.status
    if requested != previous:
        assignment.status = requested
        if requested == AssignmentStatus.COMPLETED:
            assignment.completed_at = now
        logger.log_lifecycle_event(str(assignment.id), previous.value, requested.value, actor_id=str(user.id))

    return assignment


def authorize_report(assignment: Assignment, user: User) -> None:
    """Only the assigned NGO may submit a report"""
    if user.role == UserRole.MINISTRY:
        raise AuthorizationError("Only the assigned NGO can submit a report")
    elif user.role == UserRole.NGO:
        if not is_assigned_ngo(assignment, user):
            raise AuthorizationError("Not authorized to submit a report for this assignment")
    else:
        raise ValueError(f"Unknown role: {user.role}")


def apply_report(
    assignment: Assignment,
    user: User,
    report: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Assignment:
    """
    Attach the NGO's field report. Submitting always completes the
    assignment, whatever its previous status.
    """
    now = now or datetime.utcnow()
    with_derived_status(assignment, now)
    authorize_report(assignment, user)

    previous = assignment.status
    assignment.report = {**report, "submitted_at": now.isoformat()}
    assignment.status = AssignmentStatus.COMPLETED
    assignment.completed_at = now
    assignment.progress = 100

    logger.log_lifecycle_event(
        str(assignment.id), previous.value, AssignmentStatus.COMPLETED.value,
        actor_id=str(user.id), trigger="report",
    )
    return assignment


def apply_feedback(
    assignment: Assignment,
    user: User,
    rating: int,
    comments: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Assignment:
    """Ministry rating for a completed assignment"""
    now = now or datetime.utcnow()

    if user.role == UserRole.NGO:
        raise AuthorizationError("Only the ministry can give feedback")
    elif user.role != UserRole.MINISTRY:
        raise ValueError(f"Unknown role: {user.role}")

    if assignment.status != AssignmentStatus.COMPLETED:
        raise ValidationError("Feedback can only be given on completed assignments", field="status")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", field="rating")

    assignment.feedback = {
        "rating": rating,
        "comments": comments,
        "given_by": str(user.id),
        "given_at": now.isoformat(),
    }
    return assignment
