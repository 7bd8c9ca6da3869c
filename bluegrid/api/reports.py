"""Reports Router: resident submissions and the report lifecycle.

Every state change goes through report_lifecycle_service, which checks the
caller's role, ownership, payload and the report's current state. Routes
commit first, then hand the resulting notification to the dispatcher.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import get_current_user, require_officer, require_technician
from bluegrid.database import get_db
from bluegrid.models.enums import ReportStatus
from bluegrid.models.user import User
from bluegrid.schemas.common import PaginatedResponse
from bluegrid.schemas.report import (
    ApprovalRequest,
    AssignRequest,
    CompleteRequest,
    FeedbackRequest,
    ForceStatusRequest,
    ReportCreate,
    TechnicianUpdateRequest,
)
from bluegrid.services.notification_service import notification_dispatcher
from bluegrid.services.report_lifecycle import TransitionResult, report_lifecycle_service
from bluegrid.services.report_service import report_service
from bluegrid.utils.exceptions import ValidationError

router: APIRouter = APIRouter()


async def _finish(db: AsyncSession, result: TransitionResult) -> dict:
    """Commit the transition, emit its notification, and serialise the report."""
    await db.commit()
    notification_dispatcher.emit(result.event)
    return await report_service.build_response(db, result.report)


@router.post("", status_code=201)
async def submit_report(
    data: ReportCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Submit a new issue report. Residents only."""
    result = await report_lifecycle_service.submit(db, current_user.id, data.model_dump())
    return await _finish(db, result)


@router.get("")
async def list_my_reports(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[dict]:
    """Reports submitted by the caller, newest first."""
    reports = await report_service.list_mine(db, current_user)
    return await report_service.build_responses(db, reports)


@router.get("/all", response_model=PaginatedResponse)
async def list_all_reports(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> dict:
    """All reports, optionally filtered by status. Officers only."""
    status_filter: ReportStatus | None = None
    if status:
        try:
            status_filter = ReportStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown status: {status}", code="invalid_status")
    reports, total = await report_service.list_all(db, status_filter, page, per_page)
    items = await report_service.build_responses(db, reports)
    return {"items": items, "total": total, "page": page, "per_page": per_page}


@router.get("/assigned")
async def list_assigned_reports(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_technician)],
) -> list[dict]:
    """Reports currently assigned to the calling technician."""
    reports = await report_service.list_assigned(db, current_user)
    return await report_service.build_responses(db, reports)


@router.get("/{report_id}")
async def get_report(
    report_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    report = await report_service.get_visible(db, current_user, report_id)
    return await report_service.build_response(db, report)


@router.get("/{report_id}/history")
async def get_report_history(
    report_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[dict]:
    """Audit trail of every transition applied to the report."""
    return await report_service.history(db, current_user, report_id)


@router.put("/{report_id}/assign")
async def assign_report(
    report_id: UUID,
    data: AssignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await report_lifecycle_service.assign(db, current_user.id, report_id, data.technician_id)
    return await _finish(db, result)


@router.put("/{report_id}/accept")
async def accept_report(
    report_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await report_lifecycle_service.accept(db, current_user.id, report_id)
    return await _finish(db, result)


@router.put("/{report_id}/technician-update")
async def technician_update(
    report_id: UUID,
    data: TechnicianUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Progress note while in progress; ``awaiting_approval`` submits completion."""
    if data.status == "awaiting_approval":
        result = await report_lifecycle_service.complete(
            db, current_user.id, report_id, data.completion_notes or data.note
        )
    else:
        result = await report_lifecycle_service.technician_update(
            db, current_user.id, report_id, data.note
        )
    return await _finish(db, result)


@router.put("/{report_id}/complete")
async def complete_report(
    report_id: UUID,
    data: CompleteRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await report_lifecycle_service.complete(
        db, current_user.id, report_id, data.completion_notes, data.completion_photo_url
    )
    return await _finish(db, result)


@router.put("/{report_id}/approve")
async def approve_report(
    report_id: UUID,
    data: ApprovalRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Approve or reject completed work. Rejection requires a reason."""
    if data.action == "approve":
        result = await report_lifecycle_service.approve(db, current_user.id, report_id)
    else:
        result = await report_lifecycle_service.reject(
            db, current_user.id, report_id, data.rejection_reason
        )
    return await _finish(db, result)


@router.put("/{report_id}/status")
async def force_report_status(
    report_id: UUID,
    data: ForceStatusRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Officer override to any status, recorded in the report history."""
    result = await report_lifecycle_service.force_status(
        db, current_user.id, report_id, data.status, data.reason, data.technician_id
    )
    return await _finish(db, result)


@router.post("/{report_id}/feedback")
async def submit_feedback(
    report_id: UUID,
    data: FeedbackRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """One rating per report, by its reporter, once the work is finished."""
    result = await report_lifecycle_service.submit_feedback(
        db, current_user.id, report_id, data.rating, data.comment
    )
    return await _finish(db, result)


@router.get("/{report_id}/feedback")
async def get_feedback(
    report_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return await report_service.get_feedback(db, current_user, report_id)
