"""
Feedback API routes
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clubhub.core.config import settings
from clubhub.core.db import get_db
from clubhub.schemas.feedback import FeedbackSubmit, FlagRequest, RespondRequest
from clubhub.services.export_service import MEDIA_TYPES, ExportService
from clubhub.services.feedback_service import FeedbackService
from clubhub.utils.policy import Identity, Role
from clubhub.utils.security import enforce_rate_limit, get_current_identity
from clubhub.utils.responses import success_response

router = APIRouter()

@router.post("/feedback")
async def submit_feedback(
    payload: FeedbackSubmit,
    db: Session = Depends(get_db),
    identity: Identity = Depends(enforce_rate_limit)
):
    """Submit feedback for a completed event the caller attended"""
    result = await run_in_threadpool(FeedbackService.submit, db, identity, payload)
    return success_response(
        message="Feedback submitted successfully",
        data=result.model_dump(mode="json"),
        status_code=201
    )

@router.get("/feedback/mine")
async def my_feedback(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Feedback the caller submitted under their name"""
    data = await run_in_threadpool(FeedbackService.my_feedback, db, identity)
    return success_response(message="Feedback retrieved", data=data)

@router.get("/feedback/export")
async def export_feedback(
    event_id: Optional[str] = Query(None),
    club_id: Optional[str] = Query(None),
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Download feedback; submitters are included for admins only"""
    records = await run_in_threadpool(FeedbackService.export_rows_source, db, identity, event_id, club_id)
    content = ExportService.export_feedback(records, format, include_submitter=identity.role == Role.admin)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename=feedback_{event_id or club_id or 'all'}.{format}"}
    )

@router.get("/feedback/event/{event_id}")
async def list_event_feedback(
    event_id: str,
    include_anonymous: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.FEEDBACK_PAGE_SIZE, ge=1, le=100),
    sort_by: str = Query("newest"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Feedback of one event with rating statistics"""
    data = await run_in_threadpool(
        FeedbackService.list_event_feedback, db, identity, event_id,
        include_anonymous, page, limit, sort_by
    )
    return success_response(message="Event feedback retrieved", data=data)

@router.post("/feedback/{feedback_id}/respond")
async def respond_to_feedback(
    feedback_id: str,
    payload: RespondRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Attach the organizer's response"""
    record = await run_in_threadpool(FeedbackService.respond, db, identity, feedback_id, payload)
    return success_response(message="Response added successfully", data=record.model_dump(mode="json"))

@router.put("/feedback/{feedback_id}/flag")
async def flag_feedback(
    feedback_id: str,
    payload: FlagRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Flag feedback as inappropriate"""
    moderation = await run_in_threadpool(FeedbackService.flag, db, identity, feedback_id, payload)
    return success_response(message="Feedback flagged successfully", data=moderation.model_dump(mode="json"))

@router.put("/feedback/{feedback_id}/helpful")
async def mark_helpful(
    feedback_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Toggle the caller's helpful vote"""
    result = await run_in_threadpool(FeedbackService.mark_helpful, db, identity, feedback_id)
    message = "Marked as helpful" if result.user_marked_helpful else "Removed helpful mark"
    return success_response(message=message, data=result.model_dump())

@router.delete("/feedback/{feedback_id}")
async def archive_feedback(
    feedback_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Archive feedback (soft delete)"""
    doc = await run_in_threadpool(FeedbackService.archive, db, identity, feedback_id)
    return success_response(message="Feedback archived", data={"feedback_id": doc.id, "status": doc.status.value})
