"""
Event and roster API routes
"""

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clubhub.core.db import get_db
from clubhub.schemas.event import (
    AttendanceMarkRequest, AttendanceUpdate, CapacityUpdate, EventCreate, StatusUpdate,
)
from clubhub.services.analytics_service import AnalyticsService
from clubhub.services.export_service import MEDIA_TYPES, ExportService
from clubhub.services.roster_service import RosterService, roster_payload
from clubhub.api.ws import websocket_manager
from clubhub.utils.policy import Action, Identity
from clubhub.utils.security import enforce_rate_limit, get_current_identity
from clubhub.utils.responses import success_response

router = APIRouter()

@router.post("/events")
async def create_event(
    event_data: EventCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Create a new event in draft status"""
    event = await run_in_threadpool(RosterService.create_event, db, identity, event_data)
    return success_response(
        message="Event created successfully",
        data=roster_payload(event),
        status_code=201
    )

@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Get event details"""
    data = await run_in_threadpool(RosterService.get_event, db, identity, event_id)
    return success_response(message="Event retrieved", data=data)

@router.put("/events/{event_id}/status")
async def update_status(
    event_id: str,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Move the event through its lifecycle"""
    event = await run_in_threadpool(RosterService.transition_status, db, identity, event_id, update.status)
    await websocket_manager.notify(event_id, "status", {"status": event.status.value})
    return success_response(
        message=f"Event status is now {event.status.value}",
        data={"event_id": event_id, "status": event.status.value}
    )

@router.put("/events/{event_id}/capacity")
async def update_capacity(
    event_id: str,
    update: CapacityUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Change capacity; raising it promotes from the waitlist"""
    event, promoted = await run_in_threadpool(RosterService.update_capacity, db, identity, event_id, update.capacity)
    if promoted:
        await websocket_manager.notify(event_id, "promotion", {"promoted": promoted})
    return success_response(
        message="Capacity updated",
        data={"event_id": event_id, "capacity": event.capacity, "promoted": promoted}
    )

@router.post("/events/{event_id}/register")
async def register(
    event_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(enforce_rate_limit)
):
    """Register the caller, or put them on the waitlist when full"""
    result = await run_in_threadpool(RosterService.register, db, identity, event_id)
    await websocket_manager.notify(event_id, "registration", result.model_dump(mode="json"))
    message = (
        "Successfully registered for event"
        if result.assigned_status.value == "registered"
        else f"Event is full. Added to waitlist at position {result.waitlist_position}"
    )
    return success_response(message=message, data=result.model_dump(mode="json"), status_code=201)

@router.post("/events/{event_id}/unregister")
async def unregister(
    event_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Cancel the caller's registration or waitlist spot"""
    result = await run_in_threadpool(RosterService.unregister, db, identity, event_id)
    if result.removed:
        await websocket_manager.notify(event_id, "unregistration", result.model_dump(mode="json"))
    return success_response(message="Successfully unregistered from event", data=result.model_dump(mode="json"))

@router.get("/events/{event_id}/participants")
async def get_participants(
    event_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Roster with statistics, for event staff"""
    data = await run_in_threadpool(RosterService.roster_view, db, identity, event_id)
    return success_response(message="Participants retrieved", data=data)

@router.post("/events/{event_id}/attendance")
async def mark_attendance(
    event_id: str,
    request: AttendanceMarkRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Replace the attendance list of the event"""
    result = await run_in_threadpool(
        RosterService.mark_attendance, db, identity, event_id,
        request.participants, request.attendance_type, request.notes
    )
    await websocket_manager.notify(event_id, "attendance", result.model_dump(mode="json"))
    return success_response(
        message=f"Attendance marked for {result.attended_count} participants",
        data=result.model_dump(mode="json")
    )

@router.put("/events/{event_id}/attendance/{user_id}")
async def update_attendance(
    event_id: str,
    user_id: str,
    update: AttendanceUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Edit one attendance record"""
    record = await run_in_threadpool(RosterService.update_attendance_record, db, identity, event_id, user_id, update)
    await websocket_manager.notify(event_id, "attendance", {"updated": user_id})
    return success_response(message="Attendance updated successfully", data=record.model_dump(mode="json"))

@router.delete("/events/{event_id}/attendance/{user_id}")
async def remove_attendance(
    event_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Drop one attendance record"""
    stats = await run_in_threadpool(RosterService.remove_attendance, db, identity, event_id, user_id)
    await websocket_manager.notify(event_id, "attendance", {"removed": user_id})
    return success_response(message="Attendance record removed successfully", data=stats.model_dump())

@router.get("/events/{event_id}/analytics")
async def event_analytics(
    event_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Registration, attendance and feedback figures for one event"""
    data = await run_in_threadpool(AnalyticsService.event_analytics, db, identity, event_id)
    return success_response(message="Event analytics retrieved", data=data)

@router.get("/events/{event_id}/export")
async def export_participants(
    event_id: str,
    format: str = Query("xlsx", pattern="^(xlsx|csv)$"),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """Download the participant list"""
    event = await run_in_threadpool(RosterService.load_authorized, db, identity, Action.export, event_id)
    content = ExportService.export_roster(event, format)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename=participants_{event_id}.{format}"}
    )
