"""
WebSocket manager for real-time roster updates
"""

import json
import logging
from typing import Any, Dict, List
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder

from clubhub.core.db import get_session_factory
from clubhub.core.errors import ForbiddenError, NotFoundError
from clubhub.schemas.event import EventDocument
from clubhub.services.roster_service import RosterService
from clubhub.utils.policy import Action, Identity
from clubhub.utils.security import resolve_identity
from clubhub.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Manages WebSocket connections, one room per event"""

    def __init__(self):
        # event_id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, event_id: str):
        """Accept WebSocket connection and add to event room"""
        await websocket.accept()
        self.active_connections.setdefault(event_id, []).append(websocket)
        logger.info("WebSocket connected to event %s. Total connections: %d", event_id, len(self.active_connections[event_id]))

    def disconnect(self, websocket: WebSocket, event_id: str):
        """Remove WebSocket connection from event room"""
        connections = self.active_connections.get(event_id)
        if not connections or websocket not in connections:
            return
        connections.remove(websocket)
        logger.info("WebSocket disconnected from event %s. Remaining connections: %d", event_id, len(connections))
        if not connections:
            del self.active_connections[event_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error("Error sending personal message: %s", e)

    async def broadcast_to_event(self, event_id: str, message: dict):
        """Broadcast message to all WebSockets connected to an event"""
        if event_id not in self.active_connections:
            logger.debug("No active connections for event %s", event_id)
            return

        text = json.dumps(jsonable_encoder(message))
        disconnected = []
        for websocket in self.active_connections[event_id].copy():
            try:
                await websocket.send_text(text)
            except Exception as e:
                logger.error("Error broadcasting to websocket: %s", e)
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, event_id)

    async def notify(self, event_id: str, update_type: str, payload: Any):
        """Broadcast a roster change; the change itself is already committed"""
        await self.broadcast_to_event(event_id, {
            "type": update_type,
            "event_id": event_id,
            "data": payload,
            "timestamp": utcnow().isoformat(),
        })

    def get_connection_count(self, event_id: str) -> int:
        """Get number of active connections for an event"""
        return len(self.active_connections.get(event_id, []))

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

def _handshake_identity(websocket: WebSocket) -> Identity:
    """Gateway credentials from headers, or query parameters for browser clients"""
    authorization = websocket.headers.get("authorization", "")
    token = authorization[7:] if authorization.lower().startswith("bearer ") else websocket.query_params.get("token")
    return resolve_identity(
        token,
        websocket.headers.get("x-user-id") or websocket.query_params.get("user_id"),
        websocket.headers.get("x-user-role") or websocket.query_params.get("role"),
    )

def _load_for_subscriber(session_factory, identity: Identity, event_id: str) -> EventDocument:
    db = session_factory()
    try:
        return RosterService.load_authorized(db, identity, Action.view_roster, event_id)
    finally:
        db.close()

@router.websocket("/events/{event_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    event_id: str,
    session_factory=Depends(get_session_factory)
):
    """WebSocket endpoint for real-time roster updates, open to roster viewers only"""
    try:
        identity = _handshake_identity(websocket)
    except HTTPException:
        await websocket.close(code=4001, reason="Not authenticated")
        return
    try:
        event = await run_in_threadpool(_load_for_subscriber, session_factory, identity, event_id)
    except NotFoundError:
        await websocket.close(code=4004, reason="Event not found")
        return
    except ForbiddenError:
        logger.info("WebSocket subscription to event %s refused for %s", event_id, identity.user_id)
        await websocket.close(code=4003, reason="Not allowed to view this roster")
        return

    await websocket_manager.connect(websocket, event_id)

    try:
        await websocket_manager.send_personal_message({
            "type": "connection",
            "message": f"Connected to event: {event.title}",
            "event_id": event_id,
            "connection_count": websocket_manager.get_connection_count(event_id)
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Invalid JSON received from WebSocket: %s", data)
                continue

            if client_message.get("type") == "ping":
                await websocket_manager.send_personal_message({
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }, websocket)
    except WebSocketDisconnect:
        pass
    finally:
        websocket_manager.disconnect(websocket, event_id)
