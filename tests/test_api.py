"""
HTTP-level tests through FastAPI's TestClient
"""

import pytest
from datetime import timedelta
from starlette.websockets import WebSocketDisconnect

from clubhub.core.config import settings
from clubhub.utils.timeutil import utcnow

from conftest import ADMIN, CLUB_ID, ORGANIZER, auth_headers, student


def _create_event(client, capacity=1):
    now = utcnow()
    response = client.post("/events", headers=auth_headers(ORGANIZER), json={
        "club_id": CLUB_ID,
        "title": "Line Follower Race",
        "capacity": capacity,
        "registration_deadline": (now + timedelta(days=3)).isoformat(),
        "event_date": (now + timedelta(days=4)).isoformat(),
    })
    assert response.status_code == 201
    event_id = response.json()["data"]["id"]
    response = client.put(f"/events/{event_id}/status", headers=auth_headers(ORGANIZER), json={"status": "published"})
    assert response.status_code == 200
    return event_id


def test_requires_gateway_token(client, club):
    response = client.get("/events/anything", headers=auth_headers(ORGANIZER, token="wrong"))
    assert response.status_code == 401


def test_unknown_event_is_404(client, club):
    response = client.get("/events/missing", headers=auth_headers(student("alice")))
    body = response.json()
    assert response.status_code == 404
    assert body["success"] is False
    assert body["error_code"] == "not_found"
    assert body["details"]["id"] == "missing"


def test_registration_flow(client, club):
    event_id = _create_event(client, capacity=1)

    first = client.post(f"/events/{event_id}/register", headers=auth_headers(student("alice")))
    second = client.post(f"/events/{event_id}/register", headers=auth_headers(student("bob")))
    duplicate = client.post(f"/events/{event_id}/register", headers=auth_headers(student("bob")))

    assert first.status_code == 201
    assert first.json()["data"]["assigned_status"] == "registered"
    assert second.json()["data"]["assigned_status"] == "waitlisted"
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "conflict"

    left = client.post(f"/events/{event_id}/unregister", headers=auth_headers(student("alice")))
    assert left.status_code == 200
    assert left.json()["data"]["promoted"] == "bob"

    roster = client.get(f"/events/{event_id}/participants", headers=auth_headers(ORGANIZER))
    stats = roster.json()["data"]["statistics"]
    assert stats["total_registrations"] == 1
    assert stats["available_spots"] == 0


def test_illegal_transition_is_400(client, club):
    event_id = _create_event(client)
    response = client.put(f"/events/{event_id}/status", headers=auth_headers(ORGANIZER), json={"status": "draft"})
    assert response.status_code == 400
    assert response.json()["details"]["retryable"] is False


def test_forbidden_is_403(client, club):
    event_id = _create_event(client)
    response = client.post(
        f"/events/{event_id}/attendance",
        headers=auth_headers(student("alice")),
        json={"participants": ["alice"]},
    )
    assert response.status_code == 403


def test_feedback_round(client, club):
    event_id = _create_event(client, capacity=5)
    client.post(f"/events/{event_id}/register", headers=auth_headers(student("alice")))
    client.put(f"/events/{event_id}/status", headers=auth_headers(ORGANIZER), json={"status": "ongoing"})
    marked = client.post(
        f"/events/{event_id}/attendance", headers=auth_headers(ORGANIZER), json={"participants": ["alice", "zed"]}
    )
    assert marked.json()["data"]["attendance_rate"] == 100.0
    client.put(f"/events/{event_id}/status", headers=auth_headers(ORGANIZER), json={"status": "completed"})

    body = {
        "event_id": event_id,
        "rating": {"overall": 5},
        "feedback": {"what_worked_well": "This was a great and wonderful event"},
    }
    submitted = client.post("/feedback", headers=auth_headers(student("alice")), json=body)
    assert submitted.status_code == 201
    sentiment = submitted.json()["data"]["sentiment"]
    assert sentiment["classification"] == "positive"
    assert sentiment["score"] == 0.2

    again = client.post("/feedback", headers=auth_headers(student("alice")), json=body)
    assert again.status_code == 409

    feedback_id = submitted.json()["data"]["feedback_id"]
    helpful = client.put(f"/feedback/{feedback_id}/helpful", headers=auth_headers(student("bob")))
    assert helpful.json()["data"]["helpful_count"] == 1

    listing = client.get(f"/feedback/event/{event_id}", headers=auth_headers(ORGANIZER))
    assert listing.json()["data"]["pagination"]["total"] == 1

    summary = client.get(f"/analytics/clubs/{CLUB_ID}/summary", headers=auth_headers(ADMIN))
    assert summary.json()["data"]["total_feedback"] == 1

    export = client.get(f"/feedback/export?event_id={event_id}&format=csv", headers=auth_headers(ADMIN))
    assert export.status_code == 200
    assert "Submitted By" in export.text
    assert "alice" in export.text


def test_invalid_feedback_body_is_422(client, club):
    response = client.post("/feedback", headers=auth_headers(student("alice")), json={
        "event_id": "whatever",
        "rating": {"overall": 9},
        "feedback": {"what_worked_well": "short"},
    })
    body = response.json()
    assert response.status_code == 422
    assert body["error_code"] == "validation_error"
    fields = {e["field"] for e in body["details"]["errors"]}
    assert "body.rating.overall" in fields
    assert "body.feedback.what_worked_well" in fields


def test_unknown_group_by_is_422(client, club):
    response = client.get("/analytics/timeseries?group_by=hour", headers=auth_headers(ADMIN))
    assert response.status_code == 422


def test_roster_export_csv(client, club):
    event_id = _create_event(client, capacity=3)
    client.post(f"/events/{event_id}/register", headers=auth_headers(student("alice")))

    response = client.get(f"/events/{event_id}/export?format=csv", headers=auth_headers(ORGANIZER))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Participant ID,Registration Date,Registration Status")
    assert lines[1].startswith("alice,")


def test_websocket_welcome_and_ping(client, club):
    event_id = _create_event(client, capacity=2)

    with client.websocket_connect(f"/ws/events/{event_id}", headers=auth_headers(ORGANIZER)) as websocket:
        welcome = websocket.receive_json()
        websocket.send_json({"type": "ping", "timestamp": 123})
        pong = websocket.receive_json()

    assert welcome["type"] == "connection"
    assert welcome["event_id"] == event_id
    assert pong == {"type": "pong", "timestamp": 123}


def test_websocket_requires_gateway_credentials(client, club):
    event_id = _create_event(client)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/ws/events/{event_id}"):
            pass

    assert exc_info.value.code == 4001


def test_websocket_refuses_participants_without_roster_access(client, club):
    event_id = _create_event(client)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/ws/events/{event_id}", headers=auth_headers(student("eve"))):
            pass

    assert exc_info.value.code == 4003


def test_websocket_accepts_query_credentials_for_staff(client, club):
    event_id = _create_event(client, capacity=2)
    query = f"token={settings.GATEWAY_TOKEN}&user_id={ORGANIZER.user_id}&role=teacher"

    with client.websocket_connect(f"/ws/events/{event_id}?{query}") as websocket:
        welcome = websocket.receive_json()

    assert welcome["type"] == "connection"
    assert welcome["connection_count"] == 1


def test_websocket_unknown_event(client, club):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/events/missing", headers=auth_headers(ADMIN)):
            pass

    assert exc_info.value.code == 4004


def test_create_event_with_naive_deadline_and_aware_date(client, club):
    now = utcnow()
    response = client.post("/events", headers=auth_headers(ORGANIZER), json={
        "club_id": CLUB_ID,
        "title": "Mixed Clock Meetup",
        "capacity": 4,
        "registration_deadline": (now + timedelta(days=2)).replace(tzinfo=None).isoformat(),
        "event_date": (now + timedelta(days=3)).isoformat(),
    })

    assert response.status_code == 201
    event_id = response.json()["data"]["id"]
    assert client.get(f"/events/{event_id}", headers=auth_headers(ORGANIZER)).status_code == 200


def test_naive_deadline_after_aware_date_is_422(client, club):
    now = utcnow()
    response = client.post("/events", headers=auth_headers(ORGANIZER), json={
        "club_id": CLUB_ID,
        "title": "Backwards Meetup",
        "registration_deadline": (now + timedelta(days=5)).replace(tzinfo=None).isoformat(),
        "event_date": (now + timedelta(days=3)).isoformat(),
    })

    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"
