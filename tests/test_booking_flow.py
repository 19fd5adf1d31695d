from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.booking_controller import router as booking_router
from backend.controllers.catalog_controller import router as catalog_router
from backend.repository.data_repository import DataRepository
from backend.services.booking_service import MeetingRequestService
from backend.services.catalog_service import CatalogService
from backend.utils.config import get_settings


T = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


def _build_test_settings(tmp_path, filename: str, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        **{"seed_demo_data": False, "auto_release_interval_seconds": 0, **overrides},
    )


def _build_test_app(tmp_path, filename: str) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()

    app = FastAPI()
    app.include_router(booking_router)
    app.include_router(catalog_router)
    app.state.repository = repository
    app.state.meeting_request_service = MeetingRequestService(
        repository=repository,
        settings=settings,
    )
    app.state.catalog_service = CatalogService(repository=repository, settings=settings)
    return app, repository


def _meeting_payload(attendees, start=T, duration=30, equipment=()):
    return {
        "organizer_id": attendees[0],
        "duration": duration,
        "required_equipment": list(equipment),
        "preferred_start": start.isoformat(),
        "flexibility": 30,
        "priority": "high",
        "attendees": list(attendees),
    }


def test_booking_end_to_end_flow(tmp_path):
    app, repository = _build_test_app(tmp_path, "booking_flow.db")
    client = TestClient(app)

    user_ids = []
    for index in range(1, 4):
        response = client.post(
            "/users",
            json={"name": f"User {index}", "email": f"user{index}@example.com"},
        )
        assert response.status_code == 201
        user_ids.append(response.json()["id"])

    equipment_response = client.post("/equipment", json={"name": "Projector"})
    assert equipment_response.status_code == 201
    projector_id = equipment_response.json()["id"]

    room_response = client.post(
        "/rooms",
        json={"name": "Team Room", "capacity": 6, "hourly_rate": 50.0, "location": "Floor 2"},
    )
    assert room_response.status_code == 201
    room_id = room_response.json()["id"]

    link_response = client.post(
        "/room_equipment",
        json={"room_id": room_id, "equipment_id": projector_id},
    )
    assert link_response.status_code == 201

    first = client.post(
        "/meeting_requests",
        json=_meeting_payload(user_ids, equipment=[projector_id]),
    )
    assert first.status_code == 201
    first_body = first.json()
    assert first_body["success"] is True
    assert first_body["booking"]["room"]["id"] == room_id
    assert first_body["meeting_request"]["status"] == "approved"
    booking_id = first_body["booking"]["id"]

    second = client.post("/meeting_requests", json=_meeting_payload(user_ids[:2]))
    assert second.status_code == 201
    second_body = second.json()
    assert second_body["success"] is False
    assert second_body["booking"] is None
    alternatives = second_body["alternatives"]
    assert 0 < len(alternatives) <= 10
    assert alternatives[0]["time_shift"] == 45
    assert second_body["meeting_request"]["status"] == "pending"

    confirm = client.post(
        "/bookings/confirm",
        json={
            "meeting_request_id": second_body["meeting_request"]["id"],
            "room_id": alternatives[0]["room_id"],
            "start_at": alternatives[0]["suggested_start"],
        },
    )
    assert confirm.status_code == 201

    listing = client.get("/bookings", params={"status": "confirmed", "room_id": room_id})
    assert listing.status_code == 200
    assert len(listing.json()) == 2

    check_in = client.post(f"/bookings/{booking_id}/check_in")
    assert check_in.status_code == 200
    assert check_in.json()["success"] is True

    again = client.post(f"/bookings/{booking_id}/check_in")
    assert again.status_code == 409
    assert again.json()["detail"] == "Already checked in"

    missing = client.post("/bookings/9999/check_in")
    assert missing.status_code == 404

    release = client.post("/bookings/auto_release")
    assert release.status_code == 200
    assert release.json()["released"] >= 1
    assert repository.get_booking(booking_id).status == "confirmed"


def test_booking_attendee_routes_and_start_bounds(tmp_path):
    app, _ = _build_test_app(tmp_path, "attendee_routes.db")
    client = TestClient(app)
    user_ids = [
        client.post("/users", json={"name": f"User {index}", "email": f"user{index}@example.com"}).json()["id"]
        for index in range(1, 4)
    ]
    client.post("/rooms", json={"name": "Team Room", "capacity": 6, "hourly_rate": 50.0})
    created = client.post("/meeting_requests", json=_meeting_payload(user_ids[:2]))
    booking_id = created.json()["booking"]["id"]

    listed = client.get(f"/bookings/{booking_id}/attendees")
    assert listed.status_code == 200
    assert [user["id"] for user in listed.json()] == user_ids[:2]

    added = client.post(f"/bookings/{booking_id}/attendees", json={"user_id": user_ids[2]})
    assert added.status_code == 201
    assert [user["id"] for user in added.json()] == user_ids
    duplicate = client.post(f"/bookings/{booking_id}/attendees", json={"user_id": user_ids[2]})
    assert duplicate.status_code == 409
    assert client.post(f"/bookings/{booking_id}/attendees", json={"user_id": 4242}).status_code == 404
    assert client.post("/bookings/9999/attendees", json={"user_id": user_ids[0]}).status_code == 404
    assert client.get("/bookings/9999/attendees").status_code == 404

    assert client.delete(f"/bookings/{booking_id}/attendees/{user_ids[0]}").status_code == 204
    assert client.delete(f"/bookings/{booking_id}/attendees/{user_ids[0]}").status_code == 404
    remaining = client.get(f"/bookings/{booking_id}/attendees").json()
    assert [user["id"] for user in remaining] == user_ids[1:]

    after = client.get("/bookings", params={"start_from": (T - timedelta(hours=1)).isoformat()})
    assert [booking["id"] for booking in after.json()] == [booking_id]
    before = client.get("/bookings", params={"start_to": (T - timedelta(hours=1)).isoformat()})
    assert before.json() == []
    reversed_range = client.get(
        "/bookings",
        params={"start_from": T.isoformat(), "start_to": (T - timedelta(hours=1)).isoformat()},
    )
    assert reversed_range.status_code == 400


def test_invalid_attendees_rejected_with_count(tmp_path):
    app, repository = _build_test_app(tmp_path, "invalid_attendees.db")
    client = TestClient(app)
    user = client.post("/users", json={"name": "Only", "email": "only@example.com"}).json()
    client.post("/rooms", json={"name": "Room", "capacity": 4, "hourly_rate": 10.0})

    response = client.post("/meeting_requests", json=_meeting_payload([user["id"], 4242]))

    assert response.status_code == 400
    assert response.json()["detail"]["invalid_attendees"] == 1
    assert repository.count_meeting_requests() == 0


def test_payload_validation_errors(tmp_path):
    app, _ = _build_test_app(tmp_path, "payload_validation.db")
    client = TestClient(app)

    empty_attendees = _meeting_payload([1])
    empty_attendees["attendees"] = []
    assert client.post("/meeting_requests", json=empty_attendees).status_code == 422

    zero_duration = _meeting_payload([1], duration=0)
    assert client.post("/meeting_requests", json=zero_duration).status_code == 422

    bad_priority = _meeting_payload([1])
    bad_priority["priority"] = "critical"
    assert client.post("/meeting_requests", json=bad_priority).status_code == 422


def test_create_app_lifespan_initializes_and_seeds(tmp_path):
    from app import create_app

    settings = _build_test_settings(tmp_path, "lifespan.db", seed_demo_data=True)
    app = create_app(settings)

    with TestClient(app) as client:
        rooms = client.get("/rooms")
        assert rooms.status_code == 200
        assert len(rooms.json()) == 6

        start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=1)
        response = client.post(
            "/meeting_requests",
            json=_meeting_payload([1, 2, 3], start=start),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["booking"]["room"]["name"] == "Huddle 1"
