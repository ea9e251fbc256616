from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from amenity_reservations.auth import create_access_token
from amenity_reservations.database import get_db
from amenity_reservations.main import app
from amenity_reservations.shared.clock import local_now


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def future_booking(amenity_id: int, days_ahead: int = 30, hour: int = 14) -> dict:
    day = (local_now() + timedelta(days=days_ahead)).date()
    start = datetime(day.year, day.month, day.day, hour, 0)
    return {
        "amenityId": amenity_id,
        "date": day.isoformat(),
        "setupTimeStart": (start - timedelta(hours=1)).isoformat(),
        "setupTimeEnd": start.isoformat(),
        "partyTimeStart": start.isoformat(),
        "partyTimeEnd": (start + timedelta(hours=3)).isoformat(),
        "guestCount": 25,
        "eventName": "Retirement party",
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_and_read_back(client, world):
    response = client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))
    assert response.status_code == 201
    body = response.json()
    assert body["reservation"]["status"] == "NEW"
    assert body["reservation"]["totalFee"] == 100.0
    assert body["reservation"]["modificationStatus"] == "NONE"

    reservation_id = body["reservation"]["id"]
    fetched = client.get(f"/reservations/{reservation_id}", headers=auth(world.resident))
    assert fetched.status_code == 200
    assert fetched.json()["eventName"] == "Retirement party"

    hidden = client.get(f"/reservations/{reservation_id}", headers=auth(world.other_resident))
    assert hidden.status_code == 404


def test_conflicting_booking_returns_409(client, world):
    first = client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))
    second = client.post(
        "/reservations", json=future_booking(world.amenity.id), headers=auth(world.other_resident)
    )
    assert second.status_code == 409
    body = second.json()
    assert body["error"] == "ConflictError"
    assert body["conflictingReservationId"] == first.json()["reservation"]["id"]


def test_approval_flow_and_permissions(client, world):
    created = client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))
    reservation_id = created.json()["reservation"]["id"]

    denied = client.put(f"/reservations/{reservation_id}/approve", headers=auth(world.resident))
    assert denied.status_code == 403
    assert denied.json()["error"] == "PermissionDenied"

    step_one = client.put(
        f"/reservations/{reservation_id}/approve",
        json={"expectedStatus": "NEW"},
        headers=auth(world.janitor),
    )
    assert step_one.status_code == 200
    assert step_one.json()["reservation"]["status"] == "JANITORIAL_APPROVED"

    stale = client.put(
        f"/reservations/{reservation_id}/approve",
        json={"expectedStatus": "NEW"},
        headers=auth(world.admin),
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == "InvalidStateTransition"

    step_two = client.put(f"/reservations/{reservation_id}/approve", headers=auth(world.admin))
    assert step_two.json()["reservation"]["status"] == "FULLY_APPROVED"


def test_fee_previews_and_cancellation(client, world):
    created = client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))
    reservation_id = created.json()["reservation"]["id"]

    preview = client.get(f"/reservations/{reservation_id}/cancellation-fee", headers=auth(world.resident))
    assert preview.status_code == 200
    assert preview.json()["amount"] == 0

    modification = client.post(
        f"/reservations/{reservation_id}/modify/calculate-fee", headers=auth(world.resident)
    )
    assert modification.json()["amount"] == 0

    cancelled = client.delete(f"/reservations/{reservation_id}", headers=auth(world.resident))
    assert cancelled.status_code == 200
    assert cancelled.json()["reservation"]["status"] == "CANCELLED"
    assert cancelled.json()["fee"]["amount"] == 0


def test_policy_edit_reports_adjusted_reservations(client, world):
    created = client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))
    reservation_id = created.json()["reservation"]["id"]
    client.put(f"/reservations/{reservation_id}/approve", headers=auth(world.janitor))

    response = client.put(
        f"/amenities/{world.amenity.id}/policy",
        json={"approvalRequired": False},
        headers=auth(world.admin),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["autoApprovedCount"] == 1
    assert body["autoApprovedReservationIds"] == [reservation_id]
    assert body["amenity"]["approvalRequired"] is False

    fetched = client.get(f"/reservations/{reservation_id}", headers=auth(world.resident))
    assert fetched.json()["status"] == "FULLY_APPROVED"

    forbidden = client.put(
        f"/amenities/{world.amenity.id}/policy",
        json={"approvalRequired": True},
        headers=auth(world.janitor),
    )
    assert forbidden.status_code == 403


def test_listing_and_memberships(client, world):
    client.post("/reservations", json=future_booking(world.amenity.id), headers=auth(world.resident))

    listed = client.get(
        "/reservations", params={"communityId": world.community.id}, headers=auth(world.janitor)
    )
    assert len(listed.json()) == 1

    bad_status = client.get(
        "/reservations",
        params={"communityId": world.community.id, "status": "APPROVED"},
        headers=auth(world.janitor),
    )
    assert bad_status.status_code == 422

    memberships = client.get("/memberships/me", headers=auth(world.admin))
    assert memberships.json()[0]["role"] == "admin"

    amenities = client.get("/amenities", params={"communityId": world.community.id}, headers=auth(world.resident))
    assert [a["id"] for a in amenities.json()] == [world.amenity.id]


def test_invalid_payload_is_422(client, world):
    payload = future_booking(world.amenity.id)
    payload["guestCount"] = 0
    response = client.post("/reservations", json=payload, headers=auth(world.resident))
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_authentication_required(client, world):
    assert client.get("/memberships/me").status_code in (401, 403)

    garbage = client.get("/memberships/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert garbage.status_code == 401

    expired = create_access_token(world.resident.id, expires_delta=timedelta(minutes=-5))
    response = client.get("/memberships/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.headers["X-Token-Expired"] == "true"

    unknown = client.get("/memberships/me", headers=auth(SimpleNamespace(id=4242)))
    assert unknown.status_code == 401


def test_availability_and_time_slots(client, world):
    booking = future_booking(world.amenity.id)
    created = client.post("/reservations", json=booking, headers=auth(world.resident))
    reservation_id = created.json()["reservation"]["id"]

    availability = client.get(
        "/reservations/availability",
        params={"communityId": world.community.id, "startDate": booking["date"], "endDate": booking["date"]},
        headers=auth(world.other_resident),
    )
    assert availability.status_code == 200
    blocked = availability.json()["blocked"]
    assert [b["reservationId"] for b in blocked] == [reservation_id]
    assert blocked[0]["blockedFrom"] == booking["setupTimeStart"]
    assert blocked[0]["blockedUntil"] == booking["partyTimeEnd"]
    assert "userId" not in blocked[0]

    slots = client.get(
        "/reservations/time-slots",
        params={"amenityId": world.amenity.id, "date": booking["date"]},
        headers=auth(world.other_resident),
    )
    assert slots.status_code == 200
    body = slots.json()
    assert body["existingReservations"] == 1
    free = {s["time"]: s["available"] for s in body["timeSlots"]}
    assert free["12:30"] is True
    assert free["13:00"] is False
    assert free["16:30"] is False
    assert free["17:00"] is True

    backwards = client.get(
        "/reservations/availability",
        params={"communityId": world.community.id, "startDate": booking["date"], "endDate": "2000-01-01"},
        headers=auth(world.resident),
    )
    assert backwards.status_code == 422
