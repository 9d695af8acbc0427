"""
HTTP-level tests: auth, status code mapping and the admin-only paths.
"""

from datetime import timedelta

import pytest

from conftest import headers_for, make_driver, make_offer, slot


def _rental_body(room, start, end, **extra):
    return {"room_id": room.id, "start_time": start.isoformat(), "end_time": end.isoformat(), **extra}


# ===== Auth =====

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_missing_token_is_401(client, test_room):
    start, end = slot()
    response = await client.post("/api/v1/rentals/", json=_rental_body(test_room, start, end))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    response = await client.get("/api/v1/rentals/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_401(client, db_session, student):
    student.is_active = False
    await db_session.commit()

    response = await client.get("/api/v1/rooms/all", headers=headers_for(student))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_refuse_students(client, student, test_room):
    headers = headers_for(student)

    assert (await client.get("/api/v1/rooms/all", headers=headers)).status_code == 403
    assert (await client.get("/api/v1/drivers/", headers=headers)).status_code == 403
    response = await client.post(
        f"/api/v1/rooms/{test_room.id}/disable", json={"reason": "nope"}, headers=headers
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Administrator access required"


# ===== Rentals =====

@pytest.mark.asyncio
async def test_request_and_approve_over_http(client, test_room, student, organizer, notifier):
    start, end = slot()
    response = await client.post(
        "/api/v1/rentals/",
        json=_rental_body(test_room, start, end, purpose="Robotics club"),
        headers=headers_for(student),
    )
    assert response.status_code == 201
    rental = response.json()
    assert rental["status"] == "pending"

    pending = await client.get("/api/v1/rentals/pending", headers=headers_for(organizer))
    assert [r["id"] for r in pending.json()] == [rental["id"]]

    approved = await client.post(f"/api/v1/rentals/{rental['id']}/approve", headers=headers_for(organizer))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert notifier.calls == [("approved", rental["id"])]


@pytest.mark.asyncio
async def test_validation_error_is_400(client, test_room, student):
    start, end = slot()
    response = await client.post(
        "/api/v1/rentals/", json=_rental_body(test_room, end, start), headers=headers_for(student)
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "End time must be after start time"


@pytest.mark.asyncio
async def test_overlap_is_409(client, test_room, student, other_student):
    start, end = slot()
    first = await client.post(
        "/api/v1/rentals/", json=_rental_body(test_room, start, end), headers=headers_for(student)
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/rentals/",
        json=_rental_body(test_room, start + timedelta(hours=1), end + timedelta(hours=1)),
        headers=headers_for(other_student),
    )
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_missing_room_is_404(client, student):
    start, end = slot()
    response = await client.post(
        "/api/v1/rentals/",
        json={"room_id": 999, "start_time": start.isoformat(), "end_time": end.isoformat()},
        headers=headers_for(student),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stranger_cannot_approve(client, test_room, student, other_student):
    start, end = slot()
    rental = (
        await client.post("/api/v1/rentals/", json=_rental_body(test_room, start, end), headers=headers_for(student))
    ).json()

    response = await client.post(f"/api/v1/rentals/{rental['id']}/approve", headers=headers_for(other_student))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_disables_room(client, test_room, student, admin, notifier):
    start, end = slot()
    rental = (
        await client.post("/api/v1/rentals/", json=_rental_body(test_room, start, end), headers=headers_for(student))
    ).json()

    response = await client.post(
        f"/api/v1/rooms/{test_room.id}/disable", json={"reason": "Flooding"}, headers=headers_for(admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "disabled"

    mine = (await client.get("/api/v1/rentals/", headers=headers_for(student))).json()
    assert mine[0]["status"] == "rejected"
    assert notifier.calls == [
        ("rejected", rental["id"], "Room disabled by admin: Flooding"),
        ("disabled", test_room.id, []),
    ]


# ===== Carpools =====

@pytest.mark.asyncio
async def test_join_and_list_offers(client, offer, test_event, other_student):
    joined = await client.post(
        f"/api/v1/carpools/offers/{offer.id}/join",
        json={"pickup_location": "North gate"},
        headers=headers_for(other_student),
    )
    assert joined.status_code == 201

    listing = await client.get(f"/api/v1/carpools/events/{test_event.id}/offers")
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 1
    assert body["offers"][0]["seats_available"] == 2
    assert body["cached"] is False


@pytest.mark.asyncio
async def test_join_full_offer_is_409(client, db_session, organizer, test_event, other_student):
    organizer_driver = await make_driver(db_session, organizer, capacity=2)
    full = await make_offer(db_session, organizer_driver, test_event, seats=0)

    response = await client.post(
        f"/api/v1/carpools/offers/{full.id}/join", json={}, headers=headers_for(other_student)
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "No seats available"


@pytest.mark.asyncio
async def test_offer_requires_driver_profile(client, test_event, other_student):
    response = await client.post(
        "/api/v1/carpools/offers",
        json={
            "event_id": test_event.id,
            "departure_info": "Lot D",
            "departure_time": test_event.date.isoformat(),
        },
        headers=headers_for(other_student),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "You are not registered as a driver"


@pytest.mark.asyncio
async def test_register_driver_bad_capacity_is_400(client, other_student):
    response = await client.post(
        "/api/v1/drivers/",
        json={"capacity": 60, "vehicle_type": "bus", "driver_type": "student"},
        headers=headers_for(other_student),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_suspends_and_reassigns(
    client, db_session, driver, offer, organizer, test_event, other_student, admin
):
    organizer_driver = await make_driver(db_session, organizer, capacity=2)
    backup = await make_offer(db_session, organizer_driver, test_event)
    record = (
        await client.post(f"/api/v1/carpools/offers/{offer.id}/join", json={}, headers=headers_for(other_student))
    ).json()

    moved = await client.post(
        f"/api/v1/drivers/passengers/{record['id']}/reassign",
        json={"new_offer_id": backup.id},
        headers=headers_for(admin),
    )
    assert moved.status_code == 200
    assert moved.json()["offer_id"] == backup.id

    suspended = await client.post(
        f"/api/v1/drivers/{driver.id}/suspend", json={"reason": "No insurance"}, headers=headers_for(admin)
    )
    assert suspended.status_code == 200
    assert suspended.json()["status"] == "suspended"

    flags = await client.get(f"/api/v1/drivers/{driver.id}/flags", headers=headers_for(admin))
    assert [f["reason"] for f in flags.json()] == ["No insurance"]


# ===== Tickets =====

@pytest.mark.asyncio
async def test_owner_fetches_token_and_qr(client, test_ticket, student, signer):
    token_response = await client.get(f"/api/v1/tickets/{test_ticket.id}/token", headers=headers_for(student))
    assert token_response.status_code == 200
    assert signer.verify(token_response.json()["token"]).ok

    qr = await client.get(f"/api/v1/tickets/{test_ticket.id}/qr", headers=headers_for(student))
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content.startswith(b"\x89PNG")


@pytest.mark.asyncio
async def test_other_user_token_is_403(client, test_ticket, other_student):
    response = await client.get(f"/api/v1/tickets/{test_ticket.id}/token", headers=headers_for(other_student))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_scan_valid_ticket(client, test_ticket, test_event, student, organizer):
    token = (await client.get(f"/api/v1/tickets/{test_ticket.id}/token", headers=headers_for(student))).json()["token"]

    response = await client.post(
        "/api/v1/tickets/scan",
        json={"token": token, "event_id": test_event.id},
        headers=headers_for(organizer),
    )
    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["ticket_id"] == test_ticket.id


@pytest.mark.asyncio
async def test_scan_forged_ticket_is_401_with_code(client, organizer):
    response = await client.post(
        "/api/v1/tickets/scan",
        json={"token": '{"payload":"e30=","signature":"AAAA"}'},
        headers=headers_for(organizer),
    )
    assert response.status_code == 401
    assert response.headers["x-rejection-code"] == "signature_invalid"


@pytest.mark.asyncio
async def test_scan_wrong_event_is_401(client, test_ticket, other_event, student, organizer):
    token = (await client.get(f"/api/v1/tickets/{test_ticket.id}/token", headers=headers_for(student))).json()["token"]

    response = await client.post(
        "/api/v1/tickets/scan",
        json={"token": token, "event_id": other_event.id},
        headers=headers_for(organizer),
    )
    assert response.status_code == 401
    assert response.headers["x-rejection-code"] == "wrong_event"


@pytest.mark.asyncio
async def test_students_cannot_scan(client, student):
    response = await client.post("/api/v1/tickets/scan", json={"token": "x"}, headers=headers_for(student))
    assert response.status_code == 403
