"""
Tests for room rentals: overlap rules, the state machine, approval
re-validation and the disable cascade.
"""

from datetime import datetime, timezone, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.config import get_settings
from app.models.room import RoomStatus
from app.models.room_rental import RentalStatus, RoomRental
from app.services import room_rental_service
from app.services.result import ErrorKind
from app.services.room_rental_service import (
    admin_cancel_rental,
    approve_rental,
    cancel_rental,
    complete_rental,
    create_room,
    disable_room,
    get_available_rooms,
    get_pending_rentals_for_organizer,
    reject_rental,
    request_rental,
    update_room,
)
from conftest import slot


@pytest.fixture
def competing_requests(monkeypatch):
    """Let pending requests overlap; approval decides."""
    monkeypatch.setattr(get_settings(), "ROOM_RENTAL_ALLOW_COMPETING_REQUESTS", True)


async def _request(db, room, renter, start, end, **kwargs):
    result = await request_rental(db, room.id, renter.id, start, end, **kwargs)
    assert result.ok, result
    return result.value


# ===== Request =====

@pytest.mark.asyncio
async def test_request_creates_pending_rental(db_session, test_room, student):
    start, end = slot(hours=3)
    result = await request_rental(db_session, test_room.id, student.id, start, end, purpose="Club meeting")

    assert result.ok
    rental = result.value
    assert rental.status == RentalStatus.PENDING
    assert rental.start_time == start
    assert rental.total_cost == Decimal("75.00")  # 3h x 25.00


@pytest.mark.asyncio
async def test_request_missing_room(db_session, student):
    start, end = slot()
    result = await request_rental(db_session, 9999, student.id, start, end)
    assert result.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_request_end_before_start(db_session, test_room, student):
    start, end = slot()
    result = await request_rental(db_session, test_room.id, student.id, end, start)

    assert result.kind == ErrorKind.VALIDATION
    assert result.message == "End time must be after start time"


@pytest.mark.asyncio
async def test_request_in_the_past(db_session, test_room, student):
    start = datetime.now(timezone.utc) - timedelta(hours=2)
    result = await request_rental(db_session, test_room.id, student.id, start, start + timedelta(hours=1))
    assert result.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_request_over_capacity(db_session, small_room, student):
    start, end = slot()
    result = await request_rental(
        db_session, small_room.id, student.id, start, end, expected_attendees=7
    )
    assert result.kind == ErrorKind.VALIDATION
    assert "capacity" in result.message


@pytest.mark.asyncio
async def test_request_outside_availability_window(db_session, test_room, student):
    start, end = slot(days=5)
    test_room.availability_end = start + timedelta(hours=1)
    await db_session.commit()

    result = await request_rental(db_session, test_room.id, student.id, start, end)
    assert result.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_request_disabled_room(db_session, test_room, student):
    test_room.status = RoomStatus.DISABLED
    await db_session.commit()

    start, end = slot()
    result = await request_rental(db_session, test_room.id, student.id, start, end)
    assert result.kind == ErrorKind.CONFLICT
    assert result.message == "Room is currently disabled"


@pytest.mark.asyncio
async def test_first_failure_wins(db_session, test_room, student):
    """A disabled room is reported before an inverted range."""
    test_room.status = RoomStatus.DISABLED
    await db_session.commit()

    start, end = slot()
    result = await request_rental(db_session, test_room.id, student.id, end, start)
    assert result.message == "Room is currently disabled"


# ===== Overlap =====

@pytest.mark.asyncio
async def test_overlap_with_pending_conflicts(db_session, test_room, student, other_student):
    start, end = slot()
    await _request(db_session, test_room, student, start, end)

    result = await request_rental(
        db_session, test_room.id, other_student.id, start + timedelta(minutes=30), end + timedelta(hours=1)
    )
    assert result.kind == ErrorKind.CONFLICT
    assert result.message == "Room is already booked for this time slot"


@pytest.mark.asyncio
async def test_contained_range_conflicts(db_session, test_room, student, other_student):
    start, end = slot(hours=4)
    await _request(db_session, test_room, student, start, end)

    result = await request_rental(
        db_session, test_room.id, other_student.id, start + timedelta(hours=1), start + timedelta(hours=2)
    )
    assert result.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_containing_range_conflicts(db_session, test_room, student, other_student):
    start, end = slot(hours=1)
    await _request(db_session, test_room, student, start, end)

    result = await request_rental(
        db_session, test_room.id, other_student.id, start - timedelta(hours=1), end + timedelta(hours=1)
    )
    assert result.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_touching_ranges_do_not_overlap(db_session, test_room, student, other_student):
    """[10:00, 12:00) and [12:00, 14:00) share only an endpoint."""
    start, end = slot(hour=10, hours=2)
    await _request(db_session, test_room, student, start, end)

    after = await request_rental(db_session, test_room.id, other_student.id, end, end + timedelta(hours=2))
    before = await request_rental(
        db_session, test_room.id, other_student.id, start - timedelta(hours=2), start
    )
    assert after.ok
    assert before.ok


@pytest.mark.asyncio
async def test_cancelled_and_rejected_rentals_free_the_slot(
    db_session, test_room, organizer, student, other_student, third_student
):
    start, end = slot()
    first = await _request(db_session, test_room, student, start, end)
    assert (await cancel_rental(db_session, first.id, student.id)).ok

    second = await _request(db_session, test_room, other_student, start, end)
    assert (await reject_rental(db_session, second.id, organizer.id, notifier=_Silent())).ok

    assert (await request_rental(db_session, test_room.id, third_student.id, start, end)).ok


@pytest.mark.asyncio
async def test_other_rooms_do_not_conflict(db_session, test_room, small_room, student, other_student):
    start, end = slot()
    await _request(db_session, test_room, student, start, end)
    assert (await request_rental(db_session, small_room.id, other_student.id, start, end)).ok


# ===== Approval =====

class _Silent:
    async def notify_booking_approved(self, rental_id):
        pass

    async def notify_booking_rejected(self, rental_id, reason=None):
        pass

    async def notify_resource_disabled(self, room_id, rental_ids=()):
        pass


@pytest.mark.asyncio
async def test_approve_pending_rental(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    result = await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)

    assert result.ok
    assert result.value.status == RentalStatus.APPROVED
    assert notifier.calls == [("approved", rental.id)]


@pytest.mark.asyncio
async def test_only_organizer_or_admin_can_approve(db_session, test_room, student, other_student, admin, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    denied = await approve_rental(db_session, rental.id, other_student.id, notifier=notifier)
    assert denied.kind == ErrorKind.FORBIDDEN
    assert notifier.calls == []

    allowed = await approve_rental(db_session, rental.id, admin.id, is_admin=True, notifier=notifier)
    assert allowed.ok


@pytest.mark.asyncio
async def test_cannot_approve_twice(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    assert (await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)).ok

    again = await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)
    assert again.kind == ErrorKind.CONFLICT
    assert notifier.calls == [("approved", rental.id)]


@pytest.mark.asyncio
async def test_approve_rejects_when_room_disabled_meanwhile(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    test_room.status = RoomStatus.UNDER_MAINTENANCE
    await db_session.commit()

    result = await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)
    assert result.kind == ErrorKind.CONFLICT
    assert result.message == "Room has been disabled by administrator"


@pytest.mark.parametrize("later_approved_first", [False, True])
@pytest.mark.asyncio
async def test_first_approval_wins(
    db_session, competing_requests, test_room, organizer, student, other_student, notifier,
    later_approved_first,
):
    """Two overlapping pending requests: whichever is approved second is refused."""
    start, end = slot()
    earlier = await _request(db_session, test_room, student, start, end)
    later = await _request(
        db_session, test_room, other_student, start + timedelta(hours=1), end + timedelta(hours=1)
    )
    winner, loser = (later, earlier) if later_approved_first else (earlier, later)

    assert (await approve_rental(db_session, winner.id, organizer.id, notifier=notifier)).ok
    refused = await approve_rental(db_session, loser.id, organizer.id, notifier=notifier)

    assert refused.kind == ErrorKind.CONFLICT
    assert refused.message == "Cannot approve: conflicting rental was already approved"
    assert notifier.calls == [("approved", winner.id)]

    refreshed = await db_session.get(RoomRental, loser.id)
    assert refreshed.status == RentalStatus.PENDING


@pytest.mark.asyncio
async def test_competing_mode_still_blocks_approved_slot(
    db_session, competing_requests, test_room, organizer, student, other_student, notifier
):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    assert (await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)).ok

    result = await request_rental(db_session, test_room.id, other_student.id, start, end)
    assert result.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_approval_retries_after_lost_race(db_session, monkeypatch, test_room, organizer, student, notifier):
    """A version conflict rolls back and retries instead of failing outright."""
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    real_lock = room_rental_service._lock_room
    attempts = []

    async def flaky_lock(db, room, **values):
        attempts.append(room.version)
        if len(attempts) == 1:
            return False
        return await real_lock(db, room, **values)

    monkeypatch.setattr(room_rental_service, "_lock_room", flaky_lock)

    result = await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)
    assert result.ok
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(db_session, monkeypatch, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    async def always_lose(db, room, **values):
        return False

    monkeypatch.setattr(room_rental_service, "_lock_room", always_lose)

    result = await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)
    assert result.kind == ErrorKind.CONFLICT
    assert notifier.calls == []


# ===== Reject / cancel / complete =====

@pytest.mark.asyncio
async def test_reject_pending_rental(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    result = await reject_rental(db_session, rental.id, organizer.id, admin_notes="Double booked", notifier=notifier)

    assert result.ok
    assert result.value.status == RentalStatus.REJECTED
    assert result.value.admin_notes == "Double booked"
    assert notifier.calls == [("rejected", rental.id, "Double booked")]


@pytest.mark.asyncio
async def test_cannot_reject_approved_rental(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)

    result = await reject_rental(db_session, rental.id, organizer.id, notifier=notifier)
    assert result.kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_only_renter_can_cancel(db_session, test_room, student, other_student):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    result = await cancel_rental(db_session, rental.id, other_student.id)
    assert result.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_renter_cancels_approved_rental(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)

    result = await cancel_rental(db_session, rental.id, student.id)
    assert result.ok
    assert result.value.status == RentalStatus.CANCELLED


@pytest.mark.asyncio
async def test_terminal_states_do_not_transition(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)
    await cancel_rental(db_session, rental.id, student.id)

    assert (await cancel_rental(db_session, rental.id, student.id)).kind == ErrorKind.CONFLICT
    assert (await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)).kind == ErrorKind.CONFLICT
    assert (await reject_rental(db_session, rental.id, organizer.id, notifier=notifier)).kind == ErrorKind.CONFLICT
    assert (await complete_rental(db_session, rental.id, organizer.id)).kind == ErrorKind.CONFLICT


@pytest.mark.asyncio
async def test_admin_cancel_records_reason(db_session, test_room, student):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    result = await admin_cancel_rental(db_session, rental.id, reason="Fire drill")
    assert result.ok
    assert result.value.status == RentalStatus.CANCELLED
    assert result.value.admin_notes == "Cancelled by admin: Fire drill"


@pytest.mark.asyncio
async def test_complete_requires_approved(db_session, test_room, organizer, student, notifier):
    start, end = slot()
    rental = await _request(db_session, test_room, student, start, end)

    assert (await complete_rental(db_session, rental.id, organizer.id)).kind == ErrorKind.CONFLICT

    await approve_rental(db_session, rental.id, organizer.id, notifier=notifier)
    result = await complete_rental(db_session, rental.id, organizer.id)
    assert result.ok
    assert result.value.status == RentalStatus.COMPLETED


# ===== Disable cascade =====

@pytest.mark.asyncio
async def test_disable_room_rejects_pending_and_keeps_approved(
    db_session, test_room, organizer, student, other_student, notifier
):
    approved_start, approved_end = slot(days=2)
    approved = await _request(db_session, test_room, student, approved_start, approved_end)
    await approve_rental(db_session, approved.id, organizer.id, notifier=notifier)

    pending_start, pending_end = slot(days=4)
    pending = await _request(db_session, test_room, other_student, pending_start, pending_end)
    notifier.calls.clear()

    result = await disable_room(db_session, test_room.id, "Water damage", notifier=notifier)

    assert result.ok
    assert result.value.status == RoomStatus.DISABLED

    rows = {
        r.id: r
        for r in (
            await db_session.execute(
                select(RoomRental).where(RoomRental.room_id == test_room.id).execution_options(populate_existing=True)
            )
        ).unique().scalars()
    }
    assert rows[approved.id].status == RentalStatus.APPROVED
    assert rows[pending.id].status == RentalStatus.REJECTED
    assert rows[pending.id].admin_notes == "Room disabled by admin: Water damage"

    assert notifier.calls == [
        ("rejected", pending.id, "Room disabled by admin: Water damage"),
        ("disabled", test_room.id, [approved.id]),
    ]


@pytest.mark.asyncio
async def test_disable_room_with_no_rentals(db_session, test_room, notifier):
    result = await disable_room(db_session, test_room.id, "Renovation", notifier=notifier)

    assert result.ok
    assert notifier.calls == [("disabled", test_room.id, [])]


@pytest.mark.asyncio
async def test_disable_missing_room(db_session, notifier):
    result = await disable_room(db_session, 4242, "n/a", notifier=notifier)
    assert result.kind == ErrorKind.NOT_FOUND


# ===== Availability and listings =====

@pytest.mark.asyncio
async def test_available_rooms_excludes_booked_and_disabled(
    db_session, test_room, small_room, student, organizer
):
    start, end = slot()
    await _request(db_session, test_room, student, start, end)

    rooms = await get_available_rooms(db_session, start, end)
    assert [r.id for r in rooms] == [small_room.id]

    small_room.status = RoomStatus.DISABLED
    await db_session.commit()
    assert await get_available_rooms(db_session, start, end) == []


@pytest.mark.asyncio
async def test_available_rooms_respects_capacity_and_touching_slots(
    db_session, test_room, small_room, student
):
    start, end = slot(hour=9, hours=1)
    await _request(db_session, test_room, student, start, end)

    rooms = await get_available_rooms(db_session, end, end + timedelta(hours=1), min_capacity=10)
    assert [r.id for r in rooms] == [test_room.id]


@pytest.mark.asyncio
async def test_available_rooms_inverted_range_is_empty(db_session, test_room):
    start, end = slot()
    assert await get_available_rooms(db_session, end, start) == []


@pytest.mark.asyncio
async def test_pending_rentals_for_organizer(db_session, test_room, organizer, student, other_student):
    first_start, first_end = slot(days=3)
    second_start, second_end = slot(days=2)
    first = await _request(db_session, test_room, student, first_start, first_end)
    second = await _request(db_session, test_room, other_student, second_start, second_end)

    pending = await get_pending_rentals_for_organizer(db_session, organizer.id)
    assert [r.id for r in pending] == [second.id, first.id]
    assert await get_pending_rentals_for_organizer(db_session, student.id) == []


# ===== Room management =====

@pytest.mark.asyncio
async def test_only_organizers_create_rooms(db_session, organizer, student):
    denied = await create_room(db_session, student.id, "Dorm lounge", "Res Hall", 10)
    assert denied.kind == ErrorKind.FORBIDDEN

    created = await create_room(db_session, organizer.id, "Seminar 2", "Arts building", 20)
    assert created.ok
    assert created.value.status == RoomStatus.ENABLED


@pytest.mark.asyncio
async def test_create_room_validates_capacity_and_window(db_session, organizer):
    start, end = slot()
    assert (await create_room(db_session, organizer.id, "X", "Y", 0)).kind == ErrorKind.VALIDATION
    assert (
        await create_room(
            db_session, organizer.id, "X", "Y", 5, availability_start=end, availability_end=start
        )
    ).kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_update_room_owner_only(db_session, test_room, organizer, student):
    assert (await update_room(db_session, test_room.id, student.id, capacity=10)).kind == ErrorKind.FORBIDDEN

    result = await update_room(db_session, test_room.id, organizer.id, capacity=55, name="Hall A+")
    assert result.ok
    assert result.value.capacity == 55
    assert result.value.name == "Hall A+"
