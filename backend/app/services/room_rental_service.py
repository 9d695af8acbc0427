"""
Room rental service: overlap-free booking of rooms.

CONCURRENCY STRATEGY: Optimistic Locking on the Room row
========================================================

Problem:
  Two requests for overlapping slots on the same room arrive together.
  Both run the overlap query, both see a free slot, both insert.
  Result: Double booking.

Solution:
  Every rental write on a room bumps the room's `version` column in the
  same transaction as the write:

  1. Read the room (and its current version)
  2. Run the checks, including the overlap query
  3. UPDATE rooms SET version = version + 1
     WHERE id = :room_id AND version = :seen_version
  4. If rows_affected == 0, another writer got in between -> rollback, retry
  5. Insert / update the rental and commit

  The UPDATE row lock makes the loser wait for the winner's commit, then its
  WHERE clause no longer matches and it re-runs the checks against the
  winner's committed state. Approval re-runs the overlap check against
  approved rentals only, because time has passed since the request-time
  check (a request that was valid can still lose at approval).

Overlap:
  [s1, e1) and [s2, e2) overlap iff s1 < e2 AND s2 < e1. Touching ranges
  (e1 == s2) do not overlap; containment and partial overlap do.

Request-time blocking (settings.ROOM_RENTAL_ALLOW_COMPETING_REQUESTS):
  False (default): pending and approved rentals both block a new request,
    so at most one live request exists per slot.
  True: only approved rentals block. Overlapping requests can all sit in
    pending, and approval settles them: the first approval wins and the
    others get a conflict while staying pending.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_db_retry, record_rental_operation
from app.models.room import Room, RoomStatus
from app.models.room_rental import (
    BLOCKING_STATUSES,
    CANCELLABLE_STATUSES,
    RentalStatus,
    RoomRental,
)
from app.models.user import User, UserRole
from app.services.interfaces.notifier import Notifier
from app.services.result import Err, Ok, Result, conflict, forbidden, not_found, validation
from app.services.strategy_factory import get_notifier

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def overlaps(start_col, end_col, start: datetime, end: datetime):
    """SQL predicate: stored range [start_col, end_col) intersects [start, end)."""
    return and_(start_col < end, start < end_col)


async def _has_overlap(
    db: AsyncSession,
    room_id: int,
    start: datetime,
    end: datetime,
    statuses: Sequence[RentalStatus],
    exclude_rental_id: Optional[int] = None,
) -> bool:
    query = select(RoomRental.id).where(
        RoomRental.room_id == room_id,
        RoomRental.status.in_(statuses),
        overlaps(RoomRental.start_time, RoomRental.end_time, start, end),
    )
    if exclude_rental_id is not None:
        query = query.where(RoomRental.id != exclude_rental_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def _load_room(db: AsyncSession, room_id: int) -> Optional[Room]:
    result = await db.execute(
        select(Room).where(Room.id == room_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _load_rental(db: AsyncSession, rental_id: int) -> Optional[RoomRental]:
    result = await db.execute(
        select(RoomRental)
        .where(RoomRental.id == rental_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _lock_room(db: AsyncSession, room: Room, **values) -> bool:
    """Bump the room's version (optionally writing `values`). False on a lost race."""
    result = await db.execute(
        update(Room)
        .where(Room.id == room.id, Room.version == room.version)
        .values(version=Room.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _on_version_conflict(
    db: AsyncSession, operation: str, room_id: int, attempt: int
) -> Optional[Err]:
    """Roll back a lost race. Returns an Err once retries are exhausted."""
    await db.rollback()
    record_db_retry("room")
    logger.info(
        "rental_retry",
        operation=operation,
        room_id=room_id,
        attempt=attempt,
        reason="version_conflict",
    )
    if attempt == MAX_RETRY_ATTEMPTS:
        record_rental_operation(operation, "conflict")
        return conflict("Room is being updated by another request. Please try again.")
    return None


def _reject(operation: str, err: Err, **context) -> Err:
    record_rental_operation(operation, err.kind.value)
    logger.warning(f"{operation}_rejected", reason=err.message, **context)
    return err


def _can_manage(room: Room, user_id: int, is_admin: bool) -> bool:
    return is_admin or room.organizer_id == user_id


def _total_cost(room: Room, start: datetime, end: datetime) -> Optional[Decimal]:
    if room.hourly_rate is None:
        return None
    hours = Decimal(int((end - start).total_seconds())) / Decimal(3600)
    return (hours * Decimal(room.hourly_rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ===== Room management =====

async def create_room(
    db: AsyncSession,
    organizer_id: int,
    name: str,
    address: str,
    capacity: int,
    room_info: Optional[str] = None,
    amenities: str = "",
    hourly_rate: Optional[Decimal] = None,
    availability_start: Optional[datetime] = None,
    availability_end: Optional[datetime] = None,
) -> Result[Room]:
    """Create a room owned by an organizer. Rooms start enabled."""
    user = await db.get(User, organizer_id)
    if user is None:
        return not_found("User not found")
    if user.role != UserRole.ORGANIZER:
        return forbidden("Only organizers can create rooms")
    if capacity < 1:
        return validation("Capacity must be at least 1")
    if availability_start and availability_end and availability_end <= availability_start:
        return validation("Availability end time must be after start time")

    room = Room(
        organizer_id=organizer_id,
        name=name,
        address=address,
        capacity=capacity,
        room_info=room_info,
        amenities=amenities,
        hourly_rate=hourly_rate,
        status=RoomStatus.ENABLED,
        availability_start=availability_start,
        availability_end=availability_end,
    )
    db.add(room)
    await db.commit()
    await db.refresh(room)

    logger.info("room_created", room_id=room.id, organizer_id=organizer_id, capacity=capacity)
    return Ok(room, "Room created successfully")


async def update_room(
    db: AsyncSession,
    room_id: int,
    user_id: int,
    name: Optional[str] = None,
    address: Optional[str] = None,
    capacity: Optional[int] = None,
    room_info: Optional[str] = None,
    amenities: Optional[str] = None,
    hourly_rate: Optional[Decimal] = None,
    availability_start: Optional[datetime] = None,
    availability_end: Optional[datetime] = None,
) -> Result[Room]:
    """Update room details. Only the owning organizer may do this."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        room = await _load_room(db, room_id)
        if room is None:
            return not_found("Room not found")
        if room.organizer_id != user_id:
            return forbidden("Only the room organizer can update this room")
        if capacity is not None and capacity < 1:
            return validation("Capacity must be at least 1")

        window_start = availability_start if availability_start is not None else room.availability_start
        window_end = availability_end if availability_end is not None else room.availability_end
        if window_start and window_end and window_end <= window_start:
            return validation("Availability end time must be after start time")

        changes = {
            key: value
            for key, value in {
                "name": name,
                "address": address,
                "capacity": capacity,
                "room_info": room_info,
                "amenities": amenities,
                "hourly_rate": hourly_rate,
                "availability_start": availability_start,
                "availability_end": availability_end,
            }.items()
            if value is not None
        }

        if not await _lock_room(db, room, **changes):
            err = await _on_version_conflict(db, "update_room", room_id, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(room)
        logger.info("room_updated", room_id=room_id, fields=sorted(changes))
        return Ok(room, "Room updated successfully")

    return conflict("Room update failed unexpectedly")


async def get_rooms(
    db: AsyncSession,
    only_enabled: bool = True,
    min_capacity: Optional[int] = None,
    available_from: Optional[datetime] = None,
    available_to: Optional[datetime] = None,
) -> list[Room]:
    """List rooms, optionally filtered by status, capacity and availability window."""
    query = select(Room)
    if only_enabled:
        query = query.where(Room.status == RoomStatus.ENABLED)
    if min_capacity is not None:
        query = query.where(Room.capacity >= min_capacity)
    if available_from is not None and available_to is not None:
        query = query.where(
            or_(Room.availability_start.is_(None), Room.availability_start <= available_from),
            or_(Room.availability_end.is_(None), Room.availability_end >= available_to),
        )
    result = await db.execute(query.order_by(Room.name.asc(), Room.id.asc()))
    return list(result.scalars().all())


async def get_available_rooms(
    db: AsyncSession,
    start_time: datetime,
    end_time: datetime,
    min_capacity: Optional[int] = None,
) -> list[Room]:
    """
    Enabled rooms that can host [start_time, end_time): capacity and window
    fit, and no pending/approved rental overlaps. Read-committed is enough
    here; request_rental re-checks under the room lock.
    """
    start_time, end_time = _as_utc(start_time), _as_utc(end_time)
    if end_time <= start_time:
        return []

    busy = exists().where(
        RoomRental.room_id == Room.id,
        RoomRental.status.in_(BLOCKING_STATUSES),
        overlaps(RoomRental.start_time, RoomRental.end_time, start_time, end_time),
    )
    query = select(Room).where(
        Room.status == RoomStatus.ENABLED,
        or_(Room.availability_start.is_(None), Room.availability_start <= start_time),
        or_(Room.availability_end.is_(None), Room.availability_end >= end_time),
        ~busy,
    )
    if min_capacity is not None:
        query = query.where(Room.capacity >= min_capacity)

    result = await db.execute(query.order_by(Room.name.asc(), Room.id.asc()))
    return list(result.scalars().all())


async def get_organizer_rooms(db: AsyncSession, organizer_id: int) -> list[Room]:
    result = await db.execute(
        select(Room)
        .where(Room.organizer_id == organizer_id)
        .order_by(Room.created_at.desc(), Room.id.desc())
    )
    return list(result.scalars().all())


async def get_all_rooms(db: AsyncSession, status: Optional[RoomStatus] = None) -> list[Room]:
    query = select(Room)
    if status is not None:
        query = query.where(Room.status == status)
    result = await db.execute(query.order_by(Room.created_at.desc(), Room.id.desc()))
    return list(result.scalars().all())


# ===== Rentals =====

async def request_rental(
    db: AsyncSession,
    room_id: int,
    renter_id: int,
    start_time: datetime,
    end_time: datetime,
    purpose: Optional[str] = None,
    expected_attendees: Optional[int] = None,
) -> Result[RoomRental]:
    """
    Request a room for [start_time, end_time). Creates a pending rental.
    Checks run in order and the first failure wins.
    """
    start_time, end_time = _as_utc(start_time), _as_utc(end_time)
    if get_settings().ROOM_RENTAL_ALLOW_COMPETING_REQUESTS:
        blocking = (RentalStatus.APPROVED,)
    else:
        blocking = BLOCKING_STATUSES
    context = {"room_id": room_id, "renter_id": renter_id}

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        room = await _load_room(db, room_id)
        if room is None:
            return _reject("request", not_found("Room not found"), **context)
        if room.status != RoomStatus.ENABLED:
            return _reject("request", conflict("Room is currently disabled"), **context)
        if end_time <= start_time:
            return _reject("request", validation("End time must be after start time"), **context)
        if start_time <= datetime.now(timezone.utc):
            return _reject("request", validation("Cannot book time in the past"), **context)
        if room.availability_start and start_time < room.availability_start:
            return _reject(
                "request",
                validation(f"Room is not available before {room.availability_start:%Y-%m-%d %H:%M}"),
                **context,
            )
        if room.availability_end and end_time > room.availability_end:
            return _reject(
                "request",
                validation(f"Room is not available after {room.availability_end:%Y-%m-%d %H:%M}"),
                **context,
            )
        if expected_attendees is not None and expected_attendees > room.capacity:
            return _reject(
                "request",
                validation(
                    f"Expected attendees ({expected_attendees}) exceeds room capacity ({room.capacity})"
                ),
                **context,
            )
        if await _has_overlap(db, room_id, start_time, end_time, blocking):
            return _reject("request", conflict("Room is already booked for this time slot"), **context)

        if not await _lock_room(db, room):
            err = await _on_version_conflict(db, "request", room_id, attempt)
            if err:
                return err
            continue

        rental = RoomRental(
            room_id=room_id,
            renter_id=renter_id,
            start_time=start_time,
            end_time=end_time,
            status=RentalStatus.PENDING,
            purpose=purpose,
            expected_attendees=expected_attendees,
            total_cost=_total_cost(room, start_time, end_time),
        )
        db.add(rental)
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("request", "success")
        logger.info(
            "rental_requested",
            rental_id=rental.id,
            start=start_time.isoformat(),
            end=end_time.isoformat(),
            attempt=attempt,
            **context,
        )
        return Ok(rental, "Rental request submitted successfully. Pending approval.")

    return conflict("Rental request failed unexpectedly")


async def approve_rental(
    db: AsyncSession,
    rental_id: int,
    approver_id: int,
    is_admin: bool = False,
    notifier: Optional[Notifier] = None,
) -> Result[RoomRental]:
    """
    Approve a pending rental. Re-validates room status and overlap against
    approved rentals, since other requests may have been approved meanwhile.
    First approval wins.
    """
    notifier = notifier or get_notifier()

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        rental = await _load_rental(db, rental_id)
        if rental is None:
            return _reject("approve", not_found("Rental request not found"), rental_id=rental_id)
        room = rental.room
        if not _can_manage(room, approver_id, is_admin):
            return _reject(
                "approve",
                forbidden("Only the room organizer or admin can approve this rental"),
                rental_id=rental_id,
            )
        if rental.status != RentalStatus.PENDING:
            return _reject(
                "approve",
                conflict(f"Cannot approve a rental that is {rental.status.value}"),
                rental_id=rental_id,
            )
        if room.status != RoomStatus.ENABLED:
            return _reject(
                "approve", conflict("Room has been disabled by administrator"), rental_id=rental_id
            )
        if await _has_overlap(
            db,
            room.id,
            rental.start_time,
            rental.end_time,
            (RentalStatus.APPROVED,),
            exclude_rental_id=rental.id,
        ):
            logger.warning("rental_approval_conflict", rental_id=rental_id, room_id=room.id)
            return _reject(
                "approve",
                conflict("Cannot approve: conflicting rental was already approved"),
                rental_id=rental_id,
            )

        if not await _lock_room(db, room):
            err = await _on_version_conflict(db, "approve", room.id, attempt)
            if err:
                return err
            continue

        rental.status = RentalStatus.APPROVED
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("approve", "success")
        logger.info("rental_approved", rental_id=rental_id, room_id=room.id, approver_id=approver_id)
        await notifier.notify_booking_approved(rental.id)
        return Ok(rental, "Rental approved successfully")

    return conflict("Rental approval failed unexpectedly")


async def reject_rental(
    db: AsyncSession,
    rental_id: int,
    rejecter_id: int,
    admin_notes: Optional[str] = None,
    is_admin: bool = False,
    notifier: Optional[Notifier] = None,
) -> Result[RoomRental]:
    """Reject a pending rental."""
    notifier = notifier or get_notifier()

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        rental = await _load_rental(db, rental_id)
        if rental is None:
            return _reject("reject", not_found("Rental request not found"), rental_id=rental_id)
        room = rental.room
        if not _can_manage(room, rejecter_id, is_admin):
            return _reject(
                "reject",
                forbidden("Only the room organizer or admin can reject this rental"),
                rental_id=rental_id,
            )
        if rental.status != RentalStatus.PENDING:
            return _reject(
                "reject",
                conflict(f"Cannot reject a rental that is {rental.status.value}"),
                rental_id=rental_id,
            )

        if not await _lock_room(db, room):
            err = await _on_version_conflict(db, "reject", room.id, attempt)
            if err:
                return err
            continue

        rental.status = RentalStatus.REJECTED
        rental.admin_notes = admin_notes
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("reject", "success")
        logger.info("rental_rejected", rental_id=rental_id, rejecter_id=rejecter_id)
        await notifier.notify_booking_rejected(rental.id, admin_notes)
        return Ok(rental, "Rental rejected")

    return conflict("Rental rejection failed unexpectedly")


async def cancel_rental(db: AsyncSession, rental_id: int, user_id: int) -> Result[RoomRental]:
    """Cancel a pending or approved rental. Renter only."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        rental = await _load_rental(db, rental_id)
        if rental is None:
            return _reject("cancel", not_found("Rental not found"), rental_id=rental_id)
        if rental.renter_id != user_id:
            return _reject(
                "cancel", forbidden("Only the renter can cancel this rental"), rental_id=rental_id
            )
        if rental.status not in CANCELLABLE_STATUSES:
            return _reject(
                "cancel", conflict("Cannot cancel rental with current status"), rental_id=rental_id
            )

        if not await _lock_room(db, rental.room):
            err = await _on_version_conflict(db, "cancel", rental.room_id, attempt)
            if err:
                return err
            continue

        rental.status = RentalStatus.CANCELLED
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("cancel", "success")
        logger.info("rental_cancelled", rental_id=rental_id, user_id=user_id)
        return Ok(rental, "Rental cancelled successfully")

    return conflict("Rental cancellation failed unexpectedly")


async def admin_cancel_rental(
    db: AsyncSession, rental_id: int, reason: Optional[str] = None
) -> Result[RoomRental]:
    """Cancel any pending or approved rental, keeping the reason for audit."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        rental = await _load_rental(db, rental_id)
        if rental is None:
            return _reject("admin_cancel", not_found("Rental not found"), rental_id=rental_id)
        if rental.status not in CANCELLABLE_STATUSES:
            return _reject(
                "admin_cancel",
                conflict("Cannot cancel rental with current status"),
                rental_id=rental_id,
            )

        if not await _lock_room(db, rental.room):
            err = await _on_version_conflict(db, "admin_cancel", rental.room_id, attempt)
            if err:
                return err
            continue

        rental.status = RentalStatus.CANCELLED
        if reason and reason.strip():
            rental.admin_notes = f"Cancelled by admin: {reason.strip()}"
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("admin_cancel", "success")
        logger.info("rental_cancelled_by_admin", rental_id=rental_id, reason=reason)
        return Ok(rental, "Rental cancelled successfully by administrator")

    return conflict("Rental cancellation failed unexpectedly")


async def complete_rental(
    db: AsyncSession, rental_id: int, user_id: int, is_admin: bool = False
) -> Result[RoomRental]:
    """Mark an approved rental as completed."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        rental = await _load_rental(db, rental_id)
        if rental is None:
            return _reject("complete", not_found("Rental not found"), rental_id=rental_id)
        if not _can_manage(rental.room, user_id, is_admin):
            return _reject(
                "complete",
                forbidden("Only the room organizer or admin can complete this rental"),
                rental_id=rental_id,
            )
        if rental.status != RentalStatus.APPROVED:
            return _reject(
                "complete", conflict("Only approved rentals can be completed"), rental_id=rental_id
            )

        if not await _lock_room(db, rental.room):
            err = await _on_version_conflict(db, "complete", rental.room_id, attempt)
            if err:
                return err
            continue

        rental.status = RentalStatus.COMPLETED
        await db.commit()
        await db.refresh(rental)

        record_rental_operation("complete", "success")
        logger.info("rental_completed", rental_id=rental_id)
        return Ok(rental, "Rental marked as completed")

    return conflict("Rental completion failed unexpectedly")


async def get_user_rentals(db: AsyncSession, user_id: int) -> list[RoomRental]:
    result = await db.execute(
        select(RoomRental)
        .where(RoomRental.renter_id == user_id)
        .order_by(RoomRental.created_at.desc(), RoomRental.id.desc())
    )
    return list(result.unique().scalars().all())


async def get_pending_rentals_for_organizer(db: AsyncSession, organizer_id: int) -> list[RoomRental]:
    result = await db.execute(
        select(RoomRental)
        .join(Room, RoomRental.room_id == Room.id)
        .where(Room.organizer_id == organizer_id, RoomRental.status == RentalStatus.PENDING)
        .order_by(RoomRental.start_time.asc())
    )
    return list(result.unique().scalars().all())


async def get_all_rentals(db: AsyncSession, status: Optional[RentalStatus] = None) -> list[RoomRental]:
    query = select(RoomRental)
    if status is not None:
        query = query.where(RoomRental.status == status)
    result = await db.execute(query.order_by(RoomRental.created_at.desc(), RoomRental.id.desc()))
    return list(result.unique().scalars().all())


# ===== Admin =====

async def enable_room(db: AsyncSession, room_id: int) -> Result[Room]:
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        room = await _load_room(db, room_id)
        if room is None:
            return not_found("Room not found")

        if not await _lock_room(db, room, status=RoomStatus.ENABLED):
            err = await _on_version_conflict(db, "enable", room_id, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(room)
        logger.info("room_enabled", room_id=room_id)
        return Ok(room, "Room enabled successfully")

    return conflict("Room update failed unexpectedly")


async def set_room_maintenance(db: AsyncSession, room_id: int, reason: Optional[str] = None) -> Result[Room]:
    """Take a room out of service. Pending rentals stay pending but cannot be approved."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        room = await _load_room(db, room_id)
        if room is None:
            return not_found("Room not found")

        if not await _lock_room(db, room, status=RoomStatus.UNDER_MAINTENANCE):
            err = await _on_version_conflict(db, "maintenance", room_id, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(room)
        logger.info("room_under_maintenance", room_id=room_id, reason=reason)
        return Ok(room, "Room marked as under maintenance")

    return conflict("Room update failed unexpectedly")


async def disable_room(
    db: AsyncSession,
    room_id: int,
    reason: str,
    notifier: Optional[Notifier] = None,
) -> Result[Room]:
    """
    Disable a room. In one transaction every pending rental is rejected.
    Approved rentals stay approved (they are commitments); renters of the
    ones that have not ended yet are notified after commit.
    """
    notifier = notifier or get_notifier()

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        room = await _load_room(db, room_id)
        if room is None:
            return _reject("disable", not_found("Room not found"), room_id=room_id)

        if not await _lock_room(db, room, status=RoomStatus.DISABLED):
            err = await _on_version_conflict(db, "disable", room_id, attempt)
            if err:
                return err
            continue

        pending = (
            await db.execute(
                select(RoomRental)
                .where(RoomRental.room_id == room_id, RoomRental.status == RentalStatus.PENDING)
                .execution_options(populate_existing=True)
            )
        ).unique().scalars().all()
        for rental in pending:
            rental.status = RentalStatus.REJECTED
            rental.admin_notes = f"Room disabled by admin: {reason}"

        affected = (
            await db.execute(
                select(RoomRental.id)
                .where(
                    RoomRental.room_id == room_id,
                    RoomRental.status == RentalStatus.APPROVED,
                    RoomRental.end_time > datetime.now(timezone.utc),
                )
                .order_by(RoomRental.start_time.asc())
            )
        ).scalars().all()

        await db.commit()
        await db.refresh(room)

        record_rental_operation("disable", "success")
        logger.info(
            "room_disabled",
            room_id=room_id,
            reason=reason,
            rejected_rentals=len(pending),
            affected_approved_rentals=len(affected),
        )
        for rental in pending:
            await notifier.notify_booking_rejected(rental.id, rental.admin_notes)
        await notifier.notify_resource_disabled(room_id, list(affected))
        return Ok(room, "Room disabled successfully. All pending rentals have been rejected.")

    return conflict("Room update failed unexpectedly")
