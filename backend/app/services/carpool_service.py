"""
Carpool capacity ledger: drivers, offers and passenger seats.

CONCURRENCY STRATEGY: Optimistic Locking on the Offer row
=========================================================

Invariant (the seat ledger):
  seats_available == total_seats - count(confirmed passengers)
  status == 'full'  <=>  seats_available == 0   (for open offers)

Every seat mutation is a single conditional UPDATE:

  UPDATE carpool_offers
  SET seats_available = :new_seats, status = :new_status, version = version + 1
  WHERE id = :offer_id AND version = :seen_version

new_seats and new_status are computed from the snapshot whose version the
WHERE clause pins, so the counter and the status flip land together: no
committed state ever has seats 0 with status active. Passenger inserts and
status changes share the transaction with the UPDATE, so duplicate joins by
the same user serialize on the offer too.

If rows_affected == 0 another request changed the offer first: rollback,
re-read, re-check, retry (up to MAX_RETRY_ATTEMPTS).

Reassignment touches two offers. Both are version-bumped in the same
transaction, lower id first, so two opposite reassignments cannot deadlock.
The passenger record is moved by a conditional UPDATE pinned to the offer
and status we read, so two moves of the same record cannot both debit a
target.

Seat arithmetic is never clamped: a count outside [0, total_seats] means
the ledger drifted, and the CHECK constraints refuse the write.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_db_retry, record_seat_operation
from app.models.carpool_offer import OPEN_OFFER_STATUSES, CarpoolOffer, OfferStatus
from app.models.carpool_passenger import CarpoolPassenger, PassengerStatus
from app.models.driver import Driver, DriverFlag, DriverStatus, DriverType, VehicleType
from app.models.event import Event
from app.models.user import User, UserRole
from app.services.result import Err, Ok, Result, conflict, forbidden, not_found, validation

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3
MIN_DRIVER_CAPACITY = 1
MAX_DRIVER_CAPACITY = 50

SUSPENSION_FLAG = "suspended"

_DRIVER_TYPE_ROLES = {
    DriverType.STUDENT: UserRole.STUDENT,
    DriverType.ORGANIZER: UserRole.ORGANIZER,
}


def _status_for(seats_available: int, current: OfferStatus) -> OfferStatus:
    if current not in OPEN_OFFER_STATUSES:
        return current
    return OfferStatus.FULL if seats_available == 0 else OfferStatus.ACTIVE


async def _load_offer(db: AsyncSession, offer_id: int) -> Optional[CarpoolOffer]:
    result = await db.execute(
        select(CarpoolOffer)
        .where(CarpoolOffer.id == offer_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _load_driver(db: AsyncSession, driver_id: int) -> Optional[Driver]:
    result = await db.execute(
        select(Driver).where(Driver.id == driver_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _live_record(
    db: AsyncSession, offer_id: int, passenger_id: int
) -> Optional[CarpoolPassenger]:
    result = await db.execute(
        select(CarpoolPassenger)
        .where(
            CarpoolPassenger.offer_id == offer_id,
            CarpoolPassenger.passenger_id == passenger_id,
            CarpoolPassenger.status != PassengerStatus.CANCELLED,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _shift_seats(db: AsyncSession, offer: CarpoolOffer, delta: int) -> bool:
    """
    Move `delta` seats on the offer and recompute its status, pinned to the
    version we read. Returns False if another writer got there first.
    """
    new_seats = offer.seats_available + delta
    result = await db.execute(
        update(CarpoolOffer)
        .where(CarpoolOffer.id == offer.id, CarpoolOffer.version == offer.version)
        .values(
            seats_available=new_seats,
            status=_status_for(new_seats, offer.status),
            version=CarpoolOffer.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _bump_offer(db: AsyncSession, offer: CarpoolOffer, **values) -> bool:
    result = await db.execute(
        update(CarpoolOffer)
        .where(CarpoolOffer.id == offer.id, CarpoolOffer.version == offer.version)
        .values(version=CarpoolOffer.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _move_record(db: AsyncSession, record: CarpoolPassenger, new_offer_id: int) -> bool:
    """
    Move a passenger record to another offer as a confirmed seat, pinned to
    the offer and status we read. False if the record changed meanwhile.
    """
    result = await db.execute(
        update(CarpoolPassenger)
        .where(
            CarpoolPassenger.id == record.id,
            CarpoolPassenger.offer_id == record.offer_id,
            CarpoolPassenger.status == record.status,
        )
        .values(offer_id=new_offer_id, status=PassengerStatus.CONFIRMED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _on_version_conflict(
    db: AsyncSession, operation: str, offer_id: int, attempt: int
) -> Optional[Err]:
    """Roll back a lost race. Returns an Err once retries are exhausted."""
    await db.rollback()
    record_db_retry("offer")
    logger.info(
        "seat_ledger_retry",
        operation=operation,
        offer_id=offer_id,
        attempt=attempt,
        reason="version_conflict",
    )
    if attempt == MAX_RETRY_ATTEMPTS:
        record_seat_operation(operation, "conflict")
        return conflict("Carpool offer is being updated by another request. Please try again.")
    return None


def _reject(operation: str, err: Err, **context) -> Err:
    record_seat_operation(operation, err.kind.value)
    logger.warning(f"{operation}_rejected", reason=err.message, **context)
    return err


def _capacity_error(capacity: int) -> Optional[Err]:
    if capacity < MIN_DRIVER_CAPACITY or capacity > MAX_DRIVER_CAPACITY:
        return validation(
            f"Capacity must be between {MIN_DRIVER_CAPACITY} and {MAX_DRIVER_CAPACITY}"
        )
    return None


# ===== Drivers =====

async def register_driver(
    db: AsyncSession,
    user_id: int,
    capacity: int,
    vehicle_type: VehicleType,
    driver_type: DriverType,
    license_plate: Optional[str] = None,
    accessibility_features: str = "",
) -> Result[Driver]:
    """Register a driver profile. New drivers wait for admin approval."""
    user = await db.get(User, user_id)
    if user is None:
        return not_found("User not found")

    existing = await db.execute(select(Driver.id).where(Driver.user_id == user_id))
    if existing.scalar_one_or_none() is not None:
        return conflict("User is already registered as a driver")

    if _DRIVER_TYPE_ROLES[driver_type] != user.role:
        return forbidden(f"Only {driver_type.value}s can register as {driver_type.value} drivers")

    err = _capacity_error(capacity)
    if err:
        return err

    driver = Driver(
        user_id=user_id,
        capacity=capacity,
        vehicle_type=vehicle_type,
        driver_type=driver_type,
        status=DriverStatus.PENDING,
        license_plate=license_plate,
        accessibility_features=accessibility_features,
    )
    db.add(driver)
    await db.commit()
    await db.refresh(driver)

    logger.info("driver_registered", driver_id=driver.id, user_id=user_id, capacity=capacity)
    return Ok(driver, "Driver registration successful. Pending admin approval.")


async def update_driver(
    db: AsyncSession,
    driver_id: int,
    capacity: Optional[int] = None,
    vehicle_type: Optional[VehicleType] = None,
    license_plate: Optional[str] = None,
    accessibility_features: Optional[str] = None,
) -> Result[Driver]:
    """Update a driver profile. Existing offers keep their seat snapshot."""
    driver = await _load_driver(db, driver_id)
    if driver is None:
        return not_found("Driver not found")

    if capacity is not None:
        err = _capacity_error(capacity)
        if err:
            return err
        driver.capacity = capacity
    if vehicle_type is not None:
        driver.vehicle_type = vehicle_type
    if license_plate is not None:
        driver.license_plate = license_plate
    if accessibility_features is not None:
        driver.accessibility_features = accessibility_features

    await db.commit()
    await db.refresh(driver)
    logger.info("driver_updated", driver_id=driver_id)
    return Ok(driver, "Driver profile updated successfully")


async def approve_driver(db: AsyncSession, driver_id: int) -> Result[Driver]:
    driver = await _load_driver(db, driver_id)
    if driver is None:
        return not_found("Driver not found")

    driver.status = DriverStatus.ACTIVE
    await db.commit()
    await db.refresh(driver)
    logger.info("driver_approved", driver_id=driver_id)
    return Ok(driver, "Driver approved successfully")


async def unsuspend_driver(db: AsyncSession, driver_id: int) -> Result[Driver]:
    driver = await _load_driver(db, driver_id)
    if driver is None:
        return not_found("Driver not found")

    driver.status = DriverStatus.ACTIVE
    await db.commit()
    await db.refresh(driver)
    logger.info("driver_unsuspended", driver_id=driver_id)
    return Ok(driver, "Driver unsuspended successfully")


async def suspend_driver(db: AsyncSession, driver_id: int, reason: str) -> Result[Driver]:
    """
    Suspend a driver. Appends one flag entry and cancels every open offer of
    the driver, confirmed passengers or not. This is deliberately not
    cancel_offer: the admin override skips the passenger guard.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        driver = await _load_driver(db, driver_id)
        if driver is None:
            return _reject("suspend", not_found("Driver not found"), driver_id=driver_id)

        offers = (
            await db.execute(
                select(CarpoolOffer)
                .where(
                    CarpoolOffer.driver_id == driver_id,
                    CarpoolOffer.status.in_(OPEN_OFFER_STATUSES),
                )
                .order_by(CarpoolOffer.id.asc())
                .execution_options(populate_existing=True)
            )
        ).unique().scalars().all()

        lost_race = None
        for offer in offers:
            if not await _bump_offer(db, offer, status=OfferStatus.CANCELLED):
                lost_race = offer.id
                break
        if lost_race is not None:
            err = await _on_version_conflict(db, "suspend", lost_race, attempt)
            if err:
                return err
            continue

        driver.status = DriverStatus.SUSPENDED
        db.add(DriverFlag(driver_id=driver_id, kind=SUSPENSION_FLAG, reason=reason))
        await db.commit()
        await db.refresh(driver)

        record_seat_operation("suspend", "success")
        logger.info(
            "driver_suspended",
            driver_id=driver_id,
            reason=reason,
            cancelled_offers=[offer.id for offer in offers],
        )
        return Ok(driver, "Driver suspended successfully")

    return conflict("Driver suspension failed unexpectedly")


async def get_driver_for_user(db: AsyncSession, user_id: int) -> Optional[Driver]:
    result = await db.execute(select(Driver).where(Driver.user_id == user_id))
    return result.scalar_one_or_none()


async def get_all_drivers(db: AsyncSession, status: Optional[DriverStatus] = None) -> list[Driver]:
    query = select(Driver)
    if status is not None:
        query = query.where(Driver.status == status)
    result = await db.execute(query.order_by(Driver.created_at.desc(), Driver.id.desc()))
    return list(result.scalars().all())


async def get_flagged_drivers(db: AsyncSession) -> list[Driver]:
    """Drivers with at least one flag entry."""
    flagged = select(DriverFlag.driver_id).distinct()
    result = await db.execute(
        select(Driver).where(Driver.id.in_(flagged)).order_by(Driver.id.asc())
    )
    return list(result.scalars().all())


async def get_driver_flags(db: AsyncSession, driver_id: int) -> list[DriverFlag]:
    result = await db.execute(
        select(DriverFlag)
        .where(DriverFlag.driver_id == driver_id)
        .order_by(DriverFlag.created_at.asc(), DriverFlag.id.asc())
    )
    return list(result.scalars().all())


# ===== Offers =====

async def create_offer(
    db: AsyncSession,
    driver_id: int,
    event_id: int,
    departure_info: str,
    departure_time,
    departure_address: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Result[CarpoolOffer]:
    """Offer seats for an event. Seats are snapshotted from the driver's capacity."""
    driver = await _load_driver(db, driver_id)
    if driver is None:
        return not_found("Driver not found")
    if driver.status != DriverStatus.ACTIVE:
        return forbidden("Driver account is not active. Contact administrator.")

    event = await db.get(Event, event_id)
    if event is None:
        return not_found("Event not found")

    existing = await db.execute(
        select(CarpoolOffer.id).where(
            CarpoolOffer.driver_id == driver_id,
            CarpoolOffer.event_id == event_id,
            CarpoolOffer.status == OfferStatus.ACTIVE,
        )
    )
    if existing.first() is not None:
        return conflict("You already have an active offer for this event")

    offer = CarpoolOffer(
        driver_id=driver_id,
        event_id=event_id,
        total_seats=driver.capacity,
        seats_available=driver.capacity,
        departure_info=departure_info,
        departure_address=departure_address,
        latitude=latitude,
        longitude=longitude,
        departure_time=departure_time,
        status=OfferStatus.ACTIVE,
    )
    db.add(offer)
    await db.commit()
    await db.refresh(offer)

    logger.info("offer_created", offer_id=offer.id, driver_id=driver_id, event_id=event_id, seats=offer.total_seats)
    return Ok(offer, "Carpool offer created successfully")


async def cancel_offer(db: AsyncSession, offer_id: int, requester_id: int) -> Result[CarpoolOffer]:
    """Driver cancels their own offer. Refused while any passenger is confirmed."""
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        offer = await _load_offer(db, offer_id)
        if offer is None:
            return _reject("cancel_offer", not_found("Offer not found"), offer_id=offer_id)
        if offer.driver.user_id != requester_id:
            return _reject(
                "cancel_offer", forbidden("Only the driver can cancel this offer"), offer_id=offer_id
            )
        if offer.status not in OPEN_OFFER_STATUSES:
            return _reject(
                "cancel_offer",
                conflict(f"Cannot cancel an offer that is {offer.status.value}"),
                offer_id=offer_id,
            )

        confirmed = (
            await db.execute(
                select(func.count(CarpoolPassenger.id)).where(
                    CarpoolPassenger.offer_id == offer_id,
                    CarpoolPassenger.status == PassengerStatus.CONFIRMED,
                )
            )
        ).scalar_one()
        if confirmed > 0:
            return _reject(
                "cancel_offer",
                conflict(
                    f"Cannot cancel: {confirmed} passengers have confirmed. Please contact them first."
                ),
                offer_id=offer_id,
            )

        if not await _bump_offer(db, offer, status=OfferStatus.CANCELLED):
            err = await _on_version_conflict(db, "cancel_offer", offer_id, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(offer)

        record_seat_operation("cancel_offer", "success")
        logger.info("offer_cancelled", offer_id=offer_id, driver_id=offer.driver_id)
        return Ok(offer, "Carpool offer cancelled successfully")

    return conflict("Offer cancellation failed unexpectedly")


async def complete_offer(
    db: AsyncSession, offer_id: int, requester_id: int, is_admin: bool = False
) -> Result[CarpoolOffer]:
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        offer = await _load_offer(db, offer_id)
        if offer is None:
            return not_found("Offer not found")
        if not is_admin and offer.driver.user_id != requester_id:
            return forbidden("Only the driver can complete this offer")
        if offer.status not in OPEN_OFFER_STATUSES:
            return conflict(f"Cannot complete an offer that is {offer.status.value}")

        if not await _bump_offer(db, offer, status=OfferStatus.COMPLETED):
            err = await _on_version_conflict(db, "complete_offer", offer_id, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(offer)
        logger.info("offer_completed", offer_id=offer_id)
        return Ok(offer, "Carpool offer completed")

    return conflict("Offer completion failed unexpectedly")


# ===== Seats =====

async def join_offer(
    db: AsyncSession,
    offer_id: int,
    passenger_id: int,
    pickup_location: Optional[str] = None,
    notes: Optional[str] = None,
) -> Result[CarpoolPassenger]:
    """
    Take one seat on an offer. Checks in order: offer exists, not full,
    active, seats left, not the driver, not already on board.
    """
    context = {"offer_id": offer_id, "passenger_id": passenger_id}

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        offer = await _load_offer(db, offer_id)
        if offer is None:
            return _reject("join", not_found("Carpool offer not found"), **context)
        if offer.status == OfferStatus.FULL:
            return _reject("join", conflict("No seats available"), **context)
        if offer.status != OfferStatus.ACTIVE:
            return _reject("join", conflict("This carpool offer is no longer active"), **context)
        if offer.seats_available <= 0:
            return _reject("join", conflict("No seats available"), **context)
        if offer.driver.user_id == passenger_id:
            return _reject("join", forbidden("You cannot join your own carpool offer"), **context)
        if await _live_record(db, offer_id, passenger_id) is not None:
            return _reject("join", conflict("You have already joined this carpool"), **context)

        if not await _shift_seats(db, offer, -1):
            err = await _on_version_conflict(db, "join", offer_id, attempt)
            if err:
                return err
            continue

        record = CarpoolPassenger(
            offer_id=offer_id,
            passenger_id=passenger_id,
            status=PassengerStatus.CONFIRMED,
            pickup_location=pickup_location,
            notes=notes,
        )
        db.add(record)
        await db.commit()
        await db.refresh(record)
        await db.refresh(offer)

        record_seat_operation("join", "success")
        logger.info(
            "offer_joined",
            seats_remaining=offer.seats_available,
            status=offer.status.value,
            attempt=attempt,
            **context,
        )
        return Ok(record, "Successfully joined carpool")

    return conflict("Join failed unexpectedly")


async def leave_offer(db: AsyncSession, offer_id: int, passenger_id: int) -> Result[CarpoolPassenger]:
    """Give a confirmed seat back. A full offer becomes active again."""
    context = {"offer_id": offer_id, "passenger_id": passenger_id}

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        record = await _live_record(db, offer_id, passenger_id)
        if record is None or record.status != PassengerStatus.CONFIRMED:
            return _reject("leave", not_found("You are not part of this carpool"), **context)

        offer = await _load_offer(db, offer_id)
        if not await _shift_seats(db, offer, +1):
            err = await _on_version_conflict(db, "leave", offer_id, attempt)
            if err:
                return err
            continue

        record.status = PassengerStatus.CANCELLED
        await db.commit()
        await db.refresh(record)
        await db.refresh(offer)

        record_seat_operation("leave", "success")
        logger.info(
            "offer_left",
            seats_remaining=offer.seats_available,
            status=offer.status.value,
            **context,
        )
        return Ok(record, "Successfully left carpool")

    return conflict("Leave failed unexpectedly")


async def reassign_passenger(
    db: AsyncSession, passenger_record_id: int, new_offer_id: int
) -> Result[CarpoolPassenger]:
    """
    Admin move of a passenger record to another offer for the same event.
    Debits the target and, when the record held a confirmed seat, credits
    the source. Both offers change in one transaction or neither does.
    """
    context = {"passenger_record_id": passenger_record_id, "new_offer_id": new_offer_id}

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        record = (
            await db.execute(
                select(CarpoolPassenger)
                .where(CarpoolPassenger.id == passenger_record_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if record is None:
            return _reject("reassign", not_found("Passenger record not found"), **context)

        source = await _load_offer(db, record.offer_id)
        target = await _load_offer(db, new_offer_id)
        if target is None:
            return _reject("reassign", not_found("Target carpool offer not found"), **context)
        if target.id == source.id:
            return _reject(
                "reassign", validation("Passenger is already on this carpool offer"), **context
            )
        if target.event_id != source.event_id:
            return _reject(
                "reassign",
                validation("Cannot reassign passenger to a carpool for a different event"),
                **context,
            )
        if target.seats_available <= 0:
            return _reject("reassign", conflict("Target carpool offer is full"), **context)
        if target.status not in OPEN_OFFER_STATUSES:
            return _reject("reassign", conflict("Target carpool offer is not active"), **context)
        if target.driver.user_id == record.passenger_id:
            return _reject(
                "reassign",
                validation("Passenger cannot ride in their own carpool offer"),
                **context,
            )
        if await _live_record(db, target.id, record.passenger_id) is not None:
            return _reject(
                "reassign", conflict("Passenger has already joined the target carpool"), **context
            )

        old_offer_id = record.offer_id
        credit_source = record.status == PassengerStatus.CONFIRMED

        # A cancelled record bumps no source offer, so the record row itself
        # is the only thing that serializes two moves of it
        if not await _move_record(db, record, target.id):
            err = await _on_version_conflict(db, "reassign", old_offer_id, attempt)
            if err:
                return err
            continue

        shifts = [(target, -1)]
        if credit_source:
            shifts.append((source, +1))

        lost_race = None
        for offer, delta in sorted(shifts, key=lambda item: item[0].id):
            if not await _shift_seats(db, offer, delta):
                lost_race = offer.id
                break
        if lost_race is not None:
            err = await _on_version_conflict(db, "reassign", lost_race, attempt)
            if err:
                return err
            continue

        await db.commit()
        await db.refresh(record)

        record_seat_operation("reassign", "success")
        logger.info(
            "passenger_reassigned",
            old_offer_id=old_offer_id,
            credited_source=credit_source,
            **context,
        )
        return Ok(record, "Passenger reassigned successfully to the new carpool")

    return conflict("Reassignment failed unexpectedly")


# ===== Listings =====

async def get_event_offers(db: AsyncSession, event_id: int) -> list[CarpoolOffer]:
    """Active offers for an event, most seats first."""
    result = await db.execute(
        select(CarpoolOffer)
        .where(CarpoolOffer.event_id == event_id, CarpoolOffer.status == OfferStatus.ACTIVE)
        .order_by(CarpoolOffer.seats_available.desc(), CarpoolOffer.departure_time.asc())
    )
    return list(result.unique().scalars().all())


async def get_user_carpools(db: AsyncSession, user_id: int) -> dict:
    """Offers the user drives and passenger records the user holds."""
    driving = await db.execute(
        select(CarpoolOffer)
        .join(Driver, CarpoolOffer.driver_id == Driver.id)
        .where(Driver.user_id == user_id)
        .order_by(CarpoolOffer.departure_time.desc())
    )
    riding = await db.execute(
        select(CarpoolPassenger)
        .where(
            CarpoolPassenger.passenger_id == user_id,
            CarpoolPassenger.status == PassengerStatus.CONFIRMED,
        )
        .order_by(CarpoolPassenger.joined_at.desc())
    )
    return {
        "as_driver": list(driving.unique().scalars().all()),
        "as_passenger": list(riding.scalars().all()),
    }


async def get_offer_passengers(db: AsyncSession, offer_id: int) -> list[CarpoolPassenger]:
    result = await db.execute(
        select(CarpoolPassenger)
        .where(
            CarpoolPassenger.offer_id == offer_id,
            CarpoolPassenger.status == PassengerStatus.CONFIRMED,
        )
        .order_by(CarpoolPassenger.joined_at.asc(), CarpoolPassenger.id.asc())
    )
    return list(result.scalars().all())


async def get_all_passengers(db: AsyncSession, event_id: Optional[int] = None) -> list[CarpoolPassenger]:
    query = select(CarpoolPassenger)
    if event_id is not None:
        query = query.join(CarpoolOffer, CarpoolPassenger.offer_id == CarpoolOffer.id).where(
            CarpoolOffer.event_id == event_id
        )
    result = await db.execute(query.order_by(CarpoolPassenger.joined_at.desc(), CarpoolPassenger.id.desc()))
    return list(result.scalars().all())
