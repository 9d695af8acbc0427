"""
Driver endpoints: self-service registration plus the admin override paths
(approve, suspend, reassign).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cache
from app.api.errors import unwrap
from app.db.session import get_db
from app.models.driver import DriverStatus
from app.models.user import User
from app.schemas.carpool import (
    DriverCreate,
    DriverFlagResponse,
    DriverResponse,
    DriverSuspend,
    DriverUpdate,
    PassengerResponse,
    ReassignRequest,
)
from app.services import carpool_service
from app.services.cache_service import OFFERS_NAMESPACE, CacheService
from app.core.security import get_current_user_id, require_admin

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.post("/", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def register_driver_endpoint(
    driver_data: DriverCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Register as a driver. The profile stays pending until an admin approves it."""
    return unwrap(await carpool_service.register_driver(db, user_id, **driver_data.model_dump()))


@router.get("/me", response_model=DriverResponse)
async def my_driver_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    driver = await carpool_service.get_driver_for_user(db, user_id)
    if driver is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You are not registered as a driver",
        )
    return driver


@router.patch("/me", response_model=DriverResponse)
async def update_my_driver_endpoint(
    driver_data: DriverUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    driver = await carpool_service.get_driver_for_user(db, user_id)
    if driver is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You are not registered as a driver",
        )
    return unwrap(
        await carpool_service.update_driver(
            db, driver.id, **driver_data.model_dump(exclude_unset=True)
        )
    )


# ===== Admin =====

@router.get("/", response_model=list[DriverResponse])
async def list_drivers_endpoint(
    driver_status: Optional[DriverStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_all_drivers(db, status=driver_status)


@router.get("/flagged", response_model=list[DriverResponse])
async def flagged_drivers_endpoint(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_flagged_drivers(db)


@router.get("/passengers", response_model=list[PassengerResponse])
async def all_passengers_endpoint(
    event_id: Optional[int] = Query(None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_all_passengers(db, event_id=event_id)


@router.post("/passengers/{record_id}/reassign", response_model=PassengerResponse)
async def reassign_passenger_endpoint(
    record_id: int,
    body: ReassignRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Move a passenger to another offer for the same event. Both seat counts change together."""
    record = unwrap(await carpool_service.reassign_passenger(db, record_id, body.new_offer_id))
    await cache.invalidate(OFFERS_NAMESPACE)
    return record


@router.get("/{driver_id}/flags", response_model=list[DriverFlagResponse])
async def driver_flags_endpoint(
    driver_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_driver_flags(db, driver_id)


@router.post("/{driver_id}/approve", response_model=DriverResponse)
async def approve_driver_endpoint(
    driver_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await carpool_service.approve_driver(db, driver_id))


@router.post("/{driver_id}/suspend", response_model=DriverResponse)
async def suspend_driver_endpoint(
    driver_id: int,
    body: DriverSuspend,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Suspend a driver and cancel all of their open offers, passengers or not."""
    driver = unwrap(await carpool_service.suspend_driver(db, driver_id, body.reason))
    await cache.invalidate(OFFERS_NAMESPACE)
    return driver


@router.post("/{driver_id}/unsuspend", response_model=DriverResponse)
async def unsuspend_driver_endpoint(
    driver_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await carpool_service.unsuspend_driver(db, driver_id))
