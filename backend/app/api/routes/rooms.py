"""
Room endpoints: organizer management, availability search, admin status changes.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import unwrap
from app.db.session import get_db
from app.models.room import RoomStatus
from app.models.user import User
from app.schemas.room import RoomCreate, RoomResponse, RoomStatusChange, RoomUpdate
from app.services import room_rental_service
from app.services.interfaces.notifier import Notifier
from app.services.strategy_factory import get_notifier
from app.core.security import get_current_user, get_current_user_id, require_admin

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room_endpoint(
    room_data: RoomCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a room. Organizers only."""
    return unwrap(
        await room_rental_service.create_room(db, organizer_id=user_id, **room_data.model_dump())
    )


@router.get("/", response_model=list[RoomResponse])
async def list_rooms_endpoint(
    min_capacity: Optional[int] = Query(None, ge=1),
    available_from: Optional[datetime] = Query(None),
    available_to: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await room_rental_service.get_rooms(
        db,
        min_capacity=min_capacity,
        available_from=available_from,
        available_to=available_to,
    )


@router.get("/available", response_model=list[RoomResponse])
async def available_rooms_endpoint(
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    min_capacity: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """
    Rooms free for the whole [start_time, end_time) range.
    Read-committed listing: the request itself re-checks under the room lock.
    """
    return await room_rental_service.get_available_rooms(
        db, start_time, end_time, min_capacity=min_capacity
    )


@router.get("/mine", response_model=list[RoomResponse])
async def my_rooms_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await room_rental_service.get_organizer_rooms(db, user_id)


@router.get("/all", response_model=list[RoomResponse])
async def all_rooms_endpoint(
    room_status: Optional[RoomStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await room_rental_service.get_all_rooms(db, status=room_status)


@router.patch("/{room_id}", response_model=RoomResponse)
async def update_room_endpoint(
    room_id: int,
    room_data: RoomUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(
        await room_rental_service.update_room(
            db, room_id, user.id, **room_data.model_dump(exclude_unset=True)
        )
    )


@router.post("/{room_id}/disable", response_model=RoomResponse)
async def disable_room_endpoint(
    room_id: int,
    body: RoomStatusChange,
    admin: User = Depends(require_admin),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    """Disable a room. Pending rentals are rejected; approved renters are notified."""
    return unwrap(
        await room_rental_service.disable_room(db, room_id, body.reason, notifier=notifier)
    )


@router.post("/{room_id}/enable", response_model=RoomResponse)
async def enable_room_endpoint(
    room_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await room_rental_service.enable_room(db, room_id))


@router.post("/{room_id}/maintenance", response_model=RoomResponse)
async def maintenance_room_endpoint(
    room_id: int,
    body: RoomStatusChange,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await room_rental_service.set_room_maintenance(db, room_id, body.reason))
