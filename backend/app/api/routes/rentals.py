"""
Room rental endpoints with overlap-safe requests and approvals.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import unwrap
from app.db.session import get_db
from app.models.room_rental import RentalStatus
from app.models.user import User
from app.schemas.room import RentalCreate, RentalDecision, RentalResponse
from app.services import room_rental_service
from app.services.interfaces.notifier import Notifier
from app.services.strategy_factory import get_notifier
from app.core.security import get_current_user, get_current_user_id, require_admin

router = APIRouter(prefix="/rentals", tags=["Rentals"])


@router.post("/", response_model=RentalResponse, status_code=status.HTTP_201_CREATED)
async def request_rental_endpoint(
    rental_data: RentalCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Request a room for a time range. The rental starts pending.
    Overlapping requests for the same room are serialized; the loser gets 409.
    """
    return unwrap(
        await room_rental_service.request_rental(
            db,
            room_id=rental_data.room_id,
            renter_id=user_id,
            start_time=rental_data.start_time,
            end_time=rental_data.end_time,
            purpose=rental_data.purpose,
            expected_attendees=rental_data.expected_attendees,
        )
    )


@router.get("/", response_model=list[RentalResponse])
async def my_rentals_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await room_rental_service.get_user_rentals(db, user_id)


@router.get("/pending", response_model=list[RentalResponse])
async def pending_rentals_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests on rooms the caller organizes."""
    return await room_rental_service.get_pending_rentals_for_organizer(db, user_id)


@router.get("/all", response_model=list[RentalResponse])
async def all_rentals_endpoint(
    rental_status: Optional[RentalStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await room_rental_service.get_all_rentals(db, status=rental_status)


@router.post("/{rental_id}/approve", response_model=RentalResponse)
async def approve_rental_endpoint(
    rental_id: int,
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending rental. Re-checks overlap against approved rentals."""
    return unwrap(
        await room_rental_service.approve_rental(
            db, rental_id, user.id, is_admin=user.is_admin, notifier=notifier
        )
    )


@router.post("/{rental_id}/reject", response_model=RentalResponse)
async def reject_rental_endpoint(
    rental_id: int,
    body: RentalDecision,
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(
        await room_rental_service.reject_rental(
            db,
            rental_id,
            user.id,
            admin_notes=body.admin_notes,
            is_admin=user.is_admin,
            notifier=notifier,
        )
    )


@router.post("/{rental_id}/cancel", response_model=RentalResponse)
async def cancel_rental_endpoint(
    rental_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(await room_rental_service.cancel_rental(db, rental_id, user_id))


@router.post("/{rental_id}/admin-cancel", response_model=RentalResponse)
async def admin_cancel_rental_endpoint(
    rental_id: int,
    body: RentalDecision,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(
        await room_rental_service.admin_cancel_rental(db, rental_id, reason=body.admin_notes)
    )


@router.post("/{rental_id}/complete", response_model=RentalResponse)
async def complete_rental_endpoint(
    rental_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return unwrap(
        await room_rental_service.complete_rental(db, rental_id, user.id, is_admin=user.is_admin)
    )
