"""
Carpool offer endpoints. Seat changes go through the ledger's version-checked
updates; the per-event offer listing is cached in Redis and dropped on every
ledger mutation.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cache
from app.api.errors import unwrap
from app.db.session import get_db
from app.models.user import User
from app.schemas.carpool import (
    JoinRequest,
    OfferCreate,
    OfferListResponse,
    OfferResponse,
    PassengerResponse,
    UserCarpoolsResponse,
)
from app.services import carpool_service
from app.services.cache_service import OFFERS_NAMESPACE, CacheService, event_offers_key
from app.core.security import get_current_user, get_current_user_id
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/carpools", tags=["Carpools"])


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer_endpoint(
    offer_data: OfferCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Offer a ride to an event. The caller must be an active driver."""
    driver = await carpool_service.get_driver_for_user(db, user_id)
    if driver is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You are not registered as a driver",
        )
    offer = unwrap(
        await carpool_service.create_offer(db, driver_id=driver.id, **offer_data.model_dump())
    )
    await cache.invalidate(OFFERS_NAMESPACE)
    return offer


@router.get("/events/{event_id}/offers", response_model=OfferListResponse)
async def event_offers_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """
    Active offers for an event, most seats first.
    Cached until the next join/leave/cancel or TTL expiry.
    """
    key = event_offers_key(event_id)
    cached = await cache.get(OFFERS_NAMESPACE, key)
    if cached:
        logger.info("event_offers_cache_hit", event_id=event_id)
        cached["cached"] = True
        return OfferListResponse(**cached)

    offers = await carpool_service.get_event_offers(db, event_id)
    response_data = {
        "offers": [OfferResponse.model_validate(o).model_dump(mode="json") for o in offers],
        "total": len(offers),
        "cached": False,
    }
    await cache.set(OFFERS_NAMESPACE, key, response_data)
    return OfferListResponse(**response_data)


@router.get("/mine", response_model=UserCarpoolsResponse)
async def my_carpools_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_user_carpools(db, user_id)


@router.get("/offers/{offer_id}/passengers", response_model=list[PassengerResponse])
async def offer_passengers_endpoint(
    offer_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await carpool_service.get_offer_passengers(db, offer_id)


@router.post(
    "/offers/{offer_id}/join",
    response_model=PassengerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_offer_endpoint(
    offer_id: int,
    body: JoinRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """
    Take a seat. Concurrent joins on the same offer are serialized by the
    offer's version; the last seat flips the offer to full atomically.
    """
    record = unwrap(
        await carpool_service.join_offer(
            db, offer_id, user_id, pickup_location=body.pickup_location, notes=body.notes
        )
    )
    await cache.invalidate(OFFERS_NAMESPACE)
    return record


@router.post("/offers/{offer_id}/leave", response_model=PassengerResponse)
async def leave_offer_endpoint(
    offer_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    record = unwrap(await carpool_service.leave_offer(db, offer_id, user_id))
    await cache.invalidate(OFFERS_NAMESPACE)
    return record


@router.post("/offers/{offer_id}/cancel", response_model=OfferResponse)
async def cancel_offer_endpoint(
    offer_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Cancel your own offer. Refused while passengers are confirmed."""
    offer = unwrap(await carpool_service.cancel_offer(db, offer_id, user_id))
    await cache.invalidate(OFFERS_NAMESPACE)
    return offer


@router.post("/offers/{offer_id}/complete", response_model=OfferResponse)
async def complete_offer_endpoint(
    offer_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    offer = unwrap(
        await carpool_service.complete_offer(db, offer_id, user.id, is_admin=user.is_admin)
    )
    await cache.invalidate(OFFERS_NAMESPACE)
    return offer
