"""
Log-only notifier. Default backend for development and tests.
"""

from typing import Optional, Sequence

from app.core.logging import get_logger
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class LogNotifier(Notifier):
    """Writes one structured log event per notification."""

    async def notify_booking_approved(self, rental_id: int) -> None:
        logger.info("notify_booking_approved", rental_id=rental_id)

    async def notify_booking_rejected(self, rental_id: int, reason: Optional[str] = None) -> None:
        logger.info("notify_booking_rejected", rental_id=rental_id, reason=reason)

    async def notify_resource_disabled(self, room_id: int, rental_ids: Sequence[int] = ()) -> None:
        logger.info("notify_resource_disabled", room_id=room_id, rental_ids=list(rental_ids))
