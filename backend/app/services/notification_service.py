"""
Redis pub/sub notifier.

Publishes one JSON message per committed transition to
settings.NOTIFICATION_CHANNEL. Delivery (email, in-app) is done by whatever
subscribes to the channel; message wording is not this service's concern.

Failure policy:
  Notifications are fire-and-forget. If Redis is down the transition has
  already committed, so we log, count the failure and move on.
"""

import json
from typing import Any, Optional, Sequence

from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_notification_failure
from app.infrastructure.redis_client import get_redis
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class RedisNotifier(Notifier):
    """Publishes notifications to a Redis channel."""

    def __init__(self, channel: Optional[str] = None):
        self.channel = channel or get_settings().NOTIFICATION_CHANNEL

    async def _publish(self, kind: str, **data: Any) -> None:
        client = await get_redis()
        if client is None:
            record_notification_failure(kind)
            logger.warning("notification_dropped", kind=kind, reason="redis_unavailable", **data)
            return

        message = json.dumps({"type": kind, **data})
        try:
            await client.publish(self.channel, message)
            logger.info("notification_published", kind=kind, channel=self.channel, **data)
        except (RedisError, OSError) as e:
            record_notification_failure(kind)
            logger.error("notification_publish_failed", kind=kind, error=str(e), **data)

    async def notify_booking_approved(self, rental_id: int) -> None:
        await self._publish("booking_approved", rental_id=rental_id)

    async def notify_booking_rejected(self, rental_id: int, reason: Optional[str] = None) -> None:
        await self._publish("booking_rejected", rental_id=rental_id, reason=reason)

    async def notify_resource_disabled(self, room_id: int, rental_ids: Sequence[int] = ()) -> None:
        await self._publish("resource_disabled", room_id=room_id, rental_ids=list(rental_ids))
