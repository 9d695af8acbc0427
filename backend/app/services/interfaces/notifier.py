"""
Notification collaborator interface.
Allows swapping delivery mechanisms without touching the booking logic.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence


class Notifier(ABC):
    """
    Receives booking state changes after they are committed.

    Implementations:
    - LogNotifier: structured log line only
    - RedisNotifier: publish to a Redis channel for downstream delivery

    Calls are fire-and-forget: implementations must not raise, and the
    caller never rolls back a committed transition because of them.
    """

    @abstractmethod
    async def notify_booking_approved(self, rental_id: int) -> None:
        """A pending rental was approved."""
        pass

    @abstractmethod
    async def notify_booking_rejected(self, rental_id: int, reason: Optional[str] = None) -> None:
        """A pending rental was rejected (by a person or by a room disable)."""
        pass

    @abstractmethod
    async def notify_resource_disabled(self, room_id: int, rental_ids: Sequence[int] = ()) -> None:
        """
        A room was disabled.

        Args:
            room_id: The disabled room
            rental_ids: Approved rentals on that room that have not ended yet
        """
        pass
