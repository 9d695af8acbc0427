"""
Carpool offer with seat inventory tracking.

Key design decisions:
- `total_seats` snapshots the driver's capacity at creation; later capacity
  changes do not resize existing offers
- `seats_available` is denormalized (avoids COUNT over passengers) and must
  always equal total_seats - confirmed passengers
- `version` column enables optimistic locking for concurrent joins/leaves
- status is 'full' exactly when seats_available == 0 (for open offers)
"""

import enum

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, UTCDateTime, enum_column_type


class OfferStatus(str, enum.Enum):
    ACTIVE = "active"
    FULL = "full"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


OPEN_OFFER_STATUSES = (OfferStatus.ACTIVE, OfferStatus.FULL)


class CarpoolOffer(Base, TimestampMixin):
    __tablename__ = "carpool_offers"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    total_seats = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    departure_info = Column(String(500), nullable=False)
    departure_address = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    departure_time = Column(UTCDateTime(), nullable=False)
    status = Column(enum_column_type(OfferStatus), nullable=False, default=OfferStatus.ACTIVE)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    driver = relationship("Driver", lazy="joined")

    __table_args__ = (
        # Prevent seat drift at the DB level
        CheckConstraint("seats_available >= 0", name="check_offer_seats_non_negative"),
        CheckConstraint("seats_available <= total_seats", name="check_offer_seats_lte_total"),
        CheckConstraint("total_seats > 0", name="check_offer_total_seats_positive"),
        # Listing query: open offers for an event
        Index("ix_carpool_offers_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<CarpoolOffer(id={self.id}, event={self.event_id}, "
            f"seats={self.seats_available}/{self.total_seats}, status={self.status})>"
        )
