"""
Passenger seat on a carpool offer.

A user holds at most one non-cancelled record per offer (checked by the
ledger under the offer's version lock).
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Index

from app.db.base import Base, TimestampMixin, UTCDateTime, enum_column_type, utcnow


class PassengerStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class CarpoolPassenger(Base, TimestampMixin):
    __tablename__ = "carpool_passengers"

    id = Column(Integer, primary_key=True, index=True)
    offer_id = Column(Integer, ForeignKey("carpool_offers.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(enum_column_type(PassengerStatus), nullable=False, default=PassengerStatus.CONFIRMED)
    pickup_location = Column(String(500), nullable=True)
    notes = Column(String(1000), nullable=True)
    joined_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_carpool_passengers_offer_status", "offer_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<CarpoolPassenger(id={self.id}, offer={self.offer_id}, user={self.passenger_id}, status={self.status})>"
