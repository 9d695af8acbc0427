"""
RoomRental model: one booking of a room for a half-open time range.

Status flow: pending -> approved | rejected, approved -> cancelled | completed,
pending -> cancelled. Rejected, cancelled and completed are terminal.
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, UTCDateTime, enum_column_type


class RentalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold a claim on the room's calendar
BLOCKING_STATUSES = (RentalStatus.PENDING, RentalStatus.APPROVED)
CANCELLABLE_STATUSES = (RentalStatus.PENDING, RentalStatus.APPROVED)


class RoomRental(Base, TimestampMixin):
    __tablename__ = "room_rentals"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    renter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    status = Column(enum_column_type(RentalStatus), nullable=False, default=RentalStatus.PENDING)
    purpose = Column(String(1000), nullable=True)
    expected_attendees = Column(Integer, nullable=True)
    total_cost = Column(Numeric(10, 2), nullable=True)
    admin_notes = Column(String(1000), nullable=True)

    room = relationship("Room", lazy="joined")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_rental_time_range"),
        # Overlap queries filter on room + status and compare both bounds
        Index("ix_room_rentals_room_status_start", "room_id", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<RoomRental(id={self.id}, room={self.room_id}, "
            f"{self.start_time}->{self.end_time}, status={self.status})>"
        )
