"""
Room model (a rentable, time-boxed resource).

Key design decisions:
- `version` is bumped by every rental write on the room, which serializes
  overlap-check-then-insert and approval re-checks per room
- Availability window is optional on both ends
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint

from app.db.base import Base, TimestampMixin, UTCDateTime, enum_column_type


class RoomStatus(str, enum.Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNDER_MAINTENANCE = "under_maintenance"


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    room_info = Column(String(2000), nullable=True)
    capacity = Column(Integer, nullable=False)
    status = Column(enum_column_type(RoomStatus), nullable=False, default=RoomStatus.ENABLED)
    availability_start = Column(UTCDateTime(), nullable=True)
    availability_end = Column(UTCDateTime(), nullable=True)
    amenities = Column(String(1000), nullable=False, default="")
    hourly_rate = Column(Numeric(10, 2), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
    )

    @property
    def is_enabled(self) -> bool:
        return self.status == RoomStatus.ENABLED

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, name={self.name}, status={self.status})>"
