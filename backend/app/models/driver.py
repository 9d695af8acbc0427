"""
Driver profile and its append-only flag log.

One driver profile per user. Capacity bounds are checked by the service and
backed by a CHECK constraint.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, UniqueConstraint

from app.db.base import Base, TimestampMixin, UTCDateTime, enum_column_type, utcnow


class VehicleType(str, enum.Enum):
    MINI = "mini"
    SEDAN = "sedan"
    SUV = "suv"
    VAN = "van"
    BUS = "bus"


class DriverType(str, enum.Enum):
    STUDENT = "student"
    ORGANIZER = "organizer"


class DriverStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Driver(Base, TimestampMixin):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    capacity = Column(Integer, nullable=False)
    vehicle_type = Column(enum_column_type(VehicleType), nullable=False)
    driver_type = Column(enum_column_type(DriverType), nullable=False)
    status = Column(enum_column_type(DriverStatus), nullable=False, default=DriverStatus.PENDING)
    license_plate = Column(String(20), nullable=True)
    accessibility_features = Column(String(500), nullable=False, default="")

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_driver_user"),
        CheckConstraint("capacity >= 1 AND capacity <= 50", name="check_driver_capacity_range"),
    )

    def __repr__(self) -> str:
        return f"<Driver(id={self.id}, user={self.user_id}, status={self.status})>"


class DriverFlag(Base):
    """Audit entry in a driver's flag log. Rows are inserted, never updated."""

    __tablename__ = "driver_flags"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    reason = Column(String(1000), nullable=False, default="")
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<DriverFlag(driver={self.driver_id}, kind={self.kind})>"
