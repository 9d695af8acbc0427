"""
Pydantic schemas for rooms and room rentals.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from app.models.room import RoomStatus
from app.models.room_rental import RentalStatus


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=500)
    capacity: int
    room_info: Optional[str] = Field(None, max_length=2000)
    amenities: str = Field("", max_length=1000)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    capacity: Optional[int] = None
    room_info: Optional[str] = Field(None, max_length=2000)
    amenities: Optional[str] = Field(None, max_length=1000)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None


class RoomResponse(BaseModel):
    id: int
    organizer_id: int
    name: str
    address: str
    room_info: Optional[str]
    capacity: int
    status: RoomStatus
    amenities: str
    hourly_rate: Optional[Decimal]
    availability_start: Optional[datetime]
    availability_end: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class RoomStatusChange(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class RentalCreate(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    purpose: Optional[str] = Field(None, max_length=1000)
    expected_attendees: Optional[int] = Field(None, gt=0)


class RentalDecision(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=1000)


class RentalResponse(BaseModel):
    id: int
    room_id: int
    renter_id: int
    start_time: datetime
    end_time: datetime
    status: RentalStatus
    purpose: Optional[str]
    expected_attendees: Optional[int]
    total_cost: Optional[Decimal]
    admin_notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class ActionResponse(BaseModel):
    message: str
