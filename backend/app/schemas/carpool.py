"""
Pydantic schemas for drivers, carpool offers and passengers.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.carpool_offer import OfferStatus
from app.models.carpool_passenger import PassengerStatus
from app.models.driver import DriverStatus, DriverType, VehicleType


class DriverCreate(BaseModel):
    capacity: int
    vehicle_type: VehicleType
    driver_type: DriverType
    license_plate: Optional[str] = Field(None, max_length=20)
    accessibility_features: str = Field("", max_length=500)


class DriverUpdate(BaseModel):
    capacity: Optional[int] = None
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = Field(None, max_length=20)
    accessibility_features: Optional[str] = Field(None, max_length=500)


class DriverResponse(BaseModel):
    id: int
    user_id: int
    capacity: int
    vehicle_type: VehicleType
    driver_type: DriverType
    status: DriverStatus
    license_plate: Optional[str]
    accessibility_features: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DriverSuspend(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class DriverFlagResponse(BaseModel):
    id: int
    driver_id: int
    kind: str
    reason: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OfferCreate(BaseModel):
    event_id: int
    departure_info: str = Field(..., min_length=1, max_length=500)
    departure_time: datetime
    departure_address: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class OfferResponse(BaseModel):
    id: int
    driver_id: int
    event_id: int
    total_seats: int
    seats_available: int
    departure_info: str
    departure_address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    departure_time: datetime
    status: OfferStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]
    total: int
    cached: bool = False


class JoinRequest(BaseModel):
    pickup_location: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)


class ReassignRequest(BaseModel):
    new_offer_id: int


class PassengerResponse(BaseModel):
    id: int
    offer_id: int
    passenger_id: int
    status: PassengerStatus
    pickup_location: Optional[str]
    notes: Optional[str]
    joined_at: datetime

    model_config = {"from_attributes": True}


class UserCarpoolsResponse(BaseModel):
    as_driver: list[OfferResponse]
    as_passenger: list[PassengerResponse]
