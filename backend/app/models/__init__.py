from app.models.user import User, UserRole
from app.models.event import Event
from app.models.ticket import Ticket
from app.models.room import Room, RoomStatus
from app.models.room_rental import RoomRental, RentalStatus
from app.models.driver import Driver, DriverFlag, DriverStatus, DriverType, VehicleType
from app.models.carpool_offer import CarpoolOffer, OfferStatus
from app.models.carpool_passenger import CarpoolPassenger, PassengerStatus

__all__ = [
    "User", "UserRole",
    "Event",
    "Ticket",
    "Room", "RoomStatus",
    "RoomRental", "RentalStatus",
    "Driver", "DriverFlag", "DriverStatus", "DriverType", "VehicleType",
    "CarpoolOffer", "OfferStatus",
    "CarpoolPassenger", "PassengerStatus",
]
