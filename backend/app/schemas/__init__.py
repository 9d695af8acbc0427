from app.schemas.room import (
    RoomCreate, RoomUpdate, RoomResponse, RoomStatusChange,
    RentalCreate, RentalDecision, RentalResponse, ActionResponse,
)
from app.schemas.carpool import (
    DriverCreate, DriverUpdate, DriverResponse, DriverSuspend, DriverFlagResponse,
    OfferCreate, OfferResponse, OfferListResponse,
    JoinRequest, ReassignRequest, PassengerResponse, UserCarpoolsResponse,
)
from app.schemas.ticket import TicketTokenResponse, ScanRequest, ScanResponse

__all__ = [
    "RoomCreate", "RoomUpdate", "RoomResponse", "RoomStatusChange",
    "RentalCreate", "RentalDecision", "RentalResponse", "ActionResponse",
    "DriverCreate", "DriverUpdate", "DriverResponse", "DriverSuspend", "DriverFlagResponse",
    "OfferCreate", "OfferResponse", "OfferListResponse",
    "JoinRequest", "ReassignRequest", "PassengerResponse", "UserCarpoolsResponse",
    "TicketTokenResponse", "ScanRequest", "ScanResponse",
]
