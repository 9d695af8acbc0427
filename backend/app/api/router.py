"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import rooms, rentals, carpools, drivers, tickets

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(rooms.router)
api_router.include_router(rentals.router)
api_router.include_router(carpools.router)
api_router.include_router(drivers.router)
api_router.include_router(tickets.router)
