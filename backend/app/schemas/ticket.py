"""
Pydantic schemas for ticket tokens and scans.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class TicketTokenResponse(BaseModel):
    ticket_id: int
    token: str


class ScanRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=4096)
    event_id: Optional[int] = None


class ScanResponse(BaseModel):
    valid: bool = True
    event_id: int
    ticket_id: int
    unique_code: str
    expiry: datetime
