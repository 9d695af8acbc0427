"""
Ticket token endpoints: owner token/QR lookup and door scanning.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import unwrap
from app.db.session import get_db
from app.models.user import User, UserRole
from app.schemas.ticket import ScanRequest, ScanResponse, TicketTokenResponse
from app.services import ticket_service
from app.services.ticket_signing_service import TicketSigner, get_ticket_signer
from app.core.security import get_current_user, get_current_user_id

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/{ticket_id}/token", response_model=TicketTokenResponse)
async def ticket_token_endpoint(
    ticket_id: int,
    user_id: int = Depends(get_current_user_id),
    signer: TicketSigner = Depends(get_ticket_signer),
    db: AsyncSession = Depends(get_db),
):
    token = unwrap(await ticket_service.get_ticket_token(db, ticket_id, user_id, signer))
    return TicketTokenResponse(ticket_id=ticket_id, token=token)


@router.get("/{ticket_id}/qr", response_class=Response)
async def ticket_qr_endpoint(
    ticket_id: int,
    user_id: int = Depends(get_current_user_id),
    signer: TicketSigner = Depends(get_ticket_signer),
    db: AsyncSession = Depends(get_db),
):
    """The ticket's QR code as PNG. Recomputed on every call, never stored."""
    token = unwrap(await ticket_service.get_ticket_token(db, ticket_id, user_id, signer))
    return Response(content=ticket_service.render_qr_png(token), media_type="image/png")


@router.post("/scan", response_model=ScanResponse)
async def scan_ticket_endpoint(
    body: ScanRequest,
    user: User = Depends(get_current_user),
    signer: TicketSigner = Depends(get_ticket_signer),
    db: AsyncSession = Depends(get_db),
):
    """
    Verify a scanned token at the door. Forged, expired or revoked tickets
    get 401 with the rejection code in the X-Rejection-Code header.
    """
    if user.role not in (UserRole.ORGANIZER, UserRole.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organizers can scan tickets",
        )
    payload = unwrap(await ticket_service.scan_ticket(db, body.token, signer, event_id=body.event_id))
    return ScanResponse(
        event_id=payload.event_id,
        ticket_id=payload.ticket_id,
        unique_code=payload.unique_code,
        expiry=payload.expiry,
    )
