"""
Ticket token lookup, QR rendering and scan-time checks.

Tokens are never stored. The owner's token is recomputed from the ticket row
and its event date each time, and a scan verifies the token first and then
confirms the ticket it names still exists unchanged.
"""

import io
from datetime import datetime
from typing import Optional

import qrcode
from qrcode import constants
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_ticket_verification
from app.models.event import Event
from app.models.ticket import Ticket
from app.services.result import Err, ErrorKind, Ok, Result, forbidden, not_found
from app.services.ticket_signing_service import TicketPayload, TicketSigner, TokenRejection

logger = get_logger(__name__)


async def get_ticket_token(
    db: AsyncSession, ticket_id: int, user_id: int, signer: TicketSigner
) -> Result[str]:
    """Recompute the signed token for a ticket. Owner only."""
    row = (
        await db.execute(
            select(Ticket, Event.date)
            .join(Event, Ticket.event_id == Event.id)
            .where(Ticket.id == ticket_id)
        )
    ).first()
    if row is None:
        return not_found("Ticket not found")

    ticket, event_date = row
    if ticket.user_id != user_id:
        return forbidden("You can only view your own tickets")

    token = signer.sign(
        event_id=ticket.event_id,
        ticket_id=ticket.id,
        unique_code=ticket.unique_code,
        event_date=event_date,
    )
    return Ok(token)


def render_qr_png(token: str, box_size: int = 10, border: int = 4) -> bytes:
    """Render a token as a PNG QR code."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(token)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


async def scan_ticket(
    db: AsyncSession,
    token: str,
    signer: TicketSigner,
    event_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Result[TicketPayload]:
    """
    Verify a scanned token. A valid signature is not enough: the ticket must
    still exist with the same code and event, so deleted or re-issued tickets
    are refused. When event_id is given the ticket must belong to it.
    """
    verified = signer.verify(token, now=now)
    if not verified.ok:
        return verified

    payload = verified.value
    ticket = await db.get(Ticket, payload.ticket_id)
    if (
        ticket is None
        or ticket.unique_code != payload.unique_code
        or ticket.event_id != payload.event_id
    ):
        record_ticket_verification("revoked")
        logger.warning("ticket_scan_revoked", ticket_id=payload.ticket_id)
        return Err(
            ErrorKind.INTEGRITY,
            "Ticket is no longer valid",
            code=TokenRejection.REVOKED,
        )

    if event_id is not None and payload.event_id != event_id:
        logger.warning("ticket_scan_wrong_event", ticket_id=ticket.id, expected_event_id=event_id)
        return Err(ErrorKind.INTEGRITY, "Ticket is for a different event", code=TokenRejection.WRONG_EVENT)

    logger.info("ticket_scanned", ticket_id=ticket.id, event_id=ticket.event_id)
    return Ok(payload, "Ticket is valid")
