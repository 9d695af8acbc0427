"""
HMAC-signed ticket tokens for QR codes.

TOKEN FORMAT
============

The token is a compact JSON container:

    {"payload": <base64url(payload_json)>, "signature": <base64url(hmac)>}

payload_json is canonical JSON (sorted keys, no whitespace) of:

    {"eventId", "expiry", "ticketId", "uniqueCode", "version"}

expiry is the event date + 24h as an ISO-8601 UTC instant.

Signing is deterministic: no nonce, no timestamp of issuance. The same ticket
always yields the same token, so the QR image can be recomputed on demand and
nothing has to be stored. Do not add a random nonce without also persisting
it, or previously printed tickets stop matching their recomputed token.

Verification gates, in order:
  1. container parses, canonical  -> else MALFORMED
     base64url in both fields
  2. HMAC matches (constant time) -> else SIGNATURE_INVALID
  3. payload parses               -> else MALFORMED
  4. version supported            -> else UNSUPPORTED_VERSION
  5. now <= expiry                -> else EXPIRED

A bad token is a reported outcome, never an exception. The only exception
this module raises is TicketSigningConfigError, at construction time.
"""

import base64
import binascii
import enum
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Union

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_ticket_verification
from app.services.result import Err, ErrorKind, Ok, Result

logger = get_logger(__name__)

MIN_KEY_BYTES = 32


class TicketSigningConfigError(RuntimeError):
    """Signing key missing or too short. Fatal at startup."""


class TokenRejection(str, enum.Enum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    UNSUPPORTED_VERSION = "unsupported_version"
    EXPIRED = "expired"
    # Scan-time checks against the ticket row
    REVOKED = "revoked"
    WRONG_EVENT = "wrong_event"


@dataclass(frozen=True)
class TicketPayload:
    version: int
    event_id: int
    ticket_id: int
    unique_code: str
    expiry: datetime

    def to_json_bytes(self) -> bytes:
        doc = {
            "version": self.version,
            "eventId": self.event_id,
            "ticketId": self.ticket_id,
            "uniqueCode": self.unique_code,
            "expiry": self.expiry.isoformat(),
        }
        return json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, raw: bytes) -> "TicketPayload":
        doc = json.loads(raw.decode("utf-8"))
        if not isinstance(doc, dict):
            raise ValueError("payload is not an object")
        expiry = datetime.fromisoformat(doc["expiry"])
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        version, event_id, ticket_id = doc["version"], doc["eventId"], doc["ticketId"]
        unique_code = doc["uniqueCode"]
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (version, event_id, ticket_id)):
            raise ValueError("numeric fields must be integers")
        if not isinstance(unique_code, str):
            raise ValueError("uniqueCode must be a string")
        return cls(
            version=version,
            event_id=event_id,
            ticket_id=ticket_id,
            unique_code=unique_code,
            expiry=expiry.astimezone(timezone.utc),
        )


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def _b64decode(text: str) -> bytes:
    """Strict base64url: only the canonical encoding of the bytes is accepted."""
    raw = base64.urlsafe_b64decode(text.encode("ascii"))
    # The decoder ignores unused low bits of the last character
    if _b64encode(raw) != text:
        raise ValueError("non-canonical base64")
    return raw


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _reject(code: TokenRejection, message: str) -> Err:
    record_ticket_verification(code.value)
    logger.warning("ticket_verification_failed", reason=code.value, detail=message)
    return Err(ErrorKind.INTEGRITY, message, code=code)


class TicketSigner:
    """
    Stateless signer/verifier. Thread-safe; build once per process.

    Usage:
        signer = TicketSigner(key)
        token = signer.sign(event_id=1, ticket_id=7, unique_code="TKT-1", event_date=date)
        result = signer.verify(token)
        if result.ok:
            payload = result.value
    """

    def __init__(
        self,
        signing_key: Union[str, bytes, None],
        token_version: int = 1,
        expiry_grace: timedelta = timedelta(hours=24),
    ):
        if not signing_key:
            raise TicketSigningConfigError(
                "TICKET_SIGNING_KEY is not configured. "
                "Generate one with: openssl rand -base64 48"
            )
        key = signing_key.encode("utf-8") if isinstance(signing_key, str) else bytes(signing_key)
        if len(key) < MIN_KEY_BYTES:
            raise TicketSigningConfigError(
                f"TICKET_SIGNING_KEY must be at least {MIN_KEY_BYTES} bytes, got {len(key)}"
            )
        self._key = key
        self.token_version = token_version
        self.expiry_grace = expiry_grace

    def _mac(self, payload_bytes: bytes) -> bytes:
        return hmac.new(self._key, payload_bytes, hashlib.sha256).digest()

    def sign(self, event_id: int, ticket_id: int, unique_code: str, event_date: datetime) -> str:
        payload = TicketPayload(
            version=self.token_version,
            event_id=event_id,
            ticket_id=ticket_id,
            unique_code=unique_code,
            expiry=_as_utc(event_date) + self.expiry_grace,
        )
        payload_bytes = payload.to_json_bytes()
        container = {
            "payload": _b64encode(payload_bytes),
            "signature": _b64encode(self._mac(payload_bytes)),
        }
        return json.dumps(container, sort_keys=True, separators=(",", ":"))

    def verify(self, token: str, now: Optional[datetime] = None) -> Result[TicketPayload]:
        try:
            container = json.loads(token)
        except (TypeError, ValueError):
            return _reject(TokenRejection.MALFORMED, "Malformed token")

        if not isinstance(container, dict):
            return _reject(TokenRejection.MALFORMED, "Malformed token")
        encoded_payload = container.get("payload")
        encoded_signature = container.get("signature")
        if not isinstance(encoded_payload, str) or not isinstance(encoded_signature, str):
            return _reject(TokenRejection.MALFORMED, "Malformed token")
        if not encoded_payload or not encoded_signature:
            return _reject(TokenRejection.MALFORMED, "Malformed token")

        try:
            payload_bytes = _b64decode(encoded_payload)
            provided_signature = _b64decode(encoded_signature)
        except (binascii.Error, ValueError):
            return _reject(TokenRejection.MALFORMED, "Malformed token encoding")

        if not hmac.compare_digest(self._mac(payload_bytes), provided_signature):
            return _reject(
                TokenRejection.SIGNATURE_INVALID,
                "Invalid signature - token may be forged or tampered",
            )

        try:
            payload = TicketPayload.from_json_bytes(payload_bytes)
        except (KeyError, TypeError, ValueError):
            return _reject(TokenRejection.MALFORMED, "Invalid payload")

        if payload.version != self.token_version:
            return _reject(
                TokenRejection.UNSUPPORTED_VERSION,
                f"Unsupported token version: {payload.version}",
            )

        current = _as_utc(now) if now else datetime.now(timezone.utc)
        if current > payload.expiry:
            return _reject(
                TokenRejection.EXPIRED,
                f"Token expired on {payload.expiry:%Y-%m-%d %H:%M} UTC",
            )

        record_ticket_verification("valid")
        return Ok(payload)


@lru_cache()
def get_ticket_signer() -> TicketSigner:
    """Process-wide signer built from settings. Raises on a bad key."""
    settings = get_settings()
    return TicketSigner(
        settings.TICKET_SIGNING_KEY,
        token_version=settings.TICKET_TOKEN_VERSION,
        expiry_grace=timedelta(hours=settings.TICKET_EXPIRY_GRACE_HOURS),
    )
