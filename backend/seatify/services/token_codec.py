"""
Scan token codec.

Wire format (v1), printed into QR codes and therefore long-lived:

    SEATIFY:<seat_id>:<user_id>:<event_id>:<nonce>

The nonce is a fresh uuid4 per booking, so a cancelled-and-rebooked seat gets
a different token than the one printed for the old booking. The namespace
prefix doubles as the format version: a layout change ships under a new prefix
and the old one keeps decoding.

A token may also arrive wrapped as the `data` query parameter of the
auto check-in URL, percent-encoded once.
"""

import uuid
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from seatify.core.config import get_settings
from seatify.core.exceptions import MalformedTokenError

settings = get_settings()

SEPARATOR = ":"
FIELD_COUNT = 5
AUTO_CHECKIN_PATH = "/api/v1/attendance/auto-checkin"
DATA_PARAM = "data"
MAX_PAYLOAD_LENGTH = 2048


@dataclass(frozen=True)
class ScanToken:
    seat_id: int
    user_id: int
    event_id: int
    nonce: str
    namespace: str = settings.TOKEN_NAMESPACE

    @property
    def canonical(self) -> str:
        return SEPARATOR.join(
            [self.namespace, str(self.seat_id), str(self.user_id), str(self.event_id), self.nonce]
        )


def encode(seat_id: int, user_id: int, event_id: int, namespace: Optional[str] = None) -> str:
    """Mint a new token for (seat, user, event) with a random nonce."""
    for name, value in (("seat_id", seat_id), ("user_id", user_id), ("event_id", event_id)):
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")
    token = ScanToken(
        seat_id=seat_id,
        user_id=user_id,
        event_id=event_id,
        nonce=str(uuid.uuid4()),
        namespace=namespace or settings.TOKEN_NAMESPACE,
    )
    return token.canonical


def wrap_in_url(token: str, base_url: Optional[str] = None) -> str:
    """Auto check-in URL carrying the token; this is what the QR image encodes."""
    base = (base_url or settings.SCAN_BASE_URL).rstrip("/")
    return f"{base}{AUTO_CHECKIN_PATH}?{DATA_PARAM}={quote(token, safe='')}"


def _unwrap(raw: str) -> str:
    if "?" not in raw and "://" not in raw:
        return raw

    # Split by hand: the value stays percent-encoded until decode() unquotes it once.
    for pair in urlsplit(raw).query.split("&"):
        key, _, value = pair.partition("=")
        if key == DATA_PARAM:
            return value
    raise MalformedTokenError("QR code URL does not carry a data parameter", reason="missing_data")


def _positive_int(value: str, field: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise MalformedTokenError(f"Invalid QR code: {field} is not numeric", reason="bad_field")
    number = int(value)
    if number <= 0:
        raise MalformedTokenError(f"Invalid QR code: {field} must be positive", reason="bad_field")
    return number


def decode(raw: str, namespace: Optional[str] = None) -> ScanToken:
    """
    Parse a scanned payload into its identifiers.

    Accepts the bare token, a percent-encoded token, or the auto check-in URL
    wrapping either. Raises MalformedTokenError for anything else.
    """
    namespace = namespace or settings.TOKEN_NAMESPACE
    if raw is None or not raw.strip():
        raise MalformedTokenError("QR code data is empty", reason="empty")
    if len(raw) > MAX_PAYLOAD_LENGTH:
        raise MalformedTokenError("QR code data is too long", reason="too_long")

    payload = unquote(_unwrap(raw.strip())).strip()

    parts = payload.split(SEPARATOR)
    if len(parts) != FIELD_COUNT:
        raise MalformedTokenError("Invalid QR code format", reason="field_count")

    prefix, seat, user, event, nonce = parts
    if prefix != namespace:
        raise MalformedTokenError("QR code does not belong to this system", reason="prefix")
    if not nonce:
        raise MalformedTokenError("Invalid QR code: missing nonce", reason="bad_field")

    return ScanToken(
        seat_id=_positive_int(seat, "seat id"),
        user_id=_positive_int(user, "user id"),
        event_id=_positive_int(event, "event id"),
        nonce=nonce,
        namespace=prefix,
    )
