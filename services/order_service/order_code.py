"""
Human-readable order codes.

    #DDMMYY + five-digit order id     e.g. order 31 created 2025-10-05 -> #05102500031

Codes are never stored. Everything that prints one (order lists, invoices,
QR payloads) and everything that accepts one (sync-status, redirect
confirmation, admin scan) goes through format_order_code, so the re-derived
code can be compared byte for byte against what a client sent.

Ids above 99999 keep only their last five digits. Such a code resolves to the
id modulo 100000 and is then rejected by the re-derivation check unless that
order happens to share the creation date.
"""
import os
import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from shared.errors import InvalidInput

ORDER_CODE_TIMEZONE = ZoneInfo(os.getenv("ORDER_CODE_TIMEZONE", "UTC"))

ID_DIGITS = 5
ID_MODULUS = 10 ** ID_DIGITS

_CODE_RE = re.compile(r"^#(\d{2})(\d{2})(\d{2})(\d{5})$")


def format_order_code(order_id: int, created_at: datetime) -> str:
    if created_at.tzinfo is None:
        # SQLite hands back naive datetimes; everything is written in UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    local = created_at.astimezone(ORDER_CODE_TIMEZONE)
    id_part = f"{order_id % ID_MODULUS:0{ID_DIGITS}d}"
    return f"#{local:%d%m%y}{id_part}"


def parse_order_code(code: str) -> int:
    """Extract the order id from a code. Raises InvalidInput on anything malformed."""
    if not isinstance(code, str):
        raise InvalidInput("Invalid order code format")
    match = _CODE_RE.match(code.strip())
    if not match:
        raise InvalidInput("Invalid order code format")
    order_id = int(match.group(4))
    if order_id == 0:
        raise InvalidInput("Invalid order code format")
    return order_id


def verify_order_code(code: str, order_id: int, created_at: datetime) -> None:
    if format_order_code(order_id, created_at) != code.strip():
        raise InvalidInput("Order code mismatch")
