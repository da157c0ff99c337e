"""
Translate the gateway's status vocabulary into ours.

Pure and total: any input, including None or garbage, maps to something.
"""
import enum
from typing import NamedTuple

from services.order_service.models import OrderStatus
from .models import PaymentStatus


class GatewayStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SETTLED = "SETTLED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw) -> "GatewayStatus":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.UNKNOWN
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class StatusMapping(NamedTuple):
    payment_status: PaymentStatus
    # None means "leave the order where it is"
    order_status: OrderStatus | None


_MAPPING = {
    GatewayStatus.PAID: StatusMapping(PaymentStatus.PAID, OrderStatus.PAID),
    GatewayStatus.SETTLED: StatusMapping(PaymentStatus.PAID, OrderStatus.PAID),
    GatewayStatus.EXPIRED: StatusMapping(PaymentStatus.EXPIRED, None),
    GatewayStatus.FAILED: StatusMapping(PaymentStatus.FAILED, None),
}

_UNCHANGED = StatusMapping(PaymentStatus.PENDING, None)


def map_gateway_status(raw) -> StatusMapping:
    return _MAPPING.get(GatewayStatus.parse(raw), _UNCHANGED)


_CUSTOMER_LABELS = {
    PaymentStatus.PAID: "paid",
    PaymentStatus.PENDING: "pending",
    PaymentStatus.EXPIRED: "expired",
    PaymentStatus.FAILED: "failed",
}


def customer_label(payment_status) -> str:
    try:
        return _CUSTOMER_LABELS[PaymentStatus(payment_status)]
    except ValueError:
        return "pending"
