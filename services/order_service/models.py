import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from shared.config.database import Base
from services.product_service.models import Product  # noqa: F401  (registers the products table)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PICKED_UP = "PICKED_UP"
    COMPLETED = "COMPLETED"


# Forward-only fulfilment sequence
ORDER_STATUS_SEQUENCE = [
    OrderStatus.AWAITING_PAYMENT,
    OrderStatus.PAID,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.PICKED_UP,
    OrderStatus.COMPLETED,
]

# Statuses payment reconciliation must never touch
SETTLED_ORDER_STATUSES = frozenset(ORDER_STATUS_SEQUENCE[1:])


def next_order_status(current: OrderStatus) -> OrderStatus | None:
    idx = ORDER_STATUS_SEQUENCE.index(current)
    if idx + 1 < len(ORDER_STATUS_SEQUENCE):
        return ORDER_STATUS_SEQUENCE[idx + 1]
    return None


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    total_amount = Column(Integer, nullable=False) # fixed at checkout, never recomputed
    status = Column(String(32), nullable=False, default=OrderStatus.AWAITING_PAYMENT.value, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    payment = relationship("Payment", back_populates="order", uselist=False)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    # Nullable so a deleted product leaves the purchase snapshot intact
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False) # unit price snapshot

    order = relationship("Order", back_populates="items")
