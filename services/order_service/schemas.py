from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .models import OrderStatus
from .order_code import format_order_code


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    items: list[OrderItemIn] = Field(min_length=1)


class OrderItemResponse(BaseModel):
    product_id: int | None
    product_name: str
    quantity: int
    price: int

    model_config = ConfigDict(from_attributes=True)


class PaymentSummary(BaseModel):
    id: int
    status: str
    amount: int
    payment_url: str
    gateway_invoice_id: str
    paid_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: int
    order_code: str
    user_id: int
    total_amount: int
    status: str
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse]
    payment: PaymentSummary | None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_code=format_order_code(order.id, order.created_at),
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemResponse.model_validate(i) for i in order.items],
            payment=PaymentSummary.model_validate(order.payment) if order.payment else None,
        )


class CheckoutResponse(BaseModel):
    order: OrderResponse
    payment_url: str
    message: str = "Order created successfully"


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderCodeIn(BaseModel):
    order_code: str = Field(min_length=1)
