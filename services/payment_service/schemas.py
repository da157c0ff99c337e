from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WebhookPayload(BaseModel):
    """Gateway invoice callback. Only id and status matter; the rest is kept for logs."""
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    status: str | None = None
    external_id: str | None = None


class ReconcileSummary(BaseModel):
    changed: bool
    order_id: int
    old_order_status: str
    new_order_status: str
    old_payment_status: str
    new_payment_status: str
    reason: str | None = None
    paid_at: datetime | None = None
    restored_stock: dict[int, int] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result) -> "ReconcileSummary":
        return cls(
            changed=result.changed,
            order_id=result.order_id,
            old_order_status=result.old_order_status.value,
            new_order_status=result.new_order_status.value,
            old_payment_status=result.old_payment_status.value,
            new_payment_status=result.new_payment_status.value,
            reason=result.reason,
            paid_at=result.paid_at,
            restored_stock=result.restored_stock,
        )


class WebhookResponse(BaseModel):
    message: str = "Webhook processed successfully"
    result: ReconcileSummary


class CheckStatusIn(BaseModel):
    order_id: int


class PaymentStatusResponse(BaseModel):
    order_id: int
    order_code: str
    changed: bool
    status: str
    payment_status: str
    status_label: str
    gateway_status: str | None = None


class PendingCheckEntry(BaseModel):
    order_id: int
    order_code: str
    changed: bool = False
    status: str
    payment_status: str
    status_label: str
    error: str | None = None


class PendingCheckResponse(BaseModel):
    message: str = "Payment status check completed"
    updates: list[PendingCheckEntry]


class RedirectConfirmResponse(BaseModel):
    order_id: int
    order_code: str
    already_paid: bool
    changed: bool
    status: str
    payment_status: str
    status_label: str
    confirmed_at: datetime | None = None
