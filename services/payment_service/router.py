from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.config.database import get_session_factory
from shared.observability import webhook_deliveries_total
from shared.security import PUBLIC_LOOKUP_LIMIT, get_current_user, limiter, require_webhook_token
from services.order_service.order_code import format_order_code
from services.order_service.schemas import OrderCodeIn
from services.payment_gateway.client import PaymentGatewayClient
from services.payment_gateway.dependencies import get_gateway

from .reconciliation import ReconcileResult
from .schemas import (
    CheckStatusIn,
    PaymentStatusResponse,
    PendingCheckEntry,
    PendingCheckResponse,
    ReconcileSummary,
    RedirectConfirmResponse,
    WebhookPayload,
    WebhookResponse,
)
from .service import PaymentService
from .status_mapper import customer_label

router = APIRouter(prefix="/payments", tags=["Payments"])
webhook_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _status_response(order, result: ReconcileResult, gateway_status: str | None) -> PaymentStatusResponse:
    return PaymentStatusResponse(
        order_id=order.id,
        order_code=format_order_code(order.id, order.created_at),
        changed=result.changed,
        status=result.new_order_status.value,
        payment_status=result.new_payment_status.value,
        status_label=customer_label(result.new_payment_status),
        gateway_status=gateway_status,
    )


@webhook_router.post("/gateway", response_model=WebhookResponse, dependencies=[Depends(require_webhook_token)])
async def gateway_webhook(
    payload: WebhookPayload,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    result = await PaymentService.handle_webhook(session_factory, payload)
    if result is None:
        webhook_deliveries_total.labels(result="unknown_invoice").inc()
        return JSONResponse(status_code=404, content={"detail": "Payment not found"})

    webhook_deliveries_total.labels(result="processed").inc()
    return WebhookResponse(result=ReconcileSummary.from_result(result))


@router.post("/check-status", response_model=PaymentStatusResponse)
async def check_status(
    payload: CheckStatusIn,
    user_id: int = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    order, invoice, result = await PaymentService.check_status(session_factory, gateway, payload.order_id, user_id)
    return _status_response(order, result, invoice.status)


@router.get("/check-status", response_model=PendingCheckResponse)
async def check_pending(
    user_id: int = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    outcomes = await PaymentService.sweep_pending(session_factory, gateway, user_id)
    updates = []
    for order, result, error in outcomes:
        if result is None:
            updates.append(
                PendingCheckEntry(
                    order_id=order.id,
                    order_code=format_order_code(order.id, order.created_at),
                    status=order.status,
                    payment_status=order.payment.status,
                    status_label=customer_label(order.payment.status),
                    error=error,
                )
            )
            continue
        updates.append(
            PendingCheckEntry(
                order_id=order.id,
                order_code=format_order_code(order.id, order.created_at),
                changed=result.changed,
                status=result.new_order_status.value,
                payment_status=result.new_payment_status.value,
                status_label=customer_label(result.new_payment_status),
            )
        )
    return PendingCheckResponse(updates=updates)


@router.post("/sync-status", response_model=PaymentStatusResponse)
@limiter.limit(PUBLIC_LOOKUP_LIMIT)
async def sync_status(
    request: Request,
    payload: OrderCodeIn,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    order, invoice, result = await PaymentService.sync_by_code(session_factory, gateway, payload.order_code)
    return _status_response(order, result, invoice.status)


@router.post("/confirm-redirect", response_model=RedirectConfirmResponse)
@limiter.limit(PUBLIC_LOOKUP_LIMIT)
async def confirm_redirect(
    request: Request,
    payload: OrderCodeIn,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    order, result, already_paid = await PaymentService.confirm_redirect(session_factory, payload.order_code)
    return RedirectConfirmResponse(
        order_id=order.id,
        order_code=format_order_code(order.id, order.created_at),
        already_paid=already_paid,
        changed=result.changed,
        status=result.new_order_status.value,
        payment_status=result.new_payment_status.value,
        status_label=customer_label(result.new_payment_status),
        confirmed_at=result.paid_at,
    )
