"""
Entry points that feed the reconciliation engine.

Each adapter knows how to find the order and where the observed status comes
from; the engine decides what, if anything, changes.

    webhook          gateway push, order found by invoice id
    poll             signed-in customer, order found by id, live invoice read
    sweep            signed-in customer, every pending order, live invoice reads
    sync             public, order found by verified order code, live invoice read
    success_redirect public, order found by verified order code, no gateway call
"""
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.errors import InvalidInput, NotFound
from services.order_service.models import Order, SETTLED_ORDER_STATUSES, OrderStatus
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from services.payment_gateway.client import GatewayError, PaymentGatewayClient
from services.payment_gateway.schemas import Invoice

from .models import PaymentStatus
from .reconciliation import REASON_TERMINAL_STATE, ReconcileResult, ReconciliationEngine
from .repository import PaymentRepository
from .schemas import WebhookPayload
from .status_mapper import GatewayStatus

logger = structlog.get_logger(__name__)


class PaymentService:

    @staticmethod
    async def handle_webhook(
        session_factory: async_sessionmaker[AsyncSession], payload: WebhookPayload
    ) -> ReconcileResult | None:
        """
        Returns None when the invoice id is not ours; test invoices and other
        integrations legitimately produce those, so it is not an error.
        Replayed deliveries are harmless: the engine no-ops on the second one.
        """
        if not payload.id or not payload.status:
            raise InvalidInput("Invalid webhook data")

        async with session_factory() as db:
            payment = await PaymentRepository.get_by_invoice_id(db, payload.id)
        if payment is None:
            logger.info("webhook_unknown_invoice", invoice_id=payload.id, status=payload.status)
            return None

        engine = ReconciliationEngine(session_factory)
        return await engine.reconcile(payment.order_id, payload.status, source="webhook")

    @staticmethod
    async def check_status(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        order_id: int,
        user_id: int,
    ) -> tuple[Order, Invoice, ReconcileResult]:
        async with session_factory() as db:
            order = await OrderRepository.get_user_order(db, order_id, user_id)
        if not order or not order.payment:
            raise NotFound("Order or payment not found")

        invoice = await gateway.get_invoice(order.payment.gateway_invoice_id)
        engine = ReconciliationEngine(session_factory)
        result = await engine.reconcile(order.id, invoice.status, source="poll")
        return order, invoice, result

    @staticmethod
    async def sweep_pending(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        user_id: int,
    ) -> list[tuple[Order, ReconcileResult | None, str | None]]:
        """
        Re-check every order of the user that is still waiting on its payment.
        A gateway failure for one order is reported for that order and leaves
        its state alone; it never stands in for a status.
        """
        async with session_factory() as db:
            orders = await OrderRepository.list_user_pending_orders(db, user_id)

        engine = ReconciliationEngine(session_factory)
        outcomes = []
        for order in orders:
            try:
                invoice = await gateway.get_invoice(order.payment.gateway_invoice_id)
            except GatewayError as e:
                logger.warning("sweep_gateway_failed", order_id=order.id, error=str(e))
                outcomes.append((order, None, "Payment gateway unavailable"))
                continue
            result = await engine.reconcile(order.id, invoice.status, source="sweep")
            outcomes.append((order, result, None))
        return outcomes

    @staticmethod
    async def sync_by_code(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        order_code: str,
    ) -> tuple[Order, Invoice, ReconcileResult]:
        order = await PaymentService._order_for_code(session_factory, order_code)

        invoice = await gateway.get_invoice(order.payment.gateway_invoice_id)
        engine = ReconciliationEngine(session_factory)
        result = await engine.reconcile(order.id, invoice.status, source="sync")
        return order, invoice, result

    @staticmethod
    async def confirm_redirect(
        session_factory: async_sessionmaker[AsyncSession], order_code: str
    ) -> tuple[Order, ReconcileResult, bool]:
        """
        The customer came back through the gateway's success redirect.

        Trust boundary: landing on the success URL is taken as proof of payment
        and the order is marked PAID without asking the gateway. This covers
        webhooks that are late or blocked. The order code check is the only
        thing standing between a forged redirect and a paid order.
        """
        order = await PaymentService._order_for_code(session_factory, order_code)
        if OrderStatus(order.status) in SETTLED_ORDER_STATUSES:
            result = ReconcileResult.unchanged(
                order.id, OrderStatus(order.status), PaymentStatus(order.payment.status), REASON_TERMINAL_STATE
            )
            return order, result, True

        engine = ReconciliationEngine(session_factory)
        result = await engine.reconcile(order.id, GatewayStatus.PAID, source="success_redirect")
        already_paid = not result.changed and result.reason == REASON_TERMINAL_STATE
        return order, result, already_paid

    @staticmethod
    async def _order_for_code(session_factory: async_sessionmaker[AsyncSession], order_code: str) -> Order:
        async with session_factory() as db:
            order = await OrderService.get_order_by_code(db, order_code)
        if not order.payment:
            raise NotFound("Order or payment not found")
        return order
