"""
Order/payment reconciliation engine.

Given an order id and a gateway status that somebody already observed
(webhook body, live invoice read, or the trusted success redirect), decide
whether the order/payment pair has to move and, if so, move it in a single
transaction. No network I/O happens here.

Rules, in the order they are checked:

1. The order must exist and have a payment (NotFound otherwise).
2. Orders at PAID or beyond are never touched by payment signals.
3. Only a PENDING payment can transition; PAID, FAILED and EXPIRED are final.
4. If the mapped target equals the current state nothing is written.
5. Otherwise payment and order are written with conditional UPDATEs and, for
   an expiry, every item's quantity goes back to stock, all in one commit.

Rows are read with SELECT ... FOR UPDATE so concurrent reconciles of the same
order serialize on PostgreSQL. The conditional UPDATEs (WHERE status = <what
we read>) cover backends without row locks: if a competing writer got there
first the update matches nothing, the transaction is rolled back and the call
reports a no-op.
"""
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.errors import NotFound
from shared.observability import payment_reconcile_total
from services.order_service.models import OrderStatus, SETTLED_ORDER_STATUSES, utcnow
from services.order_service.repository import OrderRepository
from services.product_service.repository import ProductRepository

from .models import PaymentStatus
from .repository import PaymentRepository
from .status_mapper import GatewayStatus, StatusMapping, map_gateway_status

logger = structlog.get_logger(__name__)

REASON_TERMINAL_STATE = "terminal_state"
REASON_PAYMENT_SETTLED = "payment_settled"
REASON_NO_CHANGE = "no_change"
REASON_CONCURRENT_UPDATE = "concurrent_update"


@dataclass
class ReconcileResult:
    changed: bool
    order_id: int
    old_order_status: OrderStatus
    new_order_status: OrderStatus
    old_payment_status: PaymentStatus
    new_payment_status: PaymentStatus
    reason: str | None = None
    paid_at: datetime | None = None
    restored_stock: dict[int, int] = field(default_factory=dict)

    @classmethod
    def unchanged(cls, order_id: int, order_status: OrderStatus, payment_status: PaymentStatus, reason: str):
        return cls(
            changed=False,
            order_id=order_id,
            old_order_status=order_status,
            new_order_status=order_status,
            old_payment_status=payment_status,
            new_payment_status=payment_status,
            reason=reason,
        )


class _ConcurrentUpdate(Exception):
    """Raised inside the transaction to roll it back when a conditional write lost."""

    def __init__(self, result: ReconcileResult):
        super().__init__(result.reason)
        self.result = result


class ReconciliationEngine:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def reconcile(self, order_id: int, observed, *, source: str = "unspecified") -> ReconcileResult:
        observed_status = GatewayStatus.parse(observed)
        target = map_gateway_status(observed_status)

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    result = await self._apply(db, order_id, target)
        except _ConcurrentUpdate as lost:
            result = lost.result

        self._record(source, observed_status, result)
        return result

    async def _apply(self, db: AsyncSession, order_id: int, target: StatusMapping) -> ReconcileResult:
        order = await OrderRepository.get_order(db, order_id, for_update=True)
        if order is None or order.payment is None:
            raise NotFound("Order or payment not found")

        payment = order.payment
        old_order = OrderStatus(order.status)
        old_payment = PaymentStatus(payment.status)

        def noop(reason: str) -> ReconcileResult:
            return ReconcileResult.unchanged(order.id, old_order, old_payment, reason)

        if old_order in SETTLED_ORDER_STATUSES:
            return noop(REASON_TERMINAL_STATE)
        if old_payment is not PaymentStatus.PENDING:
            return noop(REASON_PAYMENT_SETTLED)

        new_payment = target.payment_status
        new_order = target.order_status or old_order
        if new_payment is old_payment and new_order is old_order:
            return noop(REASON_NO_CHANGE)

        paid_at = utcnow() if new_payment is PaymentStatus.PAID else None

        if not await PaymentRepository.transition_status(db, payment.id, old_payment, new_payment, paid_at):
            raise _ConcurrentUpdate(noop(REASON_CONCURRENT_UPDATE))
        if new_order is not old_order:
            if not await OrderRepository.transition_status(db, order.id, old_order, new_order):
                raise _ConcurrentUpdate(noop(REASON_CONCURRENT_UPDATE))

        restored: dict[int, int] = {}
        if new_payment is PaymentStatus.EXPIRED:
            # Stock was taken at checkout; hand it back now that the invoice is dead
            for item in order.items:
                if item.product_id is None:
                    continue
                if await ProductRepository.restore_stock(db, item.product_id, item.quantity):
                    restored[item.product_id] = restored.get(item.product_id, 0) + item.quantity
                else:
                    logger.warning("stock_restore_skipped", order_id=order.id, product_id=item.product_id)

        return ReconcileResult(
            changed=True,
            order_id=order.id,
            old_order_status=old_order,
            new_order_status=new_order,
            old_payment_status=old_payment,
            new_payment_status=new_payment,
            paid_at=paid_at,
            restored_stock=restored,
        )

    @staticmethod
    def _record(source: str, observed: GatewayStatus, result: ReconcileResult) -> None:
        outcome = "changed" if result.changed else result.reason
        payment_reconcile_total.labels(source=source, outcome=outcome).inc()
        log = logger.info if result.changed else logger.debug
        log(
            "reconcile",
            source=source,
            order_id=result.order_id,
            observed=observed.value,
            outcome=outcome,
            order_status=f"{result.old_order_status.value}->{result.new_order_status.value}",
            payment_status=f"{result.old_payment_status.value}->{result.new_payment_status.value}",
            restored_stock=result.restored_stock or None,
        )
