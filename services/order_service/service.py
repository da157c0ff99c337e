import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.errors import InvalidInput, NotFound
from shared.observability import order_checkout_total
from services.payment_gateway.client import PaymentGatewayClient
from services.payment_gateway.schemas import InvoiceItem
from services.payment_service.models import Payment, PaymentStatus
from services.payment_service.repository import PaymentRepository
from services.product_service.repository import ProductRepository

from .models import Order, OrderItem, OrderStatus, next_order_status
from .order_code import format_order_code, parse_order_code, verify_order_code
from .repository import OrderRepository
from .schemas import OrderCreate

logger = structlog.get_logger(__name__)


class OrderService:

    @staticmethod
    async def place_order(
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGatewayClient,
        data: OrderCreate,
        *,
        user_id: int,
        customer_email: str,
        customer_name: str | None = None,
    ) -> Order:
        """
        Reserve stock, create the order and its items, issue the gateway invoice
        and record the PENDING payment, all in one transaction. If the gateway
        refuses or is unreachable nothing is left behind.
        """
        merged: dict[int, int] = {}
        for it in data.items:
            merged[it.product_id] = merged.get(it.product_id, 0) + it.quantity

        try:
            async with session_factory() as db:
                async with db.begin():
                    products = await ProductRepository.get_products_for_update(db, list(merged))
                    for pid, qty in merged.items():
                        product = products.get(pid)
                        if product is None:
                            raise NotFound(f"Product {pid} not found")
                        if product.stock < qty:
                            raise InvalidInput(f"Insufficient stock for {product.name}")

                    order = Order(
                        user_id=user_id,
                        total_amount=sum(products[pid].price * qty for pid, qty in merged.items()),
                        status=OrderStatus.AWAITING_PAYMENT.value,
                        items=[
                            OrderItem(
                                product_id=pid,
                                product_name=products[pid].name,
                                quantity=qty,
                                price=products[pid].price,
                            )
                            for pid, qty in merged.items()
                        ],
                    )
                    await OrderRepository.add_order(db, order)

                    for pid, qty in merged.items():
                        if not await ProductRepository.reserve_stock(db, pid, qty):
                            raise InvalidInput(f"Insufficient stock for {products[pid].name}")

                    code = format_order_code(order.id, order.created_at)
                    invoice = await gateway.create_invoice(
                        order.id,
                        order.total_amount,
                        f"Order {code} - " + ", ".join(i.product_name for i in order.items),
                        customer_email,
                        [InvoiceItem(name=i.product_name, quantity=i.quantity, price=i.price) for i in order.items],
                        customer_name,
                    )

                    await PaymentRepository.add_payment(
                        db,
                        Payment(
                            order=order,
                            gateway_invoice_id=invoice.id,
                            payment_url=invoice.invoice_url,
                            amount=order.total_amount,
                            status=PaymentStatus.PENDING.value,
                            paid_at=None,
                        ),
                    )
        except Exception:
            order_checkout_total.labels(status="failed").inc()
            raise

        order_checkout_total.labels(status="success").inc()
        logger.info(
            "order_placed",
            order_id=order.id,
            user_id=user_id,
            total_amount=order.total_amount,
            invoice_id=order.payment.gateway_invoice_id,
        )
        return order

    @staticmethod
    async def get_user_order(db: AsyncSession, order_id: int, user_id: int) -> Order:
        order = await OrderRepository.get_user_order(db, order_id, user_id)
        if not order:
            raise NotFound("Order not found")
        return order

    @staticmethod
    async def list_user_orders(db: AsyncSession, user_id: int):
        return await OrderRepository.list_user_orders(db, user_id)

    @staticmethod
    async def list_orders(db: AsyncSession, status: OrderStatus | None = None, limit: int | None = None):
        return await OrderRepository.list_orders(db, status, limit)

    @staticmethod
    async def get_order_by_code(db: AsyncSession, code: str) -> Order:
        """
        Resolve a public order code. The id is taken from the code, then the
        code is re-derived from the stored order and must match exactly, so a
        guessed id with the wrong date is refused.
        """
        order_id = parse_order_code(code)
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFound("Order not found")
        verify_order_code(code, order.id, order.created_at)
        return order

    # --- admin fulfilment transitions (no gateway involvement) ---

    @staticmethod
    async def update_status(db: AsyncSession, order_id: int, target: OrderStatus) -> Order:
        async with db.begin():
            order = await OrderRepository.get_order(db, order_id, for_update=True)
            if not order:
                raise NotFound("Order not found")
            await OrderService._step(db, order, target)
        return await OrderRepository.get_order(db, order_id)

    @staticmethod
    async def advance(db: AsyncSession, order_id: int) -> Order:
        async with db.begin():
            order = await OrderRepository.get_order(db, order_id, for_update=True)
            if not order:
                raise NotFound("Order not found")
            await OrderService._step(db, order, None)
        return await OrderRepository.get_order(db, order_id)

    @staticmethod
    async def advance_by_code(db: AsyncSession, code: str) -> Order:
        async with db.begin():
            order = await OrderService.get_order_by_code(db, code)
            order_id = order.id
            await OrderService._step(db, order, None)
        return await OrderRepository.get_order(db, order_id)

    @staticmethod
    async def _step(db: AsyncSession, order: Order, target: OrderStatus | None) -> None:
        current = OrderStatus(order.status)
        successor = next_order_status(current)
        if current is OrderStatus.AWAITING_PAYMENT:
            # Leaving AWAITING_PAYMENT is the reconciliation engine's job
            raise InvalidInput("Order has not been paid")
        if successor is None:
            raise InvalidInput("Order is already completed")
        if target is not None and target is not successor:
            raise InvalidInput(f"Cannot move order from {current.value} to {target.value}")

        if not await OrderRepository.transition_status(db, order.id, current, successor):
            raise InvalidInput("Order status changed concurrently, reload and retry")
        logger.info("order_status_advanced", order_id=order.id, old_status=current.value, new_status=successor.value)
