from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from services.payment_service.models import Payment, PaymentStatus
from .models import Order, OrderStatus, utcnow

class OrderRepository:

    @staticmethod
    def _with_children(stmt):
        return stmt.options(selectinload(Order.items), selectinload(Order.payment))

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, *, for_update: bool = False):
        stmt = OrderRepository._with_children(select(Order).where(Order.id == order_id))
        # Status columns are written with bulk UPDATEs, so never trust the identity map here
        stmt = stmt.execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_user_order(db: AsyncSession, order_id: int, user_id: int):
        result = await db.execute(
            OrderRepository._with_children(
                select(Order).where(Order.id == order_id, Order.user_id == user_id)
            )
        )
        return result.scalars().first()

    @staticmethod
    async def list_user_orders(db: AsyncSession, user_id: int):
        result = await db.execute(
            OrderRepository._with_children(
                select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
            )
        )
        return result.scalars().all()

    @staticmethod
    async def list_user_pending_orders(db: AsyncSession, user_id: int):
        result = await db.execute(
            OrderRepository._with_children(
                select(Order)
                .join(Payment, Payment.order_id == Order.id)
                .where(
                    Order.user_id == user_id,
                    Order.status == OrderStatus.AWAITING_PAYMENT.value,
                    Payment.status == PaymentStatus.PENDING.value,
                )
                .order_by(Order.id)
            )
        )
        return result.scalars().all()

    @staticmethod
    async def list_orders(db: AsyncSession, status: OrderStatus | None = None, limit: int | None = None):
        stmt = OrderRepository._with_children(select(Order)).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            stmt = stmt.where(Order.status == status.value)
        if limit:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    @staticmethod
    async def add_order(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.flush()  # assigns order.id
        return order

    @staticmethod
    async def transition_status(
        db: AsyncSession, order_id: int, from_status: OrderStatus, to_status: OrderStatus
    ) -> bool:
        """Conditional write: only succeeds if the row still holds from_status."""
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == from_status.value)
            .values(status=to_status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
