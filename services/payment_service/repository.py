from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Payment, PaymentStatus, utcnow

class PaymentRepository:

    @staticmethod
    async def add_payment(db: AsyncSession, payment: Payment) -> Payment:
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def get_by_invoice_id(db: AsyncSession, invoice_id: str):
        result = await db.execute(select(Payment).where(Payment.gateway_invoice_id == invoice_id))
        return result.scalars().first()

    @staticmethod
    async def transition_status(
        db: AsyncSession,
        payment_id: int,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        paid_at: datetime | None = None,
    ) -> bool:
        """Conditional write: only succeeds if the row still holds from_status."""
        result = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == from_status.value)
            .values(status=to_status.value, paid_at=paid_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
