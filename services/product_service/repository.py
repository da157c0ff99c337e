from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Product

class ProductRepository:
    """
    Stock mutations never commit: they run inside the caller's transaction so
    they land together with the order/payment writes that justify them.
    """

    @staticmethod
    async def get_products_for_update(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(product_ids))
            .order_by(Product.id)
            .with_for_update()
        )
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def reserve_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """Decrement stock only if enough is left. Returns False when it is not."""
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def restore_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
