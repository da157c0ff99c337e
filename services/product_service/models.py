from sqlalchemy import CheckConstraint, Column, Integer, String
from shared.config.database import Base

class Product(Base):
    """
    Only the slice of the catalog the order flow touches: a name and price to
    snapshot onto order items, and the stock count reserved at checkout.
    """
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False) # minor currency units
    stock = Column(Integer, nullable=False, default=0)
