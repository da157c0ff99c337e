import os

# Must be in place before any application module is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["TRACING_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_CREATE_ALL"] = "false"
os.environ["ORDER_CODE_TIMEZONE"] = "UTC"
os.environ.pop("GATEWAY_WEBHOOK_TOKEN", None)

from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from main import app
from shared.config.database import Base, get_db, get_session_factory
from shared.security import create_access_token
from services.order_service.models import Order, OrderItem, OrderStatus
from services.payment_gateway.client import GatewayError
from services.payment_gateway.dependencies import get_gateway
from services.payment_gateway.schemas import Invoice
from services.payment_service.models import Payment, PaymentStatus
from services.product_service.models import Product


class FakeGateway:
    """Stands in for PaymentGatewayClient; invoice statuses are set by the test."""

    def __init__(self):
        self.statuses: dict[str, str] = {}
        self.created: list[dict] = []
        self.lookups: list[str] = []
        self.fail = False

    async def create_invoice(self, order_id, amount, description, customer_email, items, customer_name=None):
        if self.fail:
            raise GatewayError("create_invoice", "HTTP 503", status_code=503)
        invoice_id = f"inv-{order_id}"
        self.statuses[invoice_id] = "PENDING"
        self.created.append(
            {
                "order_id": order_id,
                "amount": amount,
                "description": description,
                "customer_email": customer_email,
                "customer_name": customer_name,
                "items": [i.model_dump() for i in items],
            }
        )
        return Invoice(id=invoice_id, status="PENDING", invoice_url=f"https://checkout.example/{invoice_id}")

    async def get_invoice(self, invoice_id):
        self.lookups.append(invoice_id)
        if self.fail:
            raise GatewayError("get_invoice", "timeout")
        return Invoice(id=invoice_id, status=self.statuses.get(invoice_id, "PENDING"))


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def client(session_factory, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: int = 1, role: str = "CUSTOMER", email: str = "buyer@example.com") -> dict:
    token = create_access_token({"sub": str(user_id), "email": email, "name": "Buyer", "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    return auth_headers()


@pytest.fixture
def admin_headers():
    return auth_headers(user_id=99, role="ADMIN", email="admin@example.com")


async def seed_product(session_factory, *, name="Campus Hoodie", price=150000, stock=10, product_id=None) -> int:
    async with session_factory() as db:
        async with db.begin():
            product = Product(id=product_id, name=name, price=price, stock=stock)
            db.add(product)
        return product.id


async def get_stock(session_factory, product_id: int) -> int:
    async with session_factory() as db:
        product = await db.get(Product, product_id)
        return product.stock


async def seed_order(
    session_factory,
    *,
    order_id: int,
    items: list[tuple[int, int]],
    user_id: int = 1,
    created_at: datetime = datetime(2025, 10, 5, 9, 30, tzinfo=timezone.utc),
    status: OrderStatus = OrderStatus.AWAITING_PAYMENT,
    payment_status: PaymentStatus | None = PaymentStatus.PENDING,
    invoice_id: str | None = None,
) -> str:
    """
    Insert an order as checkout would have left it (stock already taken).
    Returns the gateway invoice id.
    """
    invoice_id = invoice_id or f"inv-{order_id}"
    async with session_factory() as db:
        async with db.begin():
            order_items = []
            total = 0
            for product_id, qty in items:
                product = await db.get(Product, product_id)
                product.stock -= qty
                total += product.price * qty
                order_items.append(
                    OrderItem(product_id=product_id, product_name=product.name, quantity=qty, price=product.price)
                )
            order = Order(
                id=order_id,
                user_id=user_id,
                total_amount=total,
                status=status.value,
                created_at=created_at,
                updated_at=created_at,
                items=order_items,
            )
            db.add(order)
            if payment_status is not None:
                db.add(
                    Payment(
                        order=order,
                        gateway_invoice_id=invoice_id,
                        payment_url=f"https://checkout.example/{invoice_id}",
                        amount=total,
                        status=payment_status.value,
                        paid_at=created_at if payment_status is PaymentStatus.PAID else None,
                    )
                )
    return invoice_id


async def load_order(session_factory, order_id: int) -> Order:
    from services.order_service.repository import OrderRepository

    async with session_factory() as db:
        return await OrderRepository.get_order(db, order_id)
