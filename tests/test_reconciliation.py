from datetime import datetime, timezone

import pytest

from conftest import get_stock, load_order, seed_order, seed_product
from shared.errors import NotFound
from services.order_service.models import OrderStatus
from services.payment_service import reconciliation
from services.payment_service.models import PaymentStatus
from services.payment_service.reconciliation import ReconciliationEngine
from services.payment_service.repository import PaymentRepository
from services.payment_service.status_mapper import GatewayStatus


@pytest.fixture
def engine(session_factory):
    return ReconciliationEngine(session_factory)


async def test_paid_moves_order_and_payment(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=31, items=[(product, 1)])

    result = await engine.reconcile(31, "PAID", source="webhook")

    assert result.changed is True
    assert result.old_order_status is OrderStatus.AWAITING_PAYMENT
    assert result.new_order_status is OrderStatus.PAID
    assert result.old_payment_status is PaymentStatus.PENDING
    assert result.new_payment_status is PaymentStatus.PAID
    assert result.paid_at is not None

    order = await load_order(session_factory, 31)
    assert order.status == OrderStatus.PAID.value
    assert order.payment.status == PaymentStatus.PAID.value
    assert order.payment.paid_at is not None


async def test_second_identical_call_is_a_noop(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=31, items=[(product, 1)])

    first = await engine.reconcile(31, "SETTLED")
    before = await load_order(session_factory, 31)
    second = await engine.reconcile(31, "SETTLED")
    after = await load_order(session_factory, 31)

    assert first.changed is True
    assert second.changed is False
    assert after.status == before.status
    assert after.payment.status == before.payment.status
    assert after.payment.paid_at == before.payment.paid_at
    assert after.updated_at == before.updated_at


@pytest.mark.parametrize("observed", ["EXPIRED", "FAILED", "PENDING", "WHATEVER", "PAID"])
async def test_paid_payment_never_changes(session_factory, engine, observed):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=5, items=[(product, 1)])
    await engine.reconcile(5, "PAID")

    result = await engine.reconcile(5, observed)

    assert result.changed is False
    order = await load_order(session_factory, 5)
    assert order.payment.status == PaymentStatus.PAID.value
    assert order.status == OrderStatus.PAID.value


@pytest.mark.parametrize(
    "status", [OrderStatus.READY_FOR_PICKUP, OrderStatus.PICKED_UP, OrderStatus.COMPLETED]
)
@pytest.mark.parametrize("observed", ["PAID", "EXPIRED", "FAILED", "UNKNOWN"])
async def test_fulfilment_states_are_never_touched(session_factory, engine, status, observed):
    product = await seed_product(session_factory, stock=5)
    await seed_order(
        session_factory, order_id=12, items=[(product, 2)], status=status, payment_status=PaymentStatus.PENDING
    )

    result = await engine.reconcile(12, observed)

    assert result.changed is False
    assert result.reason == reconciliation.REASON_TERMINAL_STATE
    order = await load_order(session_factory, 12)
    assert order.status == status.value
    assert order.payment.status == PaymentStatus.PENDING.value
    assert await get_stock(session_factory, product) == 3


async def test_expiry_restores_stock_once(session_factory, engine):
    product_x = await seed_product(session_factory, name="Product X", stock=10)
    await seed_order(session_factory, order_id=7, items=[(product_x, 2)])
    assert await get_stock(session_factory, product_x) == 8

    result = await engine.reconcile(7, "EXPIRED")

    assert result.changed is True
    assert result.new_payment_status is PaymentStatus.EXPIRED
    assert result.new_order_status is OrderStatus.AWAITING_PAYMENT
    assert result.restored_stock == {product_x: 2}
    assert await get_stock(session_factory, product_x) == 10

    again = await engine.reconcile(7, "EXPIRED")
    assert again.changed is False
    assert await get_stock(session_factory, product_x) == 10

    order = await load_order(session_factory, 7)
    assert order.status == OrderStatus.AWAITING_PAYMENT.value
    assert order.payment.status == PaymentStatus.EXPIRED.value
    assert order.payment.paid_at is None


async def test_expiry_restores_every_line_item(session_factory, engine):
    shirt = await seed_product(session_factory, name="Shirt", stock=4)
    mug = await seed_product(session_factory, name="Mug", price=30000, stock=6)
    await seed_order(session_factory, order_id=8, items=[(shirt, 1), (mug, 3)])

    await engine.reconcile(8, "expired")

    assert await get_stock(session_factory, shirt) == 4
    assert await get_stock(session_factory, mug) == 6


async def test_failed_does_not_restore_stock(session_factory, engine):
    product = await seed_product(session_factory, stock=10)
    await seed_order(session_factory, order_id=9, items=[(product, 2)])

    result = await engine.reconcile(9, "FAILED")

    assert result.changed is True
    assert result.new_payment_status is PaymentStatus.FAILED
    assert result.new_order_status is OrderStatus.AWAITING_PAYMENT
    assert await get_stock(session_factory, product) == 8


async def test_expired_payment_cannot_be_paid_later(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=10, items=[(product, 1)])
    await engine.reconcile(10, "EXPIRED")

    result = await engine.reconcile(10, GatewayStatus.PAID)

    assert result.changed is False
    assert result.reason == reconciliation.REASON_PAYMENT_SETTLED


async def test_unknown_status_is_a_noop(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=11, items=[(product, 1)])

    result = await engine.reconcile(11, "SOME_UNKNOWN_STATUS")

    assert result.changed is False
    assert result.reason == reconciliation.REASON_NO_CHANGE


async def test_missing_order_or_payment_is_not_found(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=13, items=[(product, 1)], payment_status=None)

    with pytest.raises(NotFound):
        await engine.reconcile(404, "PAID")
    with pytest.raises(NotFound):
        await engine.reconcile(13, "PAID")


async def test_lost_race_rolls_back_everything(session_factory, engine, monkeypatch):
    product = await seed_product(session_factory, stock=10)
    await seed_order(session_factory, order_id=14, items=[(product, 2)])

    async def lost(*args, **kwargs):
        return False

    monkeypatch.setattr(PaymentRepository, "transition_status", staticmethod(lost))

    result = await engine.reconcile(14, "EXPIRED")

    assert result.changed is False
    assert result.reason == reconciliation.REASON_CONCURRENT_UPDATE
    assert await get_stock(session_factory, product) == 8
    order = await load_order(session_factory, 14)
    assert order.payment.status == PaymentStatus.PENDING.value


async def test_order_write_losing_undoes_payment_write(session_factory, engine, monkeypatch):
    product = await seed_product(session_factory)
    await seed_order(session_factory, order_id=15, items=[(product, 1)])

    from services.order_service.repository import OrderRepository

    async def lost(*args, **kwargs):
        return False

    monkeypatch.setattr(OrderRepository, "transition_status", staticmethod(lost))

    result = await engine.reconcile(15, "PAID")

    assert result.changed is False
    order = await load_order(session_factory, 15)
    assert order.status == OrderStatus.AWAITING_PAYMENT.value
    assert order.payment.status == PaymentStatus.PENDING.value
    assert order.payment.paid_at is None


async def test_deleted_product_is_skipped_on_expiry(session_factory, engine):
    product = await seed_product(session_factory, stock=3)
    await seed_order(session_factory, order_id=16, items=[(product, 1)])

    from services.order_service.models import OrderItem

    item_id = (await load_order(session_factory, 16)).items[0].id
    async with session_factory() as db:
        async with db.begin():
            db_item = await db.get(OrderItem, item_id)
            db_item.product_id = None

    result = await engine.reconcile(16, "EXPIRED")

    assert result.changed is True
    assert result.restored_stock == {}
    assert await get_stock(session_factory, product) == 2


async def test_created_at_does_not_affect_reconcile(session_factory, engine):
    product = await seed_product(session_factory)
    await seed_order(
        session_factory,
        order_id=17,
        items=[(product, 1)],
        created_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )
    assert (await engine.reconcile(17, "paid")).changed is True
