from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.config.database import get_db, get_session_factory
from shared.security import PUBLIC_LOOKUP_LIMIT, get_current_admin, get_current_claims, get_current_user, limiter
from services.payment_gateway.client import PaymentGatewayClient
from services.payment_gateway.dependencies import get_gateway

from .models import OrderStatus
from .schemas import CheckoutResponse, OrderCodeIn, OrderCreate, OrderResponse, OrderStatusUpdate
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(
    prefix="/admin/orders",
    tags=["Admin"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("", response_model=CheckoutResponse, status_code=201)
async def create_order(
    payload: OrderCreate,
    claims: dict = Depends(get_current_claims),
    user_id: int = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gateway: PaymentGatewayClient = Depends(get_gateway),
):
    order = await OrderService.place_order(
        session_factory,
        gateway,
        payload,
        user_id=user_id,
        customer_email=claims.get("email", ""),
        customer_name=claims.get("name"),
    )
    return CheckoutResponse(order=OrderResponse.from_order(order), payment_url=order.payment.payment_url)


@router.get("", response_model=list[OrderResponse])
async def list_my_orders(user_id: int = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    orders = await OrderService.list_user_orders(db, user_id)
    return [OrderResponse.from_order(o) for o in orders]


# Declared before /{order_id} so the literal segment wins
@router.get("/by-code/{code}", response_model=OrderResponse)
@limiter.limit(PUBLIC_LOOKUP_LIMIT)
async def get_order_by_code(request: Request, code: str, db: AsyncSession = Depends(get_db)):
    return OrderResponse.from_order(await OrderService.get_order_by_code(db, code))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, user_id: int = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return OrderResponse.from_order(await OrderService.get_user_order(db, order_id, user_id))


@admin_router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: OrderStatus | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    orders = await OrderService.list_orders(db, status, limit)
    return [OrderResponse.from_order(o) for o in orders]


@admin_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: int, payload: OrderStatusUpdate, db: AsyncSession = Depends(get_db)):
    return OrderResponse.from_order(await OrderService.update_status(db, order_id, payload.status))


@admin_router.post("/advance-by-code", response_model=OrderResponse)
async def advance_order_by_code(payload: OrderCodeIn, db: AsyncSession = Depends(get_db)):
    """QR scan at the pickup counter: the scanned code moves the order one step."""
    return OrderResponse.from_order(await OrderService.advance_by_code(db, payload.order_code))


@admin_router.post("/{order_id}/advance", response_model=OrderResponse)
async def advance_order(order_id: int, db: AsyncSession = Depends(get_db)):
    return OrderResponse.from_order(await OrderService.advance(db, order_id))
