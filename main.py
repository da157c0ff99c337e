import os
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shared.config.database import engine, Base
from shared.config.gateway import GATEWAY_TIMEOUT_SECONDS
from shared.errors import StorefrontError
from shared.observability import setup_observability
from shared.security import limiter

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.order_service import models as order_models
from services.payment_service import models as payment_models

from services.order_service.router import router as order_router, admin_router as order_admin_router
from services.payment_service.router import router as payment_router, webhook_router
from services.payment_gateway.client import PaymentGatewayClient

logger = structlog.get_logger(__name__)

SERVICE_NAME = os.getenv("SERVICE_NAME", "storefront_payments")

# Schema creation on boot is for local runs; deployments run migrations instead
DB_CREATE_ALL = os.getenv("DB_CREATE_ALL", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DB_CREATE_ALL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    http_client = httpx.AsyncClient(timeout=GATEWAY_TIMEOUT_SECONDS)
    app.state.gateway = PaymentGatewayClient(http_client)
    try:
        yield
    finally:
        await http_client.aclose()
        await engine.dispose()


app = FastAPI(title="Storefront Payments", version="1.0.0", lifespan=lifespan)

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, SERVICE_NAME)

# --- SECURITY SETUP ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    # 4xx messages are written by us for the caller; 5xx ones may carry upstream detail
    detail = exc.message if exc.status_code < 500 else exc.public_message
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health_check():
    return {"service": SERVICE_NAME, "status": "running"}


app.include_router(order_router)
app.include_router(order_admin_router)
app.include_router(payment_router)
app.include_router(webhook_router)
