"""
Thin async client for the payment gateway's invoice API (Xendit v2 invoices).

Only two calls matter to the storefront: issuing an invoice at checkout and
reading an invoice back to observe its status. Every failure mode (timeout,
transport error, non-2xx, undecodable body) surfaces as GatewayError so callers
never mistake an outage for a payment status.
"""
import time

import httpx
import structlog

from shared.config.gateway import (
    GATEWAY_TIMEOUT_SECONDS,
    INVOICE_CURRENCY,
    INVOICE_DURATION_SECONDS,
    PUBLIC_BASE_URL,
    XENDIT_API_URL,
    XENDIT_SECRET_KEY,
)
from shared.errors import UpstreamFailure
from shared.observability import (
    payment_gateway_request_duration_seconds,
    payment_gateway_requests_total,
)

from .schemas import Invoice, InvoiceItem

logger = structlog.get_logger(__name__)

DEFAULT_CUSTOMER_NAME = "Storefront Customer"


class GatewayError(UpstreamFailure):
    def __init__(self, operation: str, message: str, status_code: int | None = None):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.upstream_status = status_code


class PaymentGatewayClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = XENDIT_API_URL,
        secret_key: str = XENDIT_SECRET_KEY,
        timeout: float = GATEWAY_TIMEOUT_SECONDS,
        public_base_url: str = PUBLIC_BASE_URL,
    ):
        # The secret key is the Basic-auth username with an empty password
        self._auth = httpx.BasicAuth(secret_key, "")
        self._base_url = base_url.rstrip("/")
        self._public_base_url = public_base_url.rstrip("/")
        self._timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create_invoice(
        self,
        order_id: int,
        amount: int,
        description: str,
        customer_email: str,
        items: list[InvoiceItem],
        customer_name: str | None = None,
    ) -> Invoice:
        payload = {
            "external_id": f"order-{order_id}-{int(time.time() * 1000)}",
            "amount": amount,
            "description": description,
            "invoice_duration": INVOICE_DURATION_SECONDS,
            "customer": {
                "email": customer_email,
                "given_names": customer_name or DEFAULT_CUSTOMER_NAME,
            },
            "success_redirect_url": f"{self._public_base_url}/payment/success?order={order_id}",
            "failure_redirect_url": f"{self._public_base_url}/payment/failed?order={order_id}",
            "currency": INVOICE_CURRENCY,
            "items": [item.model_dump() for item in items],
        }
        data = await self._request("create_invoice", "POST", "/v2/invoices", json=payload)
        invoice = self._parse("create_invoice", data)
        if not invoice.invoice_url:
            raise GatewayError("create_invoice", "response carried no invoice_url")

        logger.info("gateway_invoice_created", order_id=order_id, invoice_id=invoice.id)
        return invoice

    async def get_invoice(self, invoice_id: str) -> Invoice:
        data = await self._request("get_invoice", "GET", f"/v2/invoices/{invoice_id}")
        return self._parse("get_invoice", data)

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> dict:
        started = time.perf_counter()
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                auth=self._auth,
                timeout=self._timeout,
                **kwargs,
            )
        except httpx.TimeoutException:
            self._record(operation, "error", started)
            logger.error("gateway_timeout", operation=operation, path=path)
            raise GatewayError(operation, "timeout")
        except httpx.RequestError as e:
            self._record(operation, "error", started)
            logger.error("gateway_unreachable", operation=operation, path=path, error=repr(e))
            raise GatewayError(operation, "gateway unreachable")

        if resp.status_code // 100 != 2:
            self._record(operation, "error", started)
            logger.error(
                "gateway_bad_status",
                operation=operation,
                path=path,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise GatewayError(operation, f"HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            self._record(operation, "error", started)
            raise GatewayError(operation, "response was not JSON")

        if not isinstance(data, dict):
            self._record(operation, "error", started)
            raise GatewayError(operation, "unexpected response shape")

        self._record(operation, "ok", started)
        return data

    @staticmethod
    def _parse(operation: str, data: dict) -> Invoice:
        if not data.get("id"):
            raise GatewayError(operation, "response carried no invoice id")
        try:
            invoice = Invoice.model_validate(data)
        except ValueError as e:
            raise GatewayError(operation, f"unexpected invoice payload: {e}")
        invoice.raw = data
        return invoice

    @staticmethod
    def _record(operation: str, result: str, started: float) -> None:
        payment_gateway_requests_total.labels(operation=operation, result=result).inc()
        payment_gateway_request_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - started
        )
