from .setup import setup_observability
from .metrics import (
    payment_reconcile_total,
    payment_gateway_requests_total,
    payment_gateway_request_duration_seconds,
    webhook_deliveries_total,
    order_checkout_total
)
