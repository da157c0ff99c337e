from prometheus_client import Counter, Histogram

# Business Metrics
payment_reconcile_total = Counter(
    "payment_reconcile_total",
    "Reconciliation attempts",
    ["source", "outcome"] # source: webhook, poll, sync, redirect; outcome: changed or the no-op reason
)

payment_gateway_requests_total = Counter(
    "payment_gateway_requests_total",
    "Outbound payment gateway calls",
    ["operation", "result"] # Labels: 'create_invoice'/'get_invoice', 'ok'/'error'
)

payment_gateway_request_duration_seconds = Histogram(
    "payment_gateway_request_duration_seconds",
    "Payment gateway call duration in seconds",
    ["operation"]
)

webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Gateway webhook deliveries received",
    ["result"] # Labels: 'processed', 'unknown_invoice', 'rejected'
)

order_checkout_total = Counter(
    "order_checkout_total",
    "Checkouts processed",
    ["status"] # Labels: 'success', 'failed'
)
