"""
Webhook callback-token verification.

The gateway echoes a per-account callback token in the x-callback-token header
of every webhook delivery. Checking it is hardening this storefront did not
have before: when GATEWAY_WEBHOOK_TOKEN is unset, deliveries are accepted
unverified and a warning is emitted once at import so the gap is visible.
"""
import secrets
import warnings

from shared.config.gateway import GATEWAY_WEBHOOK_TOKEN

if not GATEWAY_WEBHOOK_TOKEN:
    warnings.warn(
        "GATEWAY_WEBHOOK_TOKEN is not set. Webhook deliveries will not be verified. "
        "Set this env var in production!",
        stacklevel=2,
    )


def webhook_verification_enabled() -> bool:
    return bool(GATEWAY_WEBHOOK_TOKEN)


def verify_webhook_token(provided_token: str | None) -> bool:
    """Compare the delivered callback token in constant time."""
    if not webhook_verification_enabled():
        return True
    if not provided_token:
        return False
    return secrets.compare_digest(str(provided_token), str(GATEWAY_WEBHOOK_TOKEN))
