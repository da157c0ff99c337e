from .jwt_handler import create_access_token, verify_access_token
from .webhook_token import verify_webhook_token, webhook_verification_enabled
from .dependencies import (
    get_current_claims,
    get_current_user,
    get_current_admin,
    require_webhook_token,
)
from .rate_limiter import limiter, user_id_or_ip, PUBLIC_LOOKUP_LIMIT

__all__ = [
    "create_access_token",
    "verify_access_token",
    "verify_webhook_token",
    "webhook_verification_enabled",
    "get_current_claims",
    "get_current_user",
    "get_current_admin",
    "require_webhook_token",
    "limiter",
    "user_id_or_ip",
    "PUBLIC_LOOKUP_LIMIT",
]
