from fastapi import Depends, Header, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from .jwt_handler import verify_access_token
from .webhook_token import verify_webhook_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

ADMIN_ROLE = "ADMIN"

async def get_current_claims(request: Request, token: str = Depends(oauth2_scheme)) -> dict:
    """Dependency to validate the JWT and return its claims (sub, email, name, role)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = verify_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise credentials_exception

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = payload["sub"]
    return payload

async def get_current_user(claims: dict = Depends(get_current_claims)) -> int:
    """Dependency returning the authenticated user's numeric id."""
    try:
        return int(claims["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_admin(claims: dict = Depends(get_current_claims)) -> dict:
    if claims.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return claims

async def require_webhook_token(
    x_callback_token: str | None = Header(default=None),
) -> bool:
    """Dependency rejecting webhook deliveries whose callback token does not match."""
    if not verify_webhook_token(x_callback_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing x-callback-token header",
        )
    return True
