# app/api/deps.py
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import decode_access_token
from app.db.session_async import AsyncSessionLocal
from app.repositories.cart_store import CartStore
from app.services.cart_service import CartService
from app.services.context import OperationContext

auth_logger = get_logger("app.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_cart_store() -> CartStore:
    return CartStore(AsyncSessionLocal)


def get_cart_service(store: CartStore = Depends(get_cart_store)) -> CartService:
    return CartService(store)


async def get_operation_context() -> OperationContext:
    """Every request gets its own deadline; the engine stops calling storage once it passes."""
    return OperationContext.with_timeout(settings.REQUEST_TIMEOUT_SECONDS)


def require_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any] | None:
    """Bearer JWT check composed at router level. Returns the token claims."""
    if not settings.AUTH_ENABLED:
        return None

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return decode_access_token(credentials.credentials)
    except JWTError as exc:
        auth_logger.warning("Rejected bearer token", extra={"reason": str(exc)})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
