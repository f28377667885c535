import logging
from typing import Optional

from fastapi import Depends, Header, Request

from database import TransactionStore
from errors import AppError, AuthError, InternalError
from identity import SupabaseAuth
from schemas import AuthUser

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def get_identity(request: Request) -> SupabaseAuth:
    return request.app.state.identity


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


async def require_user(
    authorization: Optional[str] = Header(None),
    identity: SupabaseAuth = Depends(get_identity),
) -> AuthUser:
    """Guard for protected routes: verifies the bearer token and returns its user."""
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("Authentication required. Please provide a valid token.")

    try:
        user = await identity.get_user(token)
    except AppError:
        raise
    except Exception:
        logger.exception("Auth middleware error")
        raise InternalError("Internal server error")

    if user is None:
        raise AuthError("Invalid or expired token. Please login again.")
    return user
