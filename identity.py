"""
Identity gateway

Thin async client for the hosted auth provider (Supabase Auth REST API under
``/auth/v1``). Credentials, sessions and user records all live in the
provider; this module only forwards calls and maps the answers onto our
schemas and error taxonomy.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from errors import AuthError, InternalError, ProviderError
from schemas import AuthResult, AuthUser, UserOut

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"
SESSION_FIELDS = ("access_token", "token_type", "expires_in", "expires_at", "refresh_token")


def _json(resp: httpx.Response) -> Dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def provider_message(payload: Dict[str, Any], default: str = "Request rejected by identity provider") -> str:
    for key in ("msg", "error_description", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return default


def _auth_result(payload: Dict[str, Any]) -> AuthResult:
    # With email confirmation enabled the provider answers signup with a bare user and no session
    if "access_token" in payload:
        session = {k: payload[k] for k in SESSION_FIELDS if k in payload}
        user = payload.get("user") or {}
    else:
        session = None
        user = payload.get("user") or payload
    return AuthResult(user=UserOut(id=str(user.get("id", "")), email=user.get("email")), session=session)


class SupabaseAuth:
    def __init__(
        self,
        url: str,
        anon_key: str,
        jwt_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.anon_key = anon_key
        self.jwt_secret = jwt_secret
        self.client = httpx.AsyncClient(base_url=f"{url.rstrip('/')}/auth/v1", transport=transport)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> httpx.Response:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        try:
            return await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Identity provider call %s %s failed: %s", method, path, e)
            raise InternalError("Internal server error")

    async def signup(self, email: str, password: str) -> AuthResult:
        resp = await self._request("POST", "/signup", json={"email": email, "password": password})
        payload = _json(resp)
        if resp.is_error:
            message = provider_message(payload)
            logger.error("Signup error (%s): %s", resp.status_code, message)
            raise ProviderError(message)
        return _auth_result(payload)

    async def login(self, email: str, password: str) -> AuthResult:
        resp = await self._request(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        payload = _json(resp)
        if resp.is_error:
            # Provider detail stays in the log; callers only learn the credentials were wrong
            logger.error("Login error (%s): %s", resp.status_code, provider_message(payload))
            raise AuthError("Invalid email or password")
        return _auth_result(payload)

    async def logout(self, token: str) -> None:
        """Revoke the session behind ``token``. An already invalid token counts as logged out."""
        resp = await self._request("POST", "/logout", token=token)
        if resp.status_code in (401, 403, 404):
            logger.info("Logout with an already invalid token (%s)", resp.status_code)
            return
        if resp.is_error:
            logger.error("Logout error (%s): %s", resp.status_code, provider_message(_json(resp)))
            raise InternalError("Failed to logout")

    async def get_user(self, token: str) -> Optional[AuthUser]:
        """Resolve a bearer token to its user, or None when the token is invalid or expired."""
        if self.jwt_secret:
            return self._decode(token)
        resp = await self._request("GET", "/user", token=token)
        if resp.is_error:
            return None
        payload = _json(resp)
        if not payload.get("id"):
            return None
        return AuthUser(id=str(payload["id"]), email=payload.get("email") or "")

    def _decode(self, token: str) -> Optional[AuthUser]:
        try:
            claims = jwt.decode(token, self.jwt_secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
        except JWTError:
            return None
        user_id = claims.get("sub")
        if not user_id:
            return None
        return AuthUser(id=str(user_id), email=claims.get("email") or "")
