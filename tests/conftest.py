import secrets
import uuid
from typing import AsyncIterator, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI

from config import Settings
from database import TransactionStore
from errors import AuthError, ProviderError
from main import create_app
from schemas import AuthResult, AuthUser, UserOut


class FakeIdentity:
    """In-memory stand-in for the hosted identity provider."""

    def __init__(self):
        self.users: Dict[str, Tuple[str, str]] = {}
        self.tokens: Dict[str, AuthUser] = {}
        self.calls: List[str] = []

    def register(self, email: str, password: str = "secret123") -> str:
        """Create a user directly and return a fresh access token."""
        self.users[email] = (str(uuid.uuid4()), password)
        return self._issue(email).session["access_token"]

    def _issue(self, email: str) -> AuthResult:
        user_id, _ = self.users[email]
        token = secrets.token_hex(16)
        self.tokens[token] = AuthUser(id=user_id, email=email)
        return AuthResult(
            user=UserOut(id=user_id, email=email),
            session={"access_token": token, "token_type": "bearer", "expires_in": 3600},
        )

    async def signup(self, email: str, password: str) -> AuthResult:
        self.calls.append("signup")
        if email in self.users:
            raise ProviderError("User already registered")
        self.users[email] = (str(uuid.uuid4()), password)
        return self._issue(email)

    async def login(self, email: str, password: str) -> AuthResult:
        self.calls.append("login")
        known = self.users.get(email)
        if known is None or known[1] != password:
            raise AuthError("Invalid email or password")
        return self._issue(email)

    async def logout(self, token: str) -> None:
        self.calls.append("logout")
        self.tokens.pop(token, None)

    async def get_user(self, token: str) -> Optional[AuthUser]:
        self.calls.append("get_user")
        return self.tokens.get(token)

    async def aclose(self) -> None:
        pass


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(supabase_url="http://supabase.test", supabase_anon_key="anon-key")


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture
async def store(tmp_path) -> AsyncIterator[TransactionStore]:
    store = TransactionStore(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await store.create_all()
    yield store
    await store.dispose()


@pytest.fixture
def app(settings: Settings, identity: FakeIdentity, store: TransactionStore) -> FastAPI:
    return create_app(settings, identity=identity, store=store)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
