"""
Personal Finance Tracker API

Authenticated transaction CRUD on top of a hosted identity provider and a
hosted Postgres database. Run with ``python main.py`` or
``uvicorn main:create_app --factory``.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Path, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import bearer_token, get_identity, get_store, require_user
from config import Settings, configure_logging, load_settings
from database import TransactionStore
from errors import AppError, AuthError, ConfigError, ValidationError
from identity import SupabaseAuth
from schemas import MAX_INT, AuthUser, CredentialsIn, SignupIn, TransactionIn, TransactionOut, UserOut

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def get_today(request: Request) -> date:
    """Calendar date used for transactions created without one."""
    settings: Settings = request.app.state.settings
    return datetime.now(settings.tz).date()


# ----------------------------------------------------------------------------
# Health & banner
# ----------------------------------------------------------------------------
meta_router = APIRouter()


@meta_router.get("/")
async def read_root():
    return {
        "message": "Personal Finance Tracker API is running!",
        "version": API_VERSION,
        "endpoints": {
            "auth": "/api/auth",
            "transactions": "/api/transactions",
        },
    }


@meta_router.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ----------------------------------------------------------------------------
# Auth routes
# ----------------------------------------------------------------------------
auth_router = APIRouter(prefix="/api/auth")


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupIn, identity: SupabaseAuth = Depends(get_identity)):
    result = await identity.signup(payload.email, payload.password)
    return {"message": "Account created successfully", **result.model_dump()}


@auth_router.post("/login")
async def login(payload: CredentialsIn, identity: SupabaseAuth = Depends(get_identity)):
    result = await identity.login(payload.email, payload.password)
    return {"message": "Logged in successfully", **result.model_dump()}


@auth_router.post("/logout")
async def logout(
    authorization: Optional[str] = Header(None),
    identity: SupabaseAuth = Depends(get_identity),
):
    if not authorization:
        raise AuthError("No authorization token provided")
    await identity.logout(bearer_token(authorization) or authorization.strip())
    return {"message": "Logged out successfully"}


@auth_router.get("/user")
async def current_user(
    authorization: Optional[str] = Header(None),
    identity: SupabaseAuth = Depends(get_identity),
):
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("No authorization token provided")
    user = await identity.get_user(token)
    if user is None:
        raise AuthError("Invalid or expired token")
    return {"user": UserOut(id=user.id, email=user.email)}


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
transactions_router = APIRouter(prefix="/api/transactions")


@transactions_router.get("")
async def list_transactions(
    current_user: AuthUser = Depends(require_user),
    store: TransactionStore = Depends(get_store),
):
    rows = await store.list_for_user(current_user.id)
    return {"transactions": [TransactionOut.model_validate(r) for r in rows]}


@transactions_router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionIn,
    current_user: AuthUser = Depends(require_user),
    store: TransactionStore = Depends(get_store),
    today: date = Depends(get_today),
):
    tx = await store.insert(current_user.id, payload, today)
    return {"message": "Transaction created successfully", "transaction": TransactionOut.model_validate(tx)}


@transactions_router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: int = Path(..., ge=1, le=MAX_INT),
    current_user: AuthUser = Depends(require_user),
    store: TransactionStore = Depends(get_store),
):
    # Another user's id matches zero rows and still reports success
    await store.delete(current_user.id, transaction_id)
    return {"message": "Transaction deleted successfully"}


# ----------------------------------------------------------------------------
# Error envelope
# ----------------------------------------------------------------------------
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


def _describe(problem: dict) -> str:
    loc = [str(p) for p in problem["loc"][1:]]
    field = ".".join(loc) or "body"
    msg = problem["msg"]
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    return f"{field}: {msg}"


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    missing = [".".join(str(p) for p in d["loc"][1:]) or "body" for d in details if d["type"] == "missing"]
    if missing:
        message = "Missing required fields: " + ", ".join(missing)
    elif details:
        message = _describe(details[0])
    else:
        message = "Invalid request"
    return await app_error_handler(request, ValidationError(message, details=details))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.database_url.startswith("sqlite"):
        logger.warning(
            "Transactions are stored in local SQLite (%s); set DATABASE_URL to the hosted Postgres",
            settings.database_url,
        )
    await app.state.store.create_all()
    yield
    await app.state.identity.aclose()
    await app.state.store.dispose()


def create_app(
    settings: Optional[Settings] = None,
    identity: Optional[SupabaseAuth] = None,
    store: Optional[TransactionStore] = None,
) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Personal Finance Tracker API", version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.identity = identity or SupabaseAuth(
        settings.supabase_url,
        settings.supabase_anon_key,
        jwt_secret=settings.supabase_jwt_secret,
    )
    app.state.store = store or TransactionStore(settings.database_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(meta_router)
    app.include_router(auth_router)
    app.include_router(transactions_router)
    return app


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    configure_logging(settings.log_level)

    import uvicorn

    logger.info("Finance Tracker API v%s listening on port %s", API_VERSION, settings.port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
