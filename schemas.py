"""
Request and response schemas

Request bodies arrive as untyped JSON; these models turn them into typed
commands before anything reaches the identity gateway or the store. A body
that fails validation never becomes a command: FastAPI collects the problems
and the HTTP edge answers 400.
- CredentialsIn / SignupIn -> Identity gateway
- TransactionIn -> Transaction store
"""

import datetime as dt
import math
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

MIN_PASSWORD_LENGTH = 6
# Amounts and ids are stored in 32-bit INTEGER columns
MAX_INT = 2**31 - 1

TransactionType = Literal["income", "expense"]


# ----------------------------------------------------------------------------
# Identity
# ----------------------------------------------------------------------------
class CredentialsIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class SignupIn(CredentialsIn):
    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return value


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None


class AuthUser(BaseModel):
    """Identity attached to a request once its bearer token has been verified."""

    id: str
    email: str = ""


class AuthResult(BaseModel):
    user: UserOut
    session: Optional[Dict[str, Any]] = None


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
def _coerce_amount(value: Any) -> int:
    # int, float or numeric string; floats truncate toward zero
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                raise ValueError("amount must be a number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("amount must be a finite number")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError("amount must be a number")
    if value == 0:
        raise ValueError("amount must be non-zero")
    if abs(value) > MAX_INT:
        raise ValueError("amount is out of range")
    return value


class TransactionIn(BaseModel):
    amount: int
    transaction_type: TransactionType
    description: Optional[str] = None
    category_id: Optional[int] = Field(None, ge=1, le=MAX_INT)
    date: Optional[dt.date] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> int:
        return _coerce_amount(value)

    @field_validator("description", "category_id", "date", mode="before")
    @classmethod
    def _blank_is_null(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TransactionOut(BaseModel):
    id: int
    user_id: str
    amount: int
    description: Optional[str] = None
    transaction_type: str
    category_id: Optional[int] = None
    date: dt.date
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
