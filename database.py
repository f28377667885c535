import datetime as dt
import logging
from typing import List

from sqlalchemy import (
    Column,
    String,
    Integer,
    Date,
    DateTime,
    Text,
    delete,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import select

from errors import InternalError
from schemas import TransactionIn

logger = logging.getLogger(__name__)

Base = declarative_base()


# ----------------------------------------------------------------------------
# DB Models
# ----------------------------------------------------------------------------
class TransactionModel(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True)
    # Users live in the identity provider, so this is the provider's user id
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # smallest currency unit
    description = Column(Text, nullable=True)
    transaction_type = Column(String(10), nullable=False)  # income | expense
    # Categories are managed outside this service; no FK so unknown ids still insert
    category_id = Column(Integer, nullable=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


# ----------------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------------
class TransactionStore:
    """Process-wide handle on the hosted database.

    Every query is filtered by the owning user id; callers never see or touch
    another user's rows.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=echo, future=True)
        self.session_factory = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def list_for_user(self, user_id: str) -> List[TransactionModel]:
        query = (
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.date.desc(), TransactionModel.id.desc())
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Error fetching transactions for user %s: %s", user_id, e)
            raise InternalError("Failed to fetch transactions")

    async def insert(self, user_id: str, command: TransactionIn, today: dt.date) -> TransactionModel:
        tx = TransactionModel(
            user_id=user_id,
            amount=command.amount,
            description=command.description,
            transaction_type=command.transaction_type,
            category_id=command.category_id,
            date=command.date or today,
        )
        try:
            async with self.session_factory() as db:
                db.add(tx)
                await db.commit()
                await db.refresh(tx)
        except SQLAlchemyError as e:
            logger.error("Error creating transaction for user %s: %s", user_id, e)
            raise InternalError(
                "Failed to create transaction",
                details={"message": str(getattr(e, "orig", None) or e)},
            )
        logger.info("Created transaction %s for user %s", tx.id, user_id)
        return tx

    async def delete(self, user_id: str, transaction_id: int) -> int:
        """Delete one of the user's transactions; returns the number of rows matched."""
        stmt = delete(TransactionModel).where(
            TransactionModel.id == transaction_id,
            TransactionModel.user_id == user_id,
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Error deleting transaction %s for user %s: %s", transaction_id, user_id, e)
            raise InternalError("Failed to delete transaction")
        logger.info("Deleted %d transaction(s) with id %s for user %s", result.rowcount, transaction_id, user_id)
        return result.rowcount
