import logging
from dataclasses import replace

import pytest

from config import Settings
from database import TransactionStore
from main import create_app, lifespan

pytestmark = pytest.mark.anyio


async def test_warns_when_falling_back_to_sqlite(settings: Settings, identity, store: TransactionStore, caplog):
    app = create_app(settings, identity=identity, store=store)
    with caplog.at_level(logging.WARNING, logger="main"):
        async with lifespan(app):
            pass
    assert any("local SQLite" in r.getMessage() for r in caplog.records)


async def test_no_warning_for_hosted_database(settings: Settings, identity, store: TransactionStore, caplog):
    hosted = replace(settings, database_url="postgresql+asyncpg://u:p@db.supabase.co/postgres")
    app = create_app(hosted, identity=identity, store=store)
    with caplog.at_level(logging.WARNING, logger="main"):
        async with lifespan(app):
            pass
    assert not [r for r in caplog.records if r.name == "main" and r.levelno >= logging.WARNING]
