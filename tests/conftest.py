"""Shared fixtures: a fresh SQLite database per test."""

import pytest
import pytest_asyncio

from fundledger.config import AccountingConfig
from fundledger.persistence.database import Database
from fundledger.persistence.repository import Repository


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.disconnect()


@pytest_asyncio.fixture
async def repo(db):
    return Repository(db)


@pytest.fixture
def accounting_config():
    return AccountingConfig()
