"""aiosqlite connection for the accounting store."""

import logging
from pathlib import Path

import aiosqlite

from fundledger.persistence.models import SCHEMA, SCHEMA_VERSION

logger = logging.getLogger(__name__)

Params = tuple | dict | None


class Database:
    """One shared connection. Every write commits before returning."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError(f"Database {self._path} is not connected")
        return self._connection

    async def connect(self) -> None:
        """Open the file, enable WAL and foreign keys, create missing tables."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        self._connection = conn

        version = await self._user_version()
        if version > SCHEMA_VERSION:
            logger.warning(
                "Database %s has schema v%d, newer than this build (v%d)",
                self._path,
                version,
                SCHEMA_VERSION,
            )
        await self._create_tables()
        logger.info("Accounting store opened: %s (schema v%d)", self._path, SCHEMA_VERSION)

    async def disconnect(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Accounting store closed: %s", self._path)

    async def _user_version(self) -> int:
        cursor = await self.connection.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def _create_tables(self) -> None:
        for statement in SCHEMA:
            await self.connection.execute(statement)
        await self.connection.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await self.connection.commit()

    async def execute(self, sql: str, parameters: Params = None) -> aiosqlite.Cursor:
        """Run one statement without committing."""
        return await self.connection.execute(sql, parameters or ())

    async def write(self, sql: str, parameters: Params = None) -> int:
        """Run an UPDATE/DELETE/upsert and commit. Returns the affected row count."""
        cursor = await self.execute(sql, parameters)
        await self.connection.commit()
        return cursor.rowcount

    async def insert(self, sql: str, parameters: Params) -> int:
        """Run an INSERT and commit. Returns the new row id."""
        cursor = await self.execute(sql, parameters)
        await self.connection.commit()
        return cursor.lastrowid

    async def fetchone(self, sql: str, parameters: Params = None) -> aiosqlite.Row | None:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, parameters: Params = None) -> list[aiosqlite.Row]:
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())
