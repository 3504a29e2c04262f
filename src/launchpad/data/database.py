"""Async SQLite database manager for market snapshots.

Uses aiosqlite for non-blocking database operations with WAL mode so the
periodic snapshot flush never stalls the event loop.
"""

import os
from typing import Self

import aiosqlite

from launchpad.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS tokens (
    ticker TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    base_price TEXT NOT NULL,
    slope TEXT NOT NULL,
    total_supply INTEGER NOT NULL,
    units_sold INTEGER NOT NULL,
    graduation_threshold_usd TEXT NOT NULL,
    status TEXT NOT NULL,
    reserve TEXT NOT NULL,
    liquidity_fees TEXT NOT NULL,
    treasury_fees TEXT NOT NULL,
    created_at REAL NOT NULL,
    graduated_at REAL,
    migration_status TEXT NOT NULL,
    creator TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS trades (
    ticker TEXT NOT NULL,
    sequence INTEGER NOT NULL,
    id TEXT NOT NULL,
    kind TEXT NOT NULL,
    requested_amount TEXT NOT NULL,
    units INTEGER NOT NULL,
    gross_amount TEXT NOT NULL,
    execution_price TEXT NOT NULL,
    fee_amount TEXT NOT NULL,
    net_amount TEXT NOT NULL,
    timestamp REAL NOT NULL,
    actor TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (ticker, sequence)
);

CREATE TABLE IF NOT EXISTS price_points (
    ticker TEXT NOT NULL,
    position INTEGER NOT NULL,
    timestamp REAL NOT NULL,
    value TEXT NOT NULL,
    synthetic INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (ticker, position)
);
"""


class MarketDatabase:
    """Async SQLite connection manager for market snapshots.

    Usage:
        async with MarketDatabase("data/launchpad.db") as database:
            store = MarketStore(database)
            await store.save_market(record)
    """

    def __init__(self, db_path: str = "data/launchpad.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection, set pragmas, and create the schema."""
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._ensure_schema_version()
        await self._connection.commit()

        logger.info("market_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("market_db_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
        elif row[0] != SCHEMA_VERSION:
            raise RuntimeError(
                f"{self._db_path} has schema version {row[0]}, expected {SCHEMA_VERSION}"
            )

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
