"""Typed snapshot persistence for market records.

A MarketRecord (state + bounded ledger + bounded price series) is all that is
needed to rebuild a market after a restart. All SQL lives behind MarketStore.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

from decimal import Decimal

from launchpad.data.database import MarketDatabase
from launchpad.logging import get_logger
from launchpad.market.registry import MarketRecord
from launchpad.market.state import TokenMarketState
from launchpad.models import (
    CurveParams,
    MarketStatus,
    MigrationStatus,
    PricePoint,
    Trade,
    TradeKind,
)

logger = get_logger(__name__)


class MarketStore:
    """Async SQLite store for market snapshots.

    Args:
        database: A connected MarketDatabase.
    """

    def __init__(self, database: MarketDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def save_market(self, record: MarketRecord) -> None:
        """Replace the stored snapshot for one ticker in a single transaction."""
        db = self._database.db
        state = record.state
        ticker = state.ticker

        await db.execute(
            "INSERT OR REPLACE INTO tokens "
            "(ticker, name, base_price, slope, total_supply, units_sold, "
            "graduation_threshold_usd, status, reserve, liquidity_fees, treasury_fees, "
            "created_at, graduated_at, migration_status, creator) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                ticker,
                state.name,
                str(state.curve.base_price),
                str(state.curve.slope),
                state.total_supply,
                state.units_sold,
                str(state.graduation_threshold_usd),
                state.status.value,
                str(state.reserve),
                str(state.liquidity_fees),
                str(state.treasury_fees),
                state.created_at,
                state.graduated_at,
                state.migration_status.value,
                state.creator,
            ),
        )

        await db.execute("DELETE FROM trades WHERE ticker = ?", (ticker,))
        await db.executemany(
            "INSERT INTO trades "
            "(ticker, sequence, id, kind, requested_amount, units, gross_amount, "
            "execution_price, fee_amount, net_amount, timestamp, actor) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    ticker,
                    t.sequence,
                    t.id,
                    t.kind.value,
                    str(t.requested_amount),
                    t.units,
                    str(t.gross_amount),
                    str(t.execution_price),
                    str(t.fee_amount),
                    str(t.net_amount),
                    t.timestamp,
                    t.actor,
                )
                for t in record.trades
            ],
        )

        await db.execute("DELETE FROM price_points WHERE ticker = ?", (ticker,))
        await db.executemany(
            "INSERT INTO price_points (ticker, position, timestamp, value, synthetic) "
            "VALUES (?, ?, ?, ?, ?)",
            [
                (ticker, position, p.timestamp, str(p.value), int(p.synthetic))
                for position, p in enumerate(record.points)
            ],
        )
        await db.commit()

        logger.debug(
            "market_saved",
            ticker=ticker,
            trades=len(record.trades),
            points=len(record.points),
        )

    async def save_all(self, records: list[MarketRecord]) -> int:
        """Save every record. Returns the number saved."""
        for record in records:
            await self.save_market(record)
        return len(records)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def load_markets(self) -> list[MarketRecord]:
        """Load every stored market, oldest listing first."""
        db = self._database.db
        cursor = await db.execute(
            "SELECT ticker, name, base_price, slope, total_supply, units_sold, "
            "graduation_threshold_usd, status, reserve, liquidity_fees, treasury_fees, "
            "created_at, graduated_at, migration_status, creator "
            "FROM tokens ORDER BY created_at"
        )
        rows = await cursor.fetchall()

        records = []
        for row in rows:
            state = TokenMarketState(
                ticker=row[0],
                name=row[1],
                curve=CurveParams(base_price=Decimal(row[2]), slope=Decimal(row[3])),
                total_supply=row[4],
                units_sold=row[5],
                graduation_threshold_usd=Decimal(row[6]),
                status=MarketStatus(row[7]),
                reserve=Decimal(row[8]),
                liquidity_fees=Decimal(row[9]),
                treasury_fees=Decimal(row[10]),
                created_at=row[11],
                graduated_at=row[12],
                migration_status=MigrationStatus(row[13]),
                creator=row[14],
            )
            records.append(
                MarketRecord(
                    state=state,
                    trades=await self._load_trades(state.ticker),
                    points=await self._load_points(state.ticker),
                )
            )

        logger.info("markets_loaded", count=len(records))
        return records

    async def _load_trades(self, ticker: str) -> list[Trade]:
        cursor = await self._database.db.execute(
            "SELECT id, sequence, kind, requested_amount, units, gross_amount, "
            "execution_price, fee_amount, net_amount, timestamp, actor "
            "FROM trades WHERE ticker = ? ORDER BY sequence",
            (ticker,),
        )
        rows = await cursor.fetchall()
        return [
            Trade(
                id=row[0],
                sequence=row[1],
                ticker=ticker,
                kind=TradeKind(row[2]),
                requested_amount=Decimal(row[3]),
                units=row[4],
                gross_amount=Decimal(row[5]),
                execution_price=Decimal(row[6]),
                fee_amount=Decimal(row[7]),
                net_amount=Decimal(row[8]),
                timestamp=row[9],
                actor=row[10],
            )
            for row in rows
        ]

    async def _load_points(self, ticker: str) -> list[PricePoint]:
        cursor = await self._database.db.execute(
            "SELECT timestamp, value, synthetic FROM price_points "
            "WHERE ticker = ? ORDER BY position",
            (ticker,),
        )
        rows = await cursor.fetchall()
        return [
            PricePoint(timestamp=row[0], value=Decimal(row[1]), synthetic=bool(row[2]))
            for row in rows
        ]
