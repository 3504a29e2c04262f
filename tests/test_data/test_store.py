"""Tests for MarketDatabase and MarketStore snapshot persistence."""

from decimal import Decimal

import pytest
import pytest_asyncio

from launchpad.data.database import MarketDatabase
from launchpad.data.store import MarketStore
from launchpad.engine import SettlementEngine
from launchpad.market.registry import MarketRegistry
from launchpad.models import CurveParams, MarketStatus, MigrationStatus, TradeKind


@pytest_asyncio.fixture
async def database(tmp_path):
    db = MarketDatabase(str(tmp_path / "sub" / "launchpad.db"))
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def store(database: MarketDatabase) -> MarketStore:
    return MarketStore(database)


def test_db_requires_connect() -> None:
    with pytest.raises(RuntimeError):
        MarketDatabase("unused.db").db


@pytest.mark.asyncio
async def test_empty_store(store: MarketStore) -> None:
    assert await store.load_markets() == []


@pytest.mark.asyncio
async def test_round_trip_preserves_decimals(
    store: MarketStore, engine: SettlementEngine, linear_curve: CurveParams
) -> None:
    engine.create_token(
        "LIN",
        "Linear",
        base_price=linear_curve.base_price,
        slope=linear_curve.slope,
        creator="dev",
        total_supply=100_000,
    )
    await engine.buy("LIN", Decimal("1.5"), actor="alice")
    await engine.sell("LIN", 10, actor="alice")

    record = engine.registry.export("LIN")
    await store.save_market(record)
    loaded = await store.load_markets()

    assert len(loaded) == 1
    restored = loaded[0]
    assert restored.state == record.state
    assert restored.trades == record.trades
    assert restored.points == record.points
    assert restored.trades[1].kind == TradeKind.SELL
    assert isinstance(restored.state.reserve, Decimal)


@pytest.mark.asyncio
async def test_save_replaces_previous_snapshot(
    store: MarketStore, engine: SettlementEngine, flat_curve: CurveParams
) -> None:
    engine.create_token(
        "FLAT",
        "Flat",
        base_price=flat_curve.base_price,
        slope=flat_curve.slope,
        total_supply=100_000,
    )
    await engine.buy("FLAT", Decimal("0.02"))
    await store.save_market(engine.registry.export("FLAT"))

    await engine.buy("FLAT", Decimal("0.02"))
    await engine.buy("FLAT", Decimal("0.02"))
    await store.save_market(engine.registry.export("FLAT", max_trades=2))

    (restored,) = await store.load_markets()
    assert restored.state.units_sold == 30
    assert [t.sequence for t in restored.trades] == [2, 3]


@pytest.mark.asyncio
async def test_restored_registry_keeps_trading(
    store: MarketStore, engine: SettlementEngine, flat_curve: CurveParams
) -> None:
    engine.create_token(
        "FLAT",
        "Flat",
        base_price=flat_curve.base_price,
        slope=flat_curve.slope,
        total_supply=100_000,
    )
    for _ in range(3):
        await engine.buy("FLAT", Decimal("0.02"))
    await store.save_market(engine.registry.export("FLAT", max_trades=2))

    fresh = MarketRegistry()
    for record in await store.load_markets():
        fresh.restore(record)

    assert fresh.snapshot("FLAT").units_sold == 30
    assert fresh.recent_trades("FLAT", 10)[0].sequence == 3


@pytest.mark.asyncio
async def test_graduated_status_persists(store: MarketStore, engine: SettlementEngine) -> None:
    engine.create_token("ASTER", "Aster")
    await engine.buy("ASTER", Decimal("250"))
    await store.save_all([engine.registry.export("ASTER")])

    (restored,) = await store.load_markets()
    assert restored.state.status == MarketStatus.GRADUATED
    assert restored.state.migration_status == MigrationStatus.SUCCEEDED
    assert restored.state.graduated_at is not None


@pytest.mark.asyncio
async def test_reopen_keeps_data(tmp_path, engine: SettlementEngine) -> None:
    path = str(tmp_path / "launchpad.db")
    engine.create_token("KEEP", "Keep")
    async with MarketDatabase(path) as db:
        await MarketStore(db).save_market(engine.registry.export("KEEP"))
    async with MarketDatabase(path) as db:
        records = await MarketStore(db).load_markets()
    assert [r.state.ticker for r in records] == ["KEEP"]
