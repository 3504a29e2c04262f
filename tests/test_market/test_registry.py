"""Tests for MarketRegistry: normalization, creation, exclusive access, export."""

import asyncio
from decimal import Decimal

import pytest

from launchpad.exceptions import DuplicateTicker, InvalidAmount, InvalidTicker, UnknownTicker
from launchpad.market.registry import MarketRegistry, TokenMarket, normalize_ticker
from launchpad.models import CurveParams, MarketStatus, PricePoint

T0 = 1_700_000_000.0


class TestNormalizeTicker:
    @pytest.mark.parametrize("raw", ["aster", "ASTER", "  Aster ", "aStEr"])
    def test_case_insensitive(self, raw: str) -> None:
        assert normalize_ticker(raw) == "ASTER"

    @pytest.mark.parametrize("raw", ["", "   ", "TOOLONG", "AB-C", "A B", "$DOGE"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(InvalidTicker):
            normalize_ticker(raw)

    def test_non_string(self) -> None:
        with pytest.raises(InvalidTicker):
            normalize_ticker(42)  # type: ignore[arg-type]


class TestCreate:
    def test_create_returns_snapshot(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        snapshot = registry.create("aster", "Aster", linear_curve, 1_000_000, now=T0)
        assert snapshot.ticker == "ASTER"
        assert snapshot.units_sold == 0
        assert snapshot.status == MarketStatus.ACTIVE
        assert snapshot.current_price == Decimal("0.000045")
        assert "aster" in registry
        assert len(registry) == 1

    def test_history_seeded_with_base_price(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000, now=T0)
        assert registry.history("aster") == [
            PricePoint(timestamp=T0, value=Decimal("0.000045"), synthetic=True)
        ]

    def test_duplicate_is_case_insensitive(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000)
        with pytest.raises(DuplicateTicker):
            registry.create("aster", "Other", linear_curve, 1_000)
        assert len(registry) == 1

    @pytest.mark.parametrize("name", ["", "   ", "x" * 33])
    def test_invalid_name(
        self, registry: MarketRegistry, linear_curve: CurveParams, name: str
    ) -> None:
        with pytest.raises(InvalidTicker):
            registry.create("ASTER", name, linear_curve, 1_000)

    @pytest.mark.parametrize(
        "base,slope,supply",
        [
            ("0", "0.1", 1_000),
            ("-1", "0.1", 1_000),
            ("0.1", "-0.1", 1_000),
            ("0.1", "0.1", 0),
            ("NaN", "0.1", 1_000),
        ],
    )
    def test_invalid_curve(
        self, registry: MarketRegistry, base: str, slope: str, supply: int
    ) -> None:
        curve = CurveParams(base_price=Decimal(base), slope=Decimal(slope))
        with pytest.raises(InvalidAmount):
            registry.create("BAD", "Bad", curve, supply)
        assert "BAD" not in registry

    @pytest.mark.parametrize(
        "base,supply",
        [
            ("0.002", 1_000_000_000),  # 300M USD at listing
            ("0.0046", 100_000),  # exactly 69,000 USD at listing
        ],
    )
    def test_curve_already_past_graduation_rejected(
        self, registry: MarketRegistry, base: str, supply: int
    ) -> None:
        curve = CurveParams(base_price=Decimal(base), slope=Decimal("0"))
        with pytest.raises(InvalidAmount, match="graduation threshold"):
            registry.create("HOT", "Hot", curve, supply)
        assert "HOT" not in registry

    def test_curve_just_below_graduation_accepted(self, registry: MarketRegistry) -> None:
        curve = CurveParams(base_price=Decimal("0.0045"), slope=Decimal("0"))
        snapshot = registry.create("WARM", "Warm", curve, 100_000)
        assert snapshot.status == MarketStatus.ACTIVE

    def test_get_or_create(self, registry: MarketRegistry, linear_curve: CurveParams) -> None:
        first = registry.get_or_create("pepe", linear_curve, 1_000)
        second = registry.get_or_create("PEPE", CurveParams(Decimal("9"), Decimal("9")), 5)
        assert first.ticker == second.ticker == "PEPE"
        assert second.base_price == Decimal("0.000045")
        assert len(registry) == 1

    def test_tickers_newest_first(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("OLD", "Old", linear_curve, 1_000, now=T0)
        registry.create("NEW", "New", linear_curve, 1_000, now=T0 + 60)
        assert registry.tickers() == ["NEW", "OLD"]


class TestAccess:
    def test_unknown_ticker(self, registry: MarketRegistry) -> None:
        with pytest.raises(UnknownTicker):
            registry.snapshot("NOPE")

    @pytest.mark.asyncio
    async def test_with_ticker_unknown(self, registry: MarketRegistry) -> None:
        with pytest.raises(UnknownTicker):
            await registry.with_ticker("NOPE", lambda market: None)

    @pytest.mark.asyncio
    async def test_with_ticker_returns_fn_result(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000)

        def _bump(market: TokenMarket) -> int:
            market.state.units_sold += 7
            return market.state.units_sold

        assert await registry.with_ticker("aster", _bump) == 7
        assert registry.snapshot("ASTER").units_sold == 7

    @pytest.mark.asyncio
    async def test_one_mutator_per_ticker(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("AAA", "A", linear_curve, 1_000)
        registry.create("BBB", "B", linear_curve, 1_000)

        release = asyncio.Event()
        entered = asyncio.Event()

        async def _hold_a() -> None:
            async with registry.locked("AAA"):
                entered.set()
                await release.wait()

        holder = asyncio.create_task(_hold_a())
        await entered.wait()

        # Another ticker proceeds while AAA is held.
        assert await registry.with_ticker("BBB", lambda m: m.state.ticker) == "BBB"

        # A second AAA mutator waits for the holder.
        waiter = asyncio.create_task(registry.with_ticker("AAA", lambda m: m.state.ticker))
        await asyncio.sleep(0)
        assert not waiter.done()

        release.set()
        assert await waiter == "AAA"
        await holder


class TestExportRestore:
    def test_export_copies_state(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000, now=T0)
        record = registry.export("ASTER")
        record.state.units_sold = 999
        assert registry.snapshot("ASTER").units_sold == 0

    def test_restore_into_fresh_registry(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000, now=T0)
        record = registry.export("ASTER")

        fresh = MarketRegistry()
        fresh.restore(record)
        assert fresh.snapshot("ASTER") == registry.snapshot("ASTER")
        assert fresh.history("ASTER") == registry.history("ASTER")

    def test_restore_duplicate_rejected(
        self, registry: MarketRegistry, linear_curve: CurveParams
    ) -> None:
        registry.create("ASTER", "Aster", linear_curve, 1_000)
        with pytest.raises(DuplicateTicker):
            registry.restore(registry.export("ASTER"))
