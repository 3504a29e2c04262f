"""Shared test fixtures for the launchpad engine."""

from decimal import Decimal

import pytest

from launchpad.config import (
    AppSettings,
    CurveSettings,
    FeeSettings,
    HistorySettings,
    MarketSettings,
    StorageSettings,
)
from launchpad.engine import SettlementEngine
from launchpad.fees.policy import FeePolicy
from launchpad.market.registry import MarketRegistry
from launchpad.migration.paper_migrator import PaperMigrator
from launchpad.models import CurveParams


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (no walk, no persistence)."""
    return AppSettings(
        log_level="DEBUG",
        history=HistorySettings(walk_enabled=False),
        storage=StorageSettings(enabled=False),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def flat_curve() -> CurveParams:
    """0.002 native per unit regardless of units sold."""
    return CurveParams(base_price=Decimal("0.002"), slope=Decimal("0"))


@pytest.fixture
def linear_curve() -> CurveParams:
    return CurveParams(base_price=Decimal("0.000045"), slope=Decimal("0.00000005"))


@pytest.fixture
def market_settings() -> MarketSettings:
    return MarketSettings()


@pytest.fixture
def history_settings() -> HistorySettings:
    return HistorySettings(walk_enabled=False)


@pytest.fixture
def registry(
    market_settings: MarketSettings, history_settings: HistorySettings
) -> MarketRegistry:
    return MarketRegistry(market_settings, history_settings)


@pytest.fixture
def fee_policy() -> FeePolicy:
    return FeePolicy(FeeSettings())


@pytest.fixture
def migrator() -> PaperMigrator:
    return PaperMigrator()


@pytest.fixture
def engine(
    registry: MarketRegistry,
    fee_policy: FeePolicy,
    market_settings: MarketSettings,
    migrator: PaperMigrator,
    clock: FakeClock,
) -> SettlementEngine:
    return SettlementEngine(
        registry=registry,
        fee_policy=fee_policy,
        market_settings=market_settings,
        migrator=migrator,
        curve_settings=CurveSettings(),
        clock=clock,
    )
