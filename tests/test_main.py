"""Tests for component wiring and the startup/shutdown snapshot cycle."""

from decimal import Decimal

import pytest

from launchpad.config import AppSettings, HistorySettings, StorageSettings
from launchpad.engine import SettlementEngine
from launchpad.main import _build_components, _services


def _settings(db_path: str) -> AppSettings:
    return AppSettings(
        history=HistorySettings(walk_enabled=False),
        storage=StorageSettings(enabled=True, db_path=db_path, flush_interval=3600.0),
    )


@pytest.mark.asyncio
async def test_build_components_without_storage(mock_settings: AppSettings) -> None:
    components = await _build_components(mock_settings)
    assert isinstance(components["engine"], SettlementEngine)
    assert components["database"] is None
    assert components["store"] is None


@pytest.mark.asyncio
async def test_shutdown_saves_and_startup_restores(tmp_path) -> None:
    settings = _settings(str(tmp_path / "launchpad.db"))

    components = await _build_components(settings)
    async with _services(settings, components):
        engine: SettlementEngine = components["engine"]
        engine.create_token(
            "KEEP",
            "Keep",
            base_price=Decimal("0.002"),
            slope=Decimal("0"),
            total_supply=100_000,
        )
        await engine.buy("KEEP", Decimal("0.2"), actor="alice")

    restarted = await _build_components(settings)
    async with _services(settings, restarted):
        snapshot = restarted["engine"].snapshot("KEEP")
        assert snapshot.units_sold == 100
        assert snapshot.reserve == Decimal("0.198")
        assert len(restarted["engine"].recent_trades("KEEP")) == 1
