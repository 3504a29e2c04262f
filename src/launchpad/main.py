"""Entry point for the launchpad service.

Wires all components together and serves the JSON API. The settlement engine,
the synthetic price walk, and the snapshot flush share a single asyncio event
loop via uvicorn's programmatic API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown: background tasks stop and a
final snapshot of every market is written before the process exits.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. MarketRegistry (per-ticker state, ledger, price history)
4. FeePolicy (platform fee)
5. PaperMigrator (graduation liquidity hand-off)
6. SettlementEngine (pricing and settlement)
7. SyntheticPriceWalk (idle chart samples)
8. MarketDatabase / MarketStore (snapshot persistence, optional)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from launchpad.config import AppSettings
from launchpad.data.database import MarketDatabase
from launchpad.data.store import MarketStore
from launchpad.engine import SettlementEngine
from launchpad.fees.policy import FeePolicy
from launchpad.logging import get_logger, setup_logging
from launchpad.market.registry import MarketRegistry
from launchpad.market.walk import SyntheticPriceWalk
from launchpad.migration.paper_migrator import PaperMigrator


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT connect the database -- that happens in the lifespan
    (API mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    registry = MarketRegistry(settings.market, settings.history)
    fee_policy = FeePolicy(settings.fees)
    migrator = PaperMigrator()
    engine = SettlementEngine(
        registry=registry,
        fee_policy=fee_policy,
        market_settings=settings.market,
        migrator=migrator,
        curve_settings=settings.curve,
    )
    walk = SyntheticPriceWalk(registry, settings.history)

    database = None
    store = None
    if settings.storage.enabled:
        database = MarketDatabase(settings.storage.db_path)
        store = MarketStore(database)

    return {
        "registry": registry,
        "fee_policy": fee_policy,
        "migrator": migrator,
        "engine": engine,
        "walk": walk,
        "database": database,
        "store": store,
    }


async def restore_markets(registry: MarketRegistry, store: MarketStore) -> int:
    """Load every persisted market into an empty registry. Returns the count."""
    records = await store.load_markets()
    for record in records:
        registry.restore(record)
    return len(records)


async def flush_snapshots(
    registry: MarketRegistry, store: MarketStore, max_trades: int
) -> int:
    """Persist a bounded snapshot of every market. Returns the number saved.

    Each export is a copy taken between awaits, so no writer holds a lock
    while SQLite does I/O.
    """
    records = [registry.export(ticker, max_trades) for ticker in registry.tickers()]
    return await store.save_all(records)


async def _flush_loop(
    registry: MarketRegistry, store: MarketStore, interval: float, max_trades: int
) -> None:
    logger = get_logger("launchpad.main")
    while True:
        await asyncio.sleep(interval)
        try:
            saved = await flush_snapshots(registry, store, max_trades)
            logger.debug("snapshot_flushed", markets=saved)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("snapshot_flush_failed", exc_info=True)


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Register SIGINT/SIGTERM to set ``stop_event``.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("launchpad.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def _services(settings: AppSettings, components: dict[str, Any]):
    """Start persistence, the price walk, and the flush loop; tear them down on exit."""
    logger = get_logger("launchpad.main")
    registry: MarketRegistry = components["registry"]
    walk: SyntheticPriceWalk = components["walk"]
    database: MarketDatabase | None = components["database"]
    store: MarketStore | None = components["store"]

    flush_task = None
    if database is not None and store is not None:
        await database.connect()
        restored = await restore_markets(registry, store)
        logger.info("markets_restored", count=restored)
        flush_task = asyncio.create_task(
            _flush_loop(
                registry,
                store,
                settings.storage.flush_interval,
                settings.storage.max_persisted_trades,
            )
        )

    await walk.start()

    try:
        yield
    finally:
        await walk.stop()

        if flush_task is not None:
            flush_task.cancel()
            try:
                await flush_task
            except asyncio.CancelledError:
                pass

        if database is not None and store is not None:
            saved = await flush_snapshots(
                registry, store, settings.storage.max_persisted_trades
            )
            logger.info("final_snapshot_saved", markets=saved)
            await database.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores the engine on app.state, restores persisted markets,
    starts the synthetic walk and the snapshot flush loop.

    On shutdown: stops both loops and writes a final snapshot.
    """
    logger = get_logger("launchpad.main")
    settings = app.state.settings
    components = app.state.components

    app.state.engine = components["engine"]

    async with _services(settings, components):
        logger.info("lifespan_started", markets=len(components["registry"]))
        yield

    logger.info("launchpad_stopped")


async def run() -> None:
    """Run the launchpad service.

    When the API is enabled (API_ENABLED=true, the default), uvicorn serves
    the FastAPI app and the lifespan manages startup/shutdown; uvicorn
    installs its own SIGINT/SIGTERM handling.

    When the API is disabled, the walk and flush loop run headless until
    SIGINT/SIGTERM.
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("launchpad.main")

    # 3-8. Build all components
    components = await _build_components(settings)

    if settings.api.enabled:
        from launchpad.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_api",
            host=settings.api.host,
            port=settings.api.port,
            storage=settings.storage.enabled,
        )

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        stop_event = asyncio.Event()
        _setup_signal_handlers(stop_event)

        logger.info("starting_without_api", storage=settings.storage.enabled)

        async with _services(settings, components):
            await stop_event.wait()
        logger.info("launchpad_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
