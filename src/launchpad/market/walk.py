"""Synthetic price walk -- keeps idle charts moving.

Appends a bounded random-walk sample to each idle token's price history on a
fixed interval. Samples are display-only: the walk never touches units sold,
the reserve, or market cap. It competes for the same per-ticker lock as
settlement, so a sample can never interleave with a real trade.
"""

import asyncio
import random
import time
from collections.abc import Callable
from decimal import ROUND_HALF_EVEN, Decimal

from launchpad.config import HistorySettings
from launchpad.curve.math import wide_arithmetic
from launchpad.exceptions import LaunchpadError
from launchpad.logging import get_logger
from launchpad.market.registry import MarketRegistry, TokenMarket
from launchpad.models import PricePoint

logger = get_logger(__name__)

# Display precision for synthetic samples.
_PRICE_QUANTUM = Decimal("1e-18")


class SyntheticPriceWalk:
    """Scheduled sampler for tokens with no recent real trades.

    Args:
        registry: The market registry to walk.
        settings: Interval, step size, floor price, and enable flags.
        rng: Random source (seed it for reproducible walks).
        clock: Time source returning Unix seconds.
    """

    def __init__(
        self,
        registry: MarketRegistry,
        settings: HistorySettings,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._rng = rng or random.Random()
        self._clock = clock
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin sampling in the background."""
        if not self._settings.walk_enabled:
            logger.info("price_walk_disabled")
            return
        if self._running:
            logger.warning("price_walk_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._walk_loop())
        logger.info("price_walk_started", interval=self._settings.sample_interval)

    async def stop(self) -> None:
        """Stop the walk gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_walk_stopped")

    async def _walk_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._settings.sample_interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_walk_tick_error", exc_info=True)

    async def tick(self, now: float | None = None) -> int:
        """Sample every idle ticker once. Returns the number of points appended."""
        now = self._clock() if now is None else now
        appended = 0
        for ticker in self._registry.tickers():
            try:
                if await self._registry.with_ticker(ticker, lambda m: self._sample(m, now)):
                    appended += 1
            except LaunchpadError:
                # Ticker vanished between listing and locking; nothing to sample.
                logger.debug("price_walk_ticker_skipped", ticker=ticker)
        if appended:
            logger.debug("price_walk_sampled", count=appended)
        return appended

    def _sample(self, market: TokenMarket, now: float) -> bool:
        """Append one synthetic point if the market is idle. Runs under the ticker lock."""
        if market.state.is_graduated:
            return False
        if self._settings.disable_after_real_trades and len(market.ledger) > 0:
            return False
        last_real = market.history.last_real_at
        if last_real is not None and last_real > now - self._settings.sample_interval:
            return False
        latest = market.history.latest()
        if latest is not None and latest.timestamp > now:
            return False

        last_value = latest.value if latest is not None else market.state.current_price
        step = Decimal(str(self._rng.uniform(-1.0, 1.0))) * self._settings.max_step_pct
        with wide_arithmetic():
            value = (last_value * (Decimal("1") + step)).quantize(
                _PRICE_QUANTUM, rounding=ROUND_HALF_EVEN
            )
        value = max(value, self._settings.min_price, market.state.curve.base_price)
        market.history.append(PricePoint(timestamp=now, value=value, synthetic=True))
        return True
