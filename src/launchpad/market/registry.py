"""Keyed registry of token markets with per-ticker mutual exclusion.

Each ticker owns one asyncio.Lock. Settlement and the synthetic walk both
mutate a market only through with_ticker() / locked(), so at most one writer
touches a ticker at a time while other tickers proceed independently.

Reads for quotes and charts go through snapshot() / history() / recent_trades(),
which copy what they need without taking the lock. All mutation happens in
synchronous code between awaits, so a copy never observes a half-applied trade.
"""

import asyncio
import copy
import re
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeVar

from launchpad.config import HistorySettings, MarketSettings
from launchpad.curve.math import wide_arithmetic
from launchpad.exceptions import DuplicateTicker, InvalidAmount, InvalidTicker, UnknownTicker
from launchpad.logging import get_logger
from launchpad.market.history import PriceHistory
from launchpad.market.ledger import TradeLedger
from launchpad.market.state import TokenMarketState
from launchpad.models import CurveParams, MarketSnapshot, MarketStats, PricePoint, Trade

logger = get_logger(__name__)

T = TypeVar("T")

_TICKER_RE = re.compile(r"^[A-Z0-9]+$")
_DAY_SECONDS = 86_400.0


@dataclass
class TokenMarket:
    """Everything the registry owns for one ticker."""

    state: TokenMarketState
    ledger: TradeLedger
    history: PriceHistory
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


@dataclass(frozen=True)
class MarketRecord:
    """Persisted shape of a market: state + bounded ledger + bounded series."""

    state: TokenMarketState
    trades: list[Trade]
    points: list[PricePoint]


def normalize_ticker(raw: str, max_length: int = 5) -> str:
    """Strip and upper-case a ticker.

    Raises:
        InvalidTicker: If empty, longer than ``max_length``, or not alphanumeric.
    """
    if not isinstance(raw, str):
        raise InvalidTicker(f"ticker must be a string, got {type(raw).__name__}")
    ticker = raw.strip().upper()
    if not ticker:
        raise InvalidTicker("ticker is empty")
    if len(ticker) > max_length:
        raise InvalidTicker(f"ticker {ticker!r} exceeds {max_length} characters")
    if not _TICKER_RE.match(ticker):
        raise InvalidTicker(f"ticker {ticker!r} must be letters and digits only")
    return ticker


def build_snapshot(state: TokenMarketState, native_usd_rate: Decimal) -> MarketSnapshot:
    """Freeze a market state into a display-safe snapshot."""
    return MarketSnapshot(
        ticker=state.ticker,
        name=state.name,
        base_price=state.curve.base_price,
        slope=state.curve.slope,
        units_sold=state.units_sold,
        total_supply=state.total_supply,
        current_price=state.current_price,
        market_cap_usd=state.market_cap_usd(native_usd_rate),
        graduation_threshold_usd=state.graduation_threshold_usd,
        graduation_progress_pct=state.graduation_progress_pct(native_usd_rate),
        status=state.status,
        reserve=state.reserve,
        liquidity_fees=state.liquidity_fees,
        treasury_fees=state.treasury_fees,
        created_at=state.created_at,
        graduated_at=state.graduated_at,
        migration_status=state.migration_status,
        creator=state.creator,
    )


class MarketRegistry:
    """Owns every TokenMarketState, TradeLedger, and PriceHistory, keyed by ticker.

    Args:
        market_settings: Ticker/name limits and the graduation threshold.
        history_settings: Price history capacity.
    """

    def __init__(
        self,
        market_settings: MarketSettings | None = None,
        history_settings: HistorySettings | None = None,
    ) -> None:
        self._settings = market_settings or MarketSettings()
        self._history_settings = history_settings or HistorySettings()
        self._markets: dict[str, TokenMarket] = {}

    def __len__(self) -> int:
        return len(self._markets)

    def __contains__(self, ticker: object) -> bool:
        if not isinstance(ticker, str):
            return False
        try:
            return self.normalize(ticker) in self._markets
        except InvalidTicker:
            return False

    def normalize(self, raw: str) -> str:
        return normalize_ticker(raw, self._settings.max_ticker_length)

    def tickers(self) -> list[str]:
        """All tickers, newest listing first."""
        markets = sorted(
            self._markets.values(), key=lambda m: m.state.created_at, reverse=True
        )
        return [m.state.ticker for m in markets]

    # ──────────────────────────────────────────────
    # Creation
    # ──────────────────────────────────────────────

    def create(
        self,
        ticker: str,
        name: str,
        curve: CurveParams,
        total_supply: int,
        creator: str = "",
        now: float | None = None,
    ) -> MarketSnapshot:
        """List a new token on a fresh Active curve.

        Raises:
            InvalidTicker: If the ticker or name is malformed.
            DuplicateTicker: If the ticker already exists.
            InvalidAmount: If the curve parameters or supply are invalid.
        """
        key = self.normalize(ticker)
        name = (name or "").strip()
        if not name or len(name) > self._settings.max_name_length:
            raise InvalidTicker(
                f"name must be 1-{self._settings.max_name_length} characters"
            )
        if key in self._markets:
            raise DuplicateTicker(f"ticker {key} already exists")
        self._validate_curve(curve, total_supply)

        created_at = time.time() if now is None else now
        state = TokenMarketState(
            ticker=key,
            name=name,
            curve=curve,
            total_supply=total_supply,
            graduation_threshold_usd=self._settings.graduation_threshold_usd,
            created_at=created_at,
            creator=creator,
        )
        history = PriceHistory(self._history_settings.capacity)
        # Charts start from a flat line at the base price.
        history.append(PricePoint(timestamp=created_at, value=curve.base_price, synthetic=True))
        self._markets[key] = TokenMarket(
            state=state, ledger=TradeLedger(key), history=history
        )

        logger.info(
            "market_created",
            ticker=key,
            name=name,
            base_price=str(curve.base_price),
            slope=str(curve.slope),
            total_supply=total_supply,
        )
        return build_snapshot(state, self._settings.native_usd_rate)

    def get_or_create(
        self,
        ticker: str,
        curve: CurveParams,
        total_supply: int,
        name: str | None = None,
    ) -> MarketSnapshot:
        """Return the existing market for ``ticker`` or create a fresh Active one."""
        key = self.normalize(ticker)
        market = self._markets.get(key)
        if market is not None:
            return build_snapshot(market.state, self._settings.native_usd_rate)
        return self.create(key, name or key, curve, total_supply)

    def restore(self, record: MarketRecord) -> None:
        """Re-install a persisted market after a restart.

        Raises:
            DuplicateTicker: If the ticker is already present.
        """
        key = self.normalize(record.state.ticker)
        if key in self._markets:
            raise DuplicateTicker(f"ticker {key} already exists")
        self._markets[key] = TokenMarket(
            state=record.state,
            ledger=TradeLedger(key, record.trades),
            history=PriceHistory(self._history_settings.capacity, record.points),
        )
        logger.info(
            "market_restored",
            ticker=key,
            units_sold=record.state.units_sold,
            trades=len(record.trades),
            points=len(record.points),
        )

    def _validate_curve(self, curve: CurveParams, total_supply: int) -> None:
        if isinstance(total_supply, bool) or not isinstance(total_supply, int) or total_supply <= 0:
            raise InvalidAmount(f"total_supply must be a positive integer, got {total_supply!r}")
        if not curve.base_price.is_finite() or curve.base_price <= 0:
            raise InvalidAmount(f"base_price must be > 0, got {curve.base_price}")
        if not curve.slope.is_finite() or curve.slope < 0:
            raise InvalidAmount(f"slope must be >= 0, got {curve.slope}")
        with wide_arithmetic():
            opening_cap = curve.base_price * Decimal(total_supply) * self._settings.native_usd_rate
        if opening_cap >= self._settings.graduation_threshold_usd:
            raise InvalidAmount(
                f"opening market cap {opening_cap} USD already meets the "
                f"{self._settings.graduation_threshold_usd} USD graduation threshold"
            )

    # ──────────────────────────────────────────────
    # Exclusive access
    # ──────────────────────────────────────────────

    def _market(self, ticker: str) -> TokenMarket:
        key = self.normalize(ticker)
        market = self._markets.get(key)
        if market is None:
            raise UnknownTicker(f"no market for ticker {key}")
        return market

    @asynccontextmanager
    async def locked(self, ticker: str) -> AsyncIterator[TokenMarket]:
        """Hold the ticker's lock for the duration of the block."""
        market = self._market(ticker)
        async with market.lock:
            yield market

    async def with_ticker(self, ticker: str, fn: Callable[[TokenMarket], T]) -> T:
        """Run ``fn(market)`` as the ticker's only mutator and return its result.

        ``fn`` is synchronous: the critical section is arithmetic only.

        Raises:
            UnknownTicker: If the ticker does not exist.
            InvalidTicker: If the ticker is malformed.
        """
        async with self.locked(ticker) as market:
            return fn(market)

    # ──────────────────────────────────────────────
    # Read-only accessors
    # ──────────────────────────────────────────────

    def snapshot(
        self, ticker: str, native_usd_rate: Decimal | None = None
    ) -> MarketSnapshot:
        rate = self._settings.native_usd_rate if native_usd_rate is None else native_usd_rate
        return build_snapshot(self._market(ticker).state, rate)

    def history(self, ticker: str) -> list[PricePoint]:
        return self._market(ticker).history.points()

    def recent_trades(self, ticker: str, n: int) -> list[Trade]:
        return self._market(ticker).ledger.recent(n)

    def stats(self, ticker: str, now: float) -> MarketStats:
        """24h volume, holder counts, and 24h price change for a token page."""
        market = self._market(ticker)
        day_ago = now - _DAY_SECONDS
        price_change = Decimal("0")
        latest = market.history.latest()
        reference = market.history.value_at_or_before(day_ago)
        if latest is not None and reference is not None and reference.value > 0:
            with wide_arithmetic():
                price_change = (latest.value - reference.value) / reference.value * 100
        return MarketStats(
            ticker=market.state.ticker,
            volume_24h=market.ledger.volume_24h(now),
            trade_count=len(market.ledger),
            holder_count=market.ledger.holder_count(),
            holder_delta_24h=market.ledger.holder_delta(day_ago),
            price_change_24h_pct=price_change.quantize(Decimal("0.01")),
        )

    def export(self, ticker: str, max_trades: int | None = None) -> MarketRecord:
        """Copy a market into its persisted shape."""
        market = self._market(ticker)
        trades = market.ledger.all()
        if max_trades is not None:
            trades = trades[-max_trades:] if max_trades > 0 else []
        return MarketRecord(
            state=copy.copy(market.state),
            trades=trades,
            points=market.history.points(),
        )
