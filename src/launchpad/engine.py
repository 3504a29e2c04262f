"""Trade settlement engine.

Wires curve math, fee policy, and the market registry into the operations the
outer layers call: create a token, quote a trade, submit a trade, read market
data.

Settlement flow (one critical section per ticker):
1. Resolve the market and take its lock (MarketRegistry.with_ticker).
2. Price the trade: units, curve cost/refund, fee -- every check that can
   reject the trade runs here, before anything is written.
3. Apply to TokenMarketState, append to TradeLedger, append to PriceHistory.
4. On a buy, graduate if market cap reached the threshold.
5. Release the lock; if the token graduated, hand liquidity to the migrator.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from uuid import uuid4

from launchpad.config import CurveSettings, MarketSettings
from launchpad.curve.math import (
    cost_to_buy,
    price_at,
    refund_for_sell,
    units_for_native,
    wide_arithmetic,
)
from launchpad.exceptions import InvalidAmount, InvalidTradeKind, SlippageExceeded
from launchpad.fees.policy import FeeBreakdown, FeePolicy
from launchpad.logging import bind_trade_context, get_logger
from launchpad.market.registry import MarketRegistry, TokenMarket, build_snapshot
from launchpad.market.state import TokenMarketState
from launchpad.migration.migrator import LiquidityMigrator
from launchpad.models import (
    CurveParams,
    MarketSnapshot,
    MarketStats,
    MigrationRequest,
    MigrationStatus,
    PricePoint,
    Quote,
    Trade,
    TradeKind,
    TradeRequest,
    TradeResult,
)

logger = get_logger(__name__)

# Display precision for average execution prices.
_PRICE_QUANTUM = Decimal("1e-18")


@dataclass(frozen=True)
class _PricedTrade:
    kind: TradeKind
    requested_amount: Decimal
    units: int
    fees: FeeBreakdown
    execution_price: Decimal
    price_after: Decimal


def _to_amount(raw: object) -> Decimal:
    """Coerce a request amount to a positive finite Decimal."""
    if isinstance(raw, bool) or isinstance(raw, float):
        raise InvalidAmount(f"amount must be a Decimal, int, or string, got {raw!r}")
    try:
        amount = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"amount {raw!r} is not a number") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(f"amount must be positive, got {raw!r}")
    return amount


def _to_kind(raw: object) -> TradeKind:
    try:
        return TradeKind(raw)
    except ValueError as exc:
        raise InvalidTradeKind(f"kind must be 'buy' or 'sell', got {raw!r}") from exc


def _to_limits(
    kind: TradeKind, min_units_out: int | None, min_net_out: Decimal | None
) -> tuple[int | None, Decimal | None]:
    """Validate the optional minimum-output bounds for a trade."""
    if min_units_out is not None:
        if kind != TradeKind.BUY:
            raise InvalidAmount("min_units_out applies to buys only")
        if isinstance(min_units_out, bool) or not isinstance(min_units_out, int):
            raise InvalidAmount(f"min_units_out must be an integer, got {min_units_out!r}")
        if min_units_out < 0:
            raise InvalidAmount(f"min_units_out must be >= 0, got {min_units_out}")
    if min_net_out is not None:
        if kind != TradeKind.SELL:
            raise InvalidAmount("min_net_out applies to sells only")
        if not isinstance(min_net_out, Decimal) or not min_net_out.is_finite() or min_net_out < 0:
            raise InvalidAmount(
                f"min_net_out must be a non-negative Decimal, got {min_net_out!r}"
            )
    return min_units_out, min_net_out


class SettlementEngine:
    """Prices and settles trades against per-token bonding curves.

    Args:
        registry: Owner of all market state.
        fee_policy: Platform fee applied to every trade.
        market_settings: Graduation threshold and USD conversion rate.
        migrator: Liquidity-migration collaborator invoked at graduation.
        curve_settings: Defaults for newly created tokens.
        clock: Time source returning Unix seconds.
        rate_provider: Returns the current USD per native unit. Defaults to
            market_settings.native_usd_rate.
    """

    def __init__(
        self,
        registry: MarketRegistry,
        fee_policy: FeePolicy,
        market_settings: MarketSettings,
        migrator: LiquidityMigrator,
        curve_settings: CurveSettings | None = None,
        clock: Callable[[], float] = time.time,
        rate_provider: Callable[[], Decimal] | None = None,
    ) -> None:
        self._registry = registry
        self._fee_policy = fee_policy
        self._market_settings = market_settings
        self._migrator = migrator
        self._curve_settings = curve_settings or CurveSettings()
        self._clock = clock
        self._rate_provider = rate_provider or (lambda: market_settings.native_usd_rate)

    @property
    def registry(self) -> MarketRegistry:
        return self._registry

    # ──────────────────────────────────────────────
    # Listing
    # ──────────────────────────────────────────────

    def create_token(
        self,
        ticker: str,
        name: str,
        base_price: Decimal | None = None,
        slope: Decimal | None = None,
        total_supply: int | None = None,
        creator: str = "",
    ) -> MarketSnapshot:
        """List a token on a new curve, filling unset parameters from CurveSettings.

        Raises:
            InvalidTicker, DuplicateTicker, InvalidAmount: See MarketRegistry.create.
        """
        curve = CurveParams(
            base_price=self._curve_settings.base_price if base_price is None else base_price,
            slope=self._curve_settings.slope if slope is None else slope,
        )
        supply = self._curve_settings.total_supply if total_supply is None else total_supply
        snapshot = self._registry.create(
            ticker, name, curve, supply, creator=creator, now=self._clock()
        )
        return self._registry.snapshot(snapshot.ticker, self._rate_provider())

    # ──────────────────────────────────────────────
    # Trading
    # ──────────────────────────────────────────────

    async def buy(
        self,
        ticker: str,
        native_amount: Decimal,
        actor: str = "",
        min_units_out: int | None = None,
    ) -> TradeResult:
        """Spend up to ``native_amount`` on as many whole units as it covers."""
        return await self.submit(
            TradeRequest(
                ticker, TradeKind.BUY, native_amount, actor, min_units_out=min_units_out
            )
        )

    async def sell(
        self,
        ticker: str,
        units: int | Decimal,
        actor: str = "",
        min_net_out: Decimal | None = None,
    ) -> TradeResult:
        """Sell ``units`` back to the curve."""
        return await self.submit(
            TradeRequest(ticker, TradeKind.SELL, Decimal(units), actor, min_net_out=min_net_out)
        )

    async def submit(self, request: TradeRequest) -> TradeResult:
        """Settle a trade atomically.

        Raises:
            InvalidTicker: Malformed ticker.
            UnknownTicker: Ticker was never created.
            InvalidAmount: Non-positive amount, fractional sell, or a buy
                budget below the price of one unit.
            CurveFrozen: The token has graduated.
            InsufficientUnits: Sell larger than units sold.
            SupplyExceeded: Buy past total supply.
            SlippageExceeded: Fill below min_units_out or min_net_out.
            InvalidTradeKind: Kind is neither buy nor sell.
        """
        kind = _to_kind(request.kind)
        amount = _to_amount(request.amount)
        limits = _to_limits(kind, request.min_units_out, request.min_net_out)
        ticker = self._registry.normalize(request.ticker)
        rate = self._rate_provider()

        with bind_trade_context(ticker=ticker, kind=kind.value, actor=request.actor):
            trade, snapshot, graduated_now = await self._registry.with_ticker(
                ticker,
                lambda market: self._settle(market, kind, amount, request.actor, rate, limits),
            )

            logger.info(
                "trade_settled",
                trade_id=trade.id,
                sequence=trade.sequence,
                units=trade.units,
                gross=str(trade.gross_amount),
                fee=str(trade.fee_amount),
                execution_price=str(trade.execution_price),
                units_sold=snapshot.units_sold,
                market_cap_usd=str(snapshot.market_cap_usd),
            )

            if graduated_now:
                snapshot = await self._hand_off_liquidity(ticker, rate)

        return TradeResult(trade=trade, snapshot=snapshot, graduated_now=graduated_now)

    def _price(
        self,
        state: TokenMarketState,
        kind: TradeKind,
        amount: Decimal,
        limits: tuple[int | None, Decimal | None] = (None, None),
    ) -> _PricedTrade:
        """Compute a trade against ``state`` without touching it."""
        min_units_out, min_net_out = limits
        state.check_tradeable()
        if kind == TradeKind.BUY:
            units = units_for_native(
                state.curve, state.units_sold, amount, state.total_supply
            )
            if units == 0:
                raise InvalidAmount(
                    f"{amount} does not cover one unit at {state.current_price}"
                )
            state.validate_buy(units)
            gross = cost_to_buy(state.curve, state.units_sold, units, state.total_supply)
            fees = self._fee_policy.on_buy(gross)
            if min_units_out is not None and units < min_units_out:
                raise SlippageExceeded(
                    f"{amount} buys {units} units, below the minimum of {min_units_out}"
                )
            sold_after = state.units_sold + units
        else:
            if amount != amount.to_integral_value():
                raise InvalidAmount(f"sell size must be a whole number of units, got {amount}")
            units = int(amount)
            state.validate_sell(units)
            gross = refund_for_sell(state.curve, state.units_sold, units)
            fees = self._fee_policy.on_sell(gross)
            if min_net_out is not None and fees.net < min_net_out:
                raise SlippageExceeded(
                    f"selling {units} units pays {fees.net}, below the minimum of {min_net_out}"
                )
            sold_after = state.units_sold - units

        with wide_arithmetic():
            execution_price = (gross / Decimal(units)).quantize(
                _PRICE_QUANTUM, rounding=ROUND_HALF_EVEN
            )
        return _PricedTrade(
            kind=kind,
            requested_amount=amount,
            units=units,
            fees=fees,
            execution_price=execution_price,
            price_after=price_at(state.curve, sold_after),
        )

    def _settle(
        self,
        market: TokenMarket,
        kind: TradeKind,
        amount: Decimal,
        actor: str,
        rate: Decimal,
        limits: tuple[int | None, Decimal | None] = (None, None),
    ) -> tuple[Trade, MarketSnapshot, bool]:
        """Critical section body. Runs under the ticker lock."""
        state = market.state
        priced = self._price(state, kind, amount, limits)

        # Time never runs backwards within a ticker, whatever the wall clock does.
        timestamp = self._clock()
        if market.ledger.last_timestamp is not None:
            timestamp = max(timestamp, market.ledger.last_timestamp)
        latest_point = market.history.latest()
        if latest_point is not None:
            timestamp = max(timestamp, latest_point.timestamp)

        trade = Trade(
            id=f"trd_{uuid4().hex}",
            sequence=market.ledger.next_sequence,
            ticker=state.ticker,
            kind=kind,
            requested_amount=priced.requested_amount,
            units=priced.units,
            gross_amount=priced.fees.gross,
            execution_price=priced.execution_price,
            fee_amount=priced.fees.fee,
            net_amount=priced.fees.net,
            timestamp=timestamp,
            actor=actor,
        )

        if kind == TradeKind.BUY:
            state.apply_buy(priced.units, priced.fees)
        else:
            state.apply_sell(priced.units, priced.fees)
        market.ledger.record(trade)
        market.history.append(PricePoint(timestamp=timestamp, value=state.current_price))

        # Only a completed buy can cross the threshold; the crossing trade stands.
        graduated_now = kind == TradeKind.BUY and state.should_graduate(rate)
        if graduated_now:
            state.graduate(timestamp)
            logger.info(
                "market_graduated",
                units_sold=state.units_sold,
                reserve=str(state.reserve),
                market_cap_usd=str(state.market_cap_usd(rate)),
            )

        return trade, build_snapshot(state, rate), graduated_now

    async def _hand_off_liquidity(self, ticker: str, rate: Decimal) -> MarketSnapshot:
        """Invoke the migrator once. Failure is recorded, never rolled back."""
        snapshot = self._registry.snapshot(ticker, rate)
        request = MigrationRequest(
            ticker=ticker,
            units_sold=snapshot.units_sold,
            tokens_remaining=snapshot.total_supply - snapshot.units_sold,
            reserve=snapshot.reserve,
            final_price=snapshot.current_price,
            requested_at=self._clock(),
        )

        status = MigrationStatus.FAILED
        try:
            result = await self._migrator.migrate(request)
        except Exception as exc:
            logger.error("liquidity_migration_failed", error=str(exc), exc_info=True)
        else:
            if result.success:
                status = MigrationStatus.SUCCEEDED
                logger.info("liquidity_migration_succeeded", pool_id=result.pool_id)
            else:
                logger.error("liquidity_migration_failed", error=result.error)

        def _record(market: TokenMarket) -> MarketSnapshot:
            market.state.migration_status = status
            return build_snapshot(market.state, rate)

        return await self._registry.with_ticker(ticker, _record)

    # ──────────────────────────────────────────────
    # Quotes and reads (never mutate)
    # ──────────────────────────────────────────────

    async def quote(self, ticker: str, kind: TradeKind, amount: Decimal) -> Quote:
        """Price a prospective trade against the current curve without settling it."""
        kind = _to_kind(kind)
        value = _to_amount(amount)

        def _quote(market: TokenMarket) -> _PricedTrade:
            return self._price(market.state, kind, value)

        # Pricing is pure; the lock only guarantees a consistent view.
        priced = await self._registry.with_ticker(ticker, _quote)
        return Quote(
            ticker=self._registry.normalize(ticker),
            kind=kind,
            units=priced.units,
            gross_amount=priced.fees.gross,
            fee_amount=priced.fees.fee,
            net_amount=priced.fees.net,
            execution_price=priced.execution_price,
            price_after=priced.price_after,
        )

    async def quote_buy(self, ticker: str, native_amount: Decimal) -> Quote:
        return await self.quote(ticker, TradeKind.BUY, native_amount)

    async def quote_sell(self, ticker: str, units: int | Decimal) -> Quote:
        return await self.quote(ticker, TradeKind.SELL, Decimal(units))

    def snapshot(self, ticker: str) -> MarketSnapshot:
        return self._registry.snapshot(ticker, self._rate_provider())

    def list_markets(self) -> list[MarketSnapshot]:
        """Snapshots of every market, newest listing first."""
        rate = self._rate_provider()
        return [self._registry.snapshot(t, rate) for t in self._registry.tickers()]

    def price_history(self, ticker: str) -> list[PricePoint]:
        return self._registry.history(ticker)

    def recent_trades(self, ticker: str, limit: int = 50) -> list[Trade]:
        return self._registry.recent_trades(ticker, limit)

    def stats(self, ticker: str, now: float | None = None) -> MarketStats:
        return self._registry.stats(ticker, self._clock() if now is None else now)
