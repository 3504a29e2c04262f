"""Per-token market state and the Active -> Graduated transition.

Validation (validate_buy / validate_sell / check_tradeable) is kept separate
from mutation (apply_buy / apply_sell / graduate). Settlement calls every
validator and computes every amount first, then applies; a rejected trade
therefore never leaves a half-updated market behind.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal

from launchpad.curve.math import price_at, wide_arithmetic
from launchpad.exceptions import CurveFrozen, InsufficientUnits, InvalidAmount, SupplyExceeded
from launchpad.fees.policy import FeeBreakdown
from launchpad.models import CurveParams, MarketStatus, MigrationStatus

_HUNDRED = Decimal("100")


@dataclass
class TokenMarketState:
    """Mutable curve state for one token. Owned by the MarketRegistry."""

    ticker: str
    name: str
    curve: CurveParams
    total_supply: int
    graduation_threshold_usd: Decimal
    units_sold: int = 0
    status: MarketStatus = MarketStatus.ACTIVE
    reserve: Decimal = Decimal("0")
    liquidity_fees: Decimal = Decimal("0")
    treasury_fees: Decimal = Decimal("0")
    created_at: float = field(default_factory=time.time)
    graduated_at: float | None = None
    migration_status: MigrationStatus = MigrationStatus.NOT_STARTED
    creator: str = ""

    @property
    def is_graduated(self) -> bool:
        return self.status == MarketStatus.GRADUATED

    @property
    def current_price(self) -> Decimal:
        return price_at(self.curve, self.units_sold)

    @property
    def tokens_remaining(self) -> int:
        return self.total_supply - self.units_sold

    def market_cap_usd(self, native_usd_rate: Decimal) -> Decimal:
        """Current price * total supply, converted to USD."""
        with wide_arithmetic():
            return self.current_price * Decimal(self.total_supply) * native_usd_rate

    def graduation_progress_pct(self, native_usd_rate: Decimal) -> Decimal:
        """Market cap as a percentage of the graduation threshold, clamped to [0, 100]."""
        if self.is_graduated:
            return _HUNDRED
        with wide_arithmetic():
            pct = self.market_cap_usd(native_usd_rate) / self.graduation_threshold_usd * _HUNDRED
        return min(max(pct, Decimal("0")), _HUNDRED)

    # ──────────────────────────────────────────────
    # Validation (no mutation)
    # ──────────────────────────────────────────────

    def check_tradeable(self) -> None:
        """Raise CurveFrozen once the token has graduated."""
        if self.is_graduated:
            raise CurveFrozen(f"{self.ticker} has graduated; curve trading is closed")

    def validate_buy(self, units: int) -> None:
        self.check_tradeable()
        if units <= 0:
            raise InvalidAmount(f"buy must move at least one unit, got {units}")
        if self.units_sold + units > self.total_supply:
            raise SupplyExceeded(
                f"{self.ticker}: buying {units} units exceeds remaining supply "
                f"{self.tokens_remaining}"
            )

    def validate_sell(self, units: int) -> None:
        self.check_tradeable()
        if units <= 0:
            raise InvalidAmount(f"sell must move at least one unit, got {units}")
        if units > self.units_sold:
            raise InsufficientUnits(
                f"{self.ticker}: cannot sell {units} units, only {self.units_sold} sold"
            )

    def should_graduate(self, native_usd_rate: Decimal) -> bool:
        return (
            not self.is_graduated
            and self.market_cap_usd(native_usd_rate) >= self.graduation_threshold_usd
        )

    # ──────────────────────────────────────────────
    # Mutation (validated callers only)
    # ──────────────────────────────────────────────

    def apply_buy(self, units: int, fees: FeeBreakdown) -> None:
        """Advance the curve by ``units``; the net of the buyer's payment backs the reserve."""
        with wide_arithmetic():
            self.units_sold += units
            self.reserve += fees.net
            self._collect(fees)

    def apply_sell(self, units: int, fees: FeeBreakdown) -> None:
        """Retreat the curve by ``units``; the seller's net payout leaves the reserve."""
        with wide_arithmetic():
            self.units_sold -= units
            self.reserve -= fees.net
            self._collect(fees)

    def graduate(self, now: float) -> None:
        """Freeze the curve. Irreversible; a second call raises CurveFrozen."""
        self.check_tradeable()
        self.status = MarketStatus.GRADUATED
        self.graduated_at = now

    def _collect(self, fees: FeeBreakdown) -> None:
        self.liquidity_fees += fees.liquidity_fee
        self.treasury_fees += fees.treasury_fee
