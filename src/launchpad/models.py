"""Shared data models for the launchpad engine.

CRITICAL: All monetary values use Decimal. Never use float for prices, costs, or fees.
Unit counts (units sold, trade sizes in tokens) are plain ints.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class TradeKind(str, Enum):
    """Trade direction against the curve."""

    BUY = "buy"
    SELL = "sell"


class MarketStatus(str, Enum):
    """Lifecycle of a token's curve. GRADUATED is terminal."""

    ACTIVE = "active"
    GRADUATED = "graduated"


class MigrationStatus(str, Enum):
    """Outcome of the one-shot liquidity migration at graduation."""

    NOT_STARTED = "not_started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class CurveParams:
    """Linear bonding curve: price(sold) = base_price + slope * sold."""

    base_price: Decimal
    slope: Decimal


@dataclass(frozen=True)
class Trade:
    """A settled trade. Immutable; the ledger never edits or removes one."""

    id: str
    sequence: int
    ticker: str
    kind: TradeKind
    requested_amount: Decimal  # native budget for buys, units for sells
    units: int
    gross_amount: Decimal  # curve cost (buy) or refund (sell) before fee
    execution_price: Decimal  # gross_amount / units
    fee_amount: Decimal
    net_amount: Decimal  # buy: reserve backing; sell: paid to seller
    timestamp: float
    actor: str = ""


@dataclass(frozen=True)
class PricePoint:
    """One chart sample."""

    timestamp: float
    value: Decimal
    synthetic: bool = False


@dataclass
class TradeRequest:
    """Request to trade against a token's curve.

    ``amount`` is native currency for buys and token units for sells.
    ``min_units_out`` (buys) and ``min_net_out`` (sells) reject the trade
    instead of filling it worse than the caller will accept.
    """

    ticker: str
    kind: TradeKind
    amount: Decimal
    actor: str = ""
    min_units_out: int | None = None
    min_net_out: Decimal | None = None


@dataclass(frozen=True)
class Quote:
    """Read-only price quote for a prospective trade."""

    ticker: str
    kind: TradeKind
    units: int
    gross_amount: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    execution_price: Decimal
    price_after: Decimal


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time copy of a token's market, safe to hand to display code."""

    ticker: str
    name: str
    base_price: Decimal
    slope: Decimal
    units_sold: int
    total_supply: int
    current_price: Decimal
    market_cap_usd: Decimal
    graduation_threshold_usd: Decimal
    graduation_progress_pct: Decimal
    status: MarketStatus
    reserve: Decimal
    liquidity_fees: Decimal
    treasury_fees: Decimal
    created_at: float
    graduated_at: float | None = None
    migration_status: MigrationStatus = MigrationStatus.NOT_STARTED
    creator: str = ""

    @property
    def is_graduated(self) -> bool:
        return self.status == MarketStatus.GRADUATED


@dataclass(frozen=True)
class TradeResult:
    """Outcome of a settled trade."""

    trade: Trade
    snapshot: MarketSnapshot
    graduated_now: bool = False


@dataclass(frozen=True)
class MarketStats:
    """Derived ledger statistics for a token page."""

    ticker: str
    volume_24h: Decimal
    trade_count: int
    holder_count: int
    holder_delta_24h: int
    price_change_24h_pct: Decimal


@dataclass(frozen=True)
class MigrationRequest:
    """Inputs for moving a graduated curve's liquidity to an external pool."""

    ticker: str
    units_sold: int
    tokens_remaining: int
    reserve: Decimal
    final_price: Decimal
    requested_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class MigrationResult:
    """Result reported by a liquidity migrator."""

    ticker: str
    success: bool
    pool_id: str | None = None
    error: str | None = None
