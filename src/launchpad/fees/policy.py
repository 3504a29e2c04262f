"""Platform fee computation.

One rounding rule everywhere: the fee is quantized to the native quantum
(1 lamport by default) with ROUND_HALF_EVEN, and net = gross - fee, so
net + fee always reconstructs gross exactly.

The 50/50 liquidity/treasury split mirrors the on-chain fee structure
(0.5% + 0.5% of a 1% total). It is a reporting split only; it never changes
the net amount that moves through the curve.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from launchpad.config import FeeSettings
from launchpad.curve.math import wide_arithmetic
from launchpad.exceptions import InvalidAmount


@dataclass(frozen=True)
class FeeBreakdown:
    """A gross amount split into net and fee, with the fee split for accounting."""

    gross: Decimal
    net: Decimal
    fee: Decimal
    liquidity_fee: Decimal
    treasury_fee: Decimal


def apply_fee(
    gross: Decimal,
    fee_rate: Decimal,
    quantum: Decimal = Decimal("0.000000001"),
    liquidity_share: Decimal = Decimal("0.5"),
) -> FeeBreakdown:
    """Split ``gross`` into net and fee.

    fee = round_half_even(gross * fee_rate, quantum)
    liquidity_fee = round_half_even(fee * liquidity_share, quantum)
    treasury_fee = fee - liquidity_fee

    Raises:
        InvalidAmount: If gross is negative or not finite.
    """
    if not gross.is_finite() or gross < 0:
        raise InvalidAmount(f"gross amount must be >= 0, got {gross}")

    with wide_arithmetic():
        fee = (gross * fee_rate).quantize(quantum, rounding=ROUND_HALF_EVEN)
        liquidity_fee = (fee * liquidity_share).quantize(quantum, rounding=ROUND_HALF_EVEN)
        return FeeBreakdown(
            gross=gross,
            net=gross - fee,
            fee=fee,
            liquidity_fee=liquidity_fee,
            treasury_fee=fee - liquidity_fee,
        )


class FeePolicy:
    """Applies the configured platform fee to curve costs and refunds.

    Args:
        fee_settings: Fee rate, liquidity share, and native decimals.

    Raises:
        ValueError: If the configured rate is outside [0, 1) or the
            liquidity share is outside [0, 1].
    """

    def __init__(self, fee_settings: FeeSettings) -> None:
        if not Decimal("0") <= fee_settings.trade_fee_rate < Decimal("1"):
            raise ValueError(
                f"trade_fee_rate must be in [0, 1), got {fee_settings.trade_fee_rate}"
            )
        if not Decimal("0") <= fee_settings.liquidity_share <= Decimal("1"):
            raise ValueError(
                f"liquidity_share must be in [0, 1], got {fee_settings.liquidity_share}"
            )
        self._fees = fee_settings

    @property
    def fee_rate(self) -> Decimal:
        return self._fees.trade_fee_rate

    @property
    def quantum(self) -> Decimal:
        return self._fees.quantum

    def on_buy(self, cost: Decimal) -> FeeBreakdown:
        """Fee on a buy. The buyer pays ``cost``; ``net`` backs the reserve."""
        return self._apply(cost)

    def on_sell(self, refund: Decimal) -> FeeBreakdown:
        """Fee on a sell. The seller receives ``net``."""
        return self._apply(refund)

    def _apply(self, gross: Decimal) -> FeeBreakdown:
        return apply_fee(
            gross,
            self._fees.trade_fee_rate,
            quantum=self._fees.quantum,
            liquidity_share=self._fees.liquidity_share,
        )
