"""Linear bonding curve math.

price(sold) = base_price + slope * sold

Costs and refunds are discrete sums over whole units, computed in closed form
so that a buy of n units followed by a sell of the same n units is exactly
value-neutral before fees. Everything runs under a Decimal context that traps
Inexact: if a product ever needs more than 80 significant digits the input is
rejected as InvalidAmount instead of being silently rounded.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from decimal import (
    ROUND_FLOOR,
    ROUND_HALF_EVEN,
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)

from launchpad.exceptions import InsufficientUnits, InvalidAmount, SupplyExceeded
from launchpad.models import CurveParams

_PRECISION = 80

_EXACT = Context(
    prec=_PRECISION,
    rounding=ROUND_HALF_EVEN,
    traps=[Inexact, Overflow, InvalidOperation, DivisionByZero],
)

# Wide but non-trapping: square roots, fee quantization, running totals.
_WIDE = Context(prec=_PRECISION, rounding=ROUND_HALF_EVEN, traps=[InvalidOperation])


def wide_arithmetic():
    """Context manager for Decimal work that may legitimately round."""
    return localcontext(_WIDE)


@contextmanager
def _exact_arithmetic() -> Iterator[None]:
    try:
        with localcontext(_EXACT):
            yield
    except DecimalException as exc:
        raise InvalidAmount(f"curve arithmetic out of range: {exc!r}") from exc


def _require_units(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer unit count, got {value!r}")
    if value < 0:
        raise InvalidAmount(f"{name} must be >= 0, got {value}")


def _sum_cost(curve: CurveParams, sold: int, n: int) -> Decimal:
    # n * (2*sold + n - 1) is always even, so integer halving is exact.
    series = n * (2 * sold + n - 1) // 2
    with _exact_arithmetic():
        return Decimal(n) * curve.base_price + curve.slope * Decimal(series)


def price_at(curve: CurveParams, sold: int) -> Decimal:
    """Spot price of the next unit after ``sold`` units have been sold."""
    _require_units("sold", sold)
    with _exact_arithmetic():
        return curve.base_price + curve.slope * Decimal(sold)


def cost_to_buy(
    curve: CurveParams, sold: int, n: int, total_supply: int | None = None
) -> Decimal:
    """Exact cost to move the curve from ``sold`` to ``sold + n``.

    Equals sum(price_at(sold + i) for i in range(n)).

    Raises:
        InvalidAmount: If sold or n is negative or not an integer.
        SupplyExceeded: If total_supply is given and sold + n exceeds it.
    """
    _require_units("sold", sold)
    _require_units("n", n)
    if total_supply is not None and sold + n > total_supply:
        raise SupplyExceeded(
            f"buying {n} units at {sold} sold exceeds total supply {total_supply}"
        )
    return _sum_cost(curve, sold, n)


def refund_for_sell(curve: CurveParams, sold: int, n: int) -> Decimal:
    """Exact proceeds for moving the curve from ``sold`` down to ``sold - n``.

    Sums the prices of units sold-1 down to sold-n, so
    refund_for_sell(s + n, n) == cost_to_buy(s, n).

    Raises:
        InvalidAmount: If sold or n is negative or not an integer.
        InsufficientUnits: If n > sold.
    """
    _require_units("sold", sold)
    _require_units("n", n)
    if n > sold:
        raise InsufficientUnits(f"cannot sell {n} units, only {sold} sold")
    # n * (2*(sold-1) - (n-1)) / 2 == (sold - n) .. (sold - 1) summed
    series = n * (2 * (sold - 1) - (n - 1)) // 2
    with _exact_arithmetic():
        return Decimal(n) * curve.base_price + curve.slope * Decimal(series)


def units_for_native(
    curve: CurveParams, sold: int, budget: Decimal, total_supply: int | None = None
) -> int:
    """Largest whole number of units whose cost_to_buy fits in ``budget``.

    Solves slope/2 * n^2 + (base + slope*(sold - 1/2)) * n <= budget with the
    quadratic formula, then nudges the estimate with exact cost checks.

    Raises:
        InvalidAmount: If budget is negative, sold is invalid, or the budget
            buys more units than the arithmetic can represent.
        SupplyExceeded: If total_supply is given and the budget buys more
            than the remaining supply.
    """
    _require_units("sold", sold)
    if not isinstance(budget, Decimal) or not budget.is_finite() or budget < 0:
        raise InvalidAmount(f"budget must be a non-negative Decimal, got {budget!r}")
    if budget == 0:
        return 0
    if total_supply is not None:
        remaining = total_supply - sold
        if remaining < 0 or budget >= _sum_cost(curve, sold, remaining + 1):
            raise SupplyExceeded(
                f"budget {budget} at {sold} sold buys more than total supply {total_supply}"
            )

    # The square root is never exact; the loops below correct the estimate.
    with wide_arithmetic():
        if curve.slope == 0:
            estimate = budget / curve.base_price
        else:
            a = curve.slope / 2
            b = curve.base_price + curve.slope * (Decimal(sold) - Decimal("0.5"))
            discriminant = b * b + 4 * a * budget
            estimate = (discriminant.sqrt() - b) / (2 * a)
        if not estimate.is_finite() or estimate.adjusted() >= _PRECISION:
            raise InvalidAmount(f"budget {budget} is out of range")
        n = max(int(estimate.to_integral_value(rounding=ROUND_FLOOR)), 0)

    while n > 0 and _sum_cost(curve, sold, n) > budget:
        n -= 1
    while _sum_cost(curve, sold, n + 1) <= budget:
        n += 1
    return n
