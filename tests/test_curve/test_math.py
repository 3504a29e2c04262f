"""Tests for linear bonding curve math.

All test cases use exact Decimal values. The closed forms must agree with the
unit-by-unit sum of prices, and a buy followed by a sell of the same size must
be exactly value-neutral before fees.
"""

from decimal import Decimal

import pytest

from launchpad.curve.math import cost_to_buy, price_at, refund_for_sell, units_for_native
from launchpad.exceptions import InsufficientUnits, InvalidAmount, SupplyExceeded
from launchpad.models import CurveParams


class TestPriceAt:
    def test_zero_sold_is_base_price(self, linear_curve: CurveParams) -> None:
        assert price_at(linear_curve, 0) == Decimal("0.000045")

    def test_large_sold(self, linear_curve: CurveParams) -> None:
        # 0.000045 + 0.00000005 * 650_000_000 = 0.000045 + 32.5
        assert price_at(linear_curve, 650_000_000) == Decimal("32.500045")

    def test_non_decreasing(self, linear_curve: CurveParams) -> None:
        prices = [price_at(linear_curve, s) for s in range(0, 5000, 250)]
        assert prices == sorted(prices)

    def test_flat_curve_constant(self, flat_curve: CurveParams) -> None:
        assert price_at(flat_curve, 0) == price_at(flat_curve, 10**9) == Decimal("0.002")

    def test_negative_sold_rejected(self, linear_curve: CurveParams) -> None:
        with pytest.raises(InvalidAmount):
            price_at(linear_curve, -1)


class TestCostToBuy:
    def test_flat_curve_thousand_units(self, flat_curve: CurveParams) -> None:
        # 1000 * 0.002
        assert cost_to_buy(flat_curve, 0, 1000) == Decimal("2.0")

    def test_single_unit_costs_spot_price(self, linear_curve: CurveParams) -> None:
        assert cost_to_buy(linear_curve, 650_000_000, 1) == price_at(linear_curve, 650_000_000)

    @pytest.mark.parametrize("sold,n", [(0, 1), (0, 37), (10, 25), (999, 1000), (123_456, 7)])
    def test_matches_unit_by_unit_sum(self, linear_curve: CurveParams, sold: int, n: int) -> None:
        expected = sum((price_at(linear_curve, sold + i) for i in range(n)), Decimal("0"))
        assert cost_to_buy(linear_curve, sold, n) == expected

    def test_small_worked_example(self) -> None:
        curve = CurveParams(base_price=Decimal("1"), slope=Decimal("0.5"))
        # prices at 2, 3, 4 sold: 2.0 + 2.5 + 3.0
        assert cost_to_buy(curve, 2, 3) == Decimal("7.5")

    def test_zero_units_costs_nothing(self, linear_curve: CurveParams) -> None:
        assert cost_to_buy(linear_curve, 500, 0) == Decimal("0")

    def test_additive_across_splits(self, linear_curve: CurveParams) -> None:
        whole = cost_to_buy(linear_curve, 100, 900)
        split = cost_to_buy(linear_curve, 100, 400) + cost_to_buy(linear_curve, 500, 500)
        assert whole == split

    def test_supply_exceeded(self, linear_curve: CurveParams) -> None:
        with pytest.raises(SupplyExceeded):
            cost_to_buy(linear_curve, 990, 11, total_supply=1000)

    def test_exactly_to_supply_allowed(self, flat_curve: CurveParams) -> None:
        assert cost_to_buy(flat_curve, 990, 10, total_supply=1000) == Decimal("0.020")

    @pytest.mark.parametrize("n", [-1, 1.5, True, "10"])
    def test_invalid_unit_counts(self, linear_curve: CurveParams, n: object) -> None:
        with pytest.raises(InvalidAmount):
            cost_to_buy(linear_curve, 0, n)  # type: ignore[arg-type]

    def test_overflow_is_invalid_amount(self, linear_curve: CurveParams) -> None:
        # n * (n - 1) / 2 needs ~200 significant digits
        with pytest.raises(InvalidAmount):
            cost_to_buy(linear_curve, 0, 10**100)


class TestRefundForSell:
    @pytest.mark.parametrize("sold,n", [(0, 1), (10, 25), (999, 1000), (650_000_000, 3)])
    def test_round_trip_is_value_neutral(
        self, linear_curve: CurveParams, sold: int, n: int
    ) -> None:
        assert refund_for_sell(linear_curve, sold + n, n) == cost_to_buy(linear_curve, sold, n)

    def test_sell_everything(self, flat_curve: CurveParams) -> None:
        assert refund_for_sell(flat_curve, 1000, 1000) == Decimal("2.0")

    def test_small_worked_example(self) -> None:
        curve = CurveParams(base_price=Decimal("1"), slope=Decimal("0.5"))
        # units 4, 3, 2 come back off the curve: 3.0 + 2.5 + 2.0
        assert refund_for_sell(curve, 5, 3) == Decimal("7.5")

    def test_more_than_sold_rejected(self, linear_curve: CurveParams) -> None:
        with pytest.raises(InsufficientUnits):
            refund_for_sell(linear_curve, 5, 6)

    def test_negative_units_rejected(self, linear_curve: CurveParams) -> None:
        with pytest.raises(InvalidAmount):
            refund_for_sell(linear_curve, 5, -1)


class TestUnitsForNative:
    def test_flat_curve_exact_budget(self, flat_curve: CurveParams) -> None:
        # 2.0 / 0.002
        assert units_for_native(flat_curve, 0, Decimal("2.0")) == 1000

    def test_flat_curve_rounds_down(self, flat_curve: CurveParams) -> None:
        assert units_for_native(flat_curve, 0, Decimal("1.9999")) == 999

    def test_zero_budget(self, linear_curve: CurveParams) -> None:
        assert units_for_native(linear_curve, 0, Decimal("0")) == 0

    def test_budget_below_one_unit(self, linear_curve: CurveParams) -> None:
        assert units_for_native(linear_curve, 0, Decimal("0.00004")) == 0

    @pytest.mark.parametrize(
        "sold,budget",
        [
            (0, Decimal("0.01")),
            (0, Decimal("1")),
            (1_000, Decimal("3.3")),
            (650_000_000, Decimal("100")),
            (10, Decimal("0.000045000")),
        ],
    )
    def test_largest_affordable(self, linear_curve: CurveParams, sold: int, budget: Decimal) -> None:
        n = units_for_native(linear_curve, sold, budget)
        assert cost_to_buy(linear_curve, sold, n) <= budget
        assert cost_to_buy(linear_curve, sold, n + 1) > budget

    def test_exact_cost_buys_exact_units(self, linear_curve: CurveParams) -> None:
        budget = cost_to_buy(linear_curve, 250, 4_000)
        assert units_for_native(linear_curve, 250, budget) == 4_000

    @pytest.mark.parametrize("budget", [Decimal("-1"), Decimal("NaN"), Decimal("Infinity"), 1.0])
    def test_invalid_budget(self, linear_curve: CurveParams, budget: object) -> None:
        with pytest.raises(InvalidAmount):
            units_for_native(linear_curve, 0, budget)  # type: ignore[arg-type]

    @pytest.mark.parametrize("curve_name", ["flat_curve", "linear_curve"])
    def test_enormous_budget_fails_fast(
        self, request: pytest.FixtureRequest, curve_name: str
    ) -> None:
        curve = request.getfixturevalue(curve_name)
        with pytest.raises(InvalidAmount):
            units_for_native(curve, 0, Decimal("1e999990"))

    def test_budget_past_remaining_supply(self, flat_curve: CurveParams) -> None:
        with pytest.raises(SupplyExceeded):
            units_for_native(flat_curve, 0, Decimal("1e999990"), total_supply=1000)
        with pytest.raises(SupplyExceeded):
            # 1001 units cost 2.002
            units_for_native(flat_curve, 0, Decimal("2.002"), total_supply=1000)

    def test_budget_up_to_remaining_supply(self, flat_curve: CurveParams) -> None:
        assert units_for_native(flat_curve, 0, Decimal("2.0"), total_supply=1000) == 1000
        assert units_for_native(flat_curve, 400, Decimal("2.0019"), total_supply=1400) == 1000

    def test_sold_out_curve_rejects_any_buy(self, linear_curve: CurveParams) -> None:
        with pytest.raises(SupplyExceeded):
            units_for_native(linear_curve, 500, Decimal("1"), total_supply=500)
