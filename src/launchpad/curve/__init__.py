"""Bonding curve pricing -- pure functions, no state."""

from launchpad.curve.math import cost_to_buy, price_at, refund_for_sell, units_for_native

__all__ = ["cost_to_buy", "price_at", "refund_for_sell", "units_for_native"]
