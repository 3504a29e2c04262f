"""Platform fee policy."""

from launchpad.fees.policy import FeeBreakdown, FeePolicy, apply_fee

__all__ = ["FeeBreakdown", "FeePolicy", "apply_fee"]
