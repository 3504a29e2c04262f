"""Custom exceptions for the launchpad settlement engine.

Every trade or listing rejection is a LaunchpadError subclass with a stable
``code``. They are raised before any state is mutated, so a caller that catches
one can rely on the market being exactly as it was. The HTTP layer maps each
code to its own status and message.
"""


class LaunchpadError(Exception):
    """Base exception for all engine errors."""

    code = "launchpad_error"


class InvalidTicker(LaunchpadError):
    """Raised when a ticker is empty, malformed, or too long."""

    code = "invalid_ticker"


class DuplicateTicker(LaunchpadError):
    """Raised when creating a token whose ticker already exists."""

    code = "duplicate_ticker"


class UnknownTicker(LaunchpadError):
    """Raised when trading or querying a ticker that was never created."""

    code = "unknown_ticker"


class CurveFrozen(LaunchpadError):
    """Raised when trading against a curve that has graduated."""

    code = "curve_frozen"


class InsufficientUnits(LaunchpadError):
    """Raised when a sell is larger than the units sold on the curve."""

    code = "insufficient_units"


class SupplyExceeded(LaunchpadError):
    """Raised when a buy would push units sold past total supply."""

    code = "supply_exceeded"


class InvalidAmount(LaunchpadError):
    """Raised for zero, negative, non-integral or overflowing trade sizes."""

    code = "invalid_amount"


class InvalidTradeKind(LaunchpadError):
    """Raised when a trade request is neither a buy nor a sell."""

    code = "invalid_trade_kind"


class SlippageExceeded(LaunchpadError):
    """Raised when a trade would fill below the caller's minimum output."""

    code = "slippage_exceeded"


class MigrationError(LaunchpadError):
    """Raised by a liquidity migrator when the pool hand-off fails."""

    code = "migration_failed"
