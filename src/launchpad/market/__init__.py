"""Per-token market state, trade ledger, price history, registry, and synthetic walk."""

from launchpad.market.history import PriceHistory
from launchpad.market.ledger import TradeLedger
from launchpad.market.registry import MarketRecord, MarketRegistry, TokenMarket
from launchpad.market.state import TokenMarketState
from launchpad.market.walk import SyntheticPriceWalk

__all__ = [
    "MarketRecord",
    "MarketRegistry",
    "PriceHistory",
    "SyntheticPriceWalk",
    "TokenMarket",
    "TokenMarketState",
    "TradeLedger",
]
