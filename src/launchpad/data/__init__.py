"""Snapshot persistence layer -- SQLite database management and typed market store."""

from launchpad.data.database import MarketDatabase
from launchpad.data.store import MarketStore

__all__ = ["MarketDatabase", "MarketStore"]
