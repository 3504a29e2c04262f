"""Graduation liquidity migration -- collaborator interface and paper implementation."""

from launchpad.migration.migrator import LiquidityMigrator
from launchpad.migration.paper_migrator import PaperMigrator

__all__ = ["LiquidityMigrator", "PaperMigrator"]
