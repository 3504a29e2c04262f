"""Abstract liquidity migrator interface.

At graduation the engine hands the curve's final reserve and unsold tokens to
a migrator exactly once. A paper implementation ships with the engine; an
on-chain implementation would create the DEX pool and lock the LP tokens.
"""

from abc import ABC, abstractmethod

from launchpad.models import MigrationRequest, MigrationResult


class LiquidityMigrator(ABC):
    """Abstract base class for graduation liquidity migration.

    The engine depends only on this interface. Failures are reported back
    (raise MigrationError or return success=False); graduation itself is
    never rolled back and migration is never retried against the curve.
    """

    @abstractmethod
    async def migrate(self, request: MigrationRequest) -> MigrationResult:
        """Move a graduated token's liquidity to an external pool.

        Args:
            request: Final units sold, tokens remaining, and reserve.

        Returns:
            MigrationResult describing the pool or the failure.

        Raises:
            MigrationError: If the hand-off fails outright.
        """
        ...
