"""Paper liquidity migrator with simulated pool creation.

Pairs all remaining tokens with the accumulated reserve, the way the
on-chain graduation does, and records each migration in memory. No
external venue is contacted.
"""

from uuid import uuid4

from launchpad.exceptions import MigrationError
from launchpad.logging import get_logger
from launchpad.migration.migrator import LiquidityMigrator
from launchpad.models import MigrationRequest, MigrationResult

logger = get_logger(__name__)


class PaperMigrator(LiquidityMigrator):
    """Simulated migrator. Every result has a ``paper_`` pool id."""

    def __init__(self) -> None:
        self._migrations: dict[str, MigrationRequest] = {}

    @property
    def migrations(self) -> dict[str, MigrationRequest]:
        """Requests migrated so far, keyed by ticker."""
        return dict(self._migrations)

    async def migrate(self, request: MigrationRequest) -> MigrationResult:
        """Record the migration and return a simulated pool.

        Raises:
            MigrationError: If the ticker was already migrated.
        """
        if request.ticker in self._migrations:
            raise MigrationError(f"{request.ticker} liquidity already migrated")

        self._migrations[request.ticker] = request
        pool_id = f"paper_{uuid4().hex[:12]}"

        logger.info(
            "liquidity_migrated",
            ticker=request.ticker,
            pool_id=pool_id,
            token_liquidity=request.tokens_remaining,
            native_liquidity=str(request.reserve),
            final_price=str(request.final_price),
        )
        return MigrationResult(ticker=request.ticker, success=True, pool_id=pool_id)
