"""Append-only trade ledger for one token.

Trades are stored in settlement order. Sequence numbers are 1-based and
contiguous, and timestamps never go backwards, so settlement order, sequence
order, and time order are the same ordering. record() is the only mutator.
"""

from collections import defaultdict
from decimal import Decimal

from launchpad.curve.math import wide_arithmetic
from launchpad.models import Trade, TradeKind

_DAY_SECONDS = 86_400.0


class TradeLedger:
    """Time-ordered record of settled trades for a single ticker."""

    def __init__(self, ticker: str, trades: list[Trade] | None = None) -> None:
        self._ticker = ticker
        self._trades: list[Trade] = []
        for trade in trades or []:
            self.record(trade)

    def __len__(self) -> int:
        return len(self._trades)

    @property
    def next_sequence(self) -> int:
        if not self._trades:
            return 1
        return self._trades[-1].sequence + 1

    @property
    def last_timestamp(self) -> float | None:
        if not self._trades:
            return None
        return self._trades[-1].timestamp

    def record(self, trade: Trade) -> None:
        """Append a settled trade.

        A restored ledger may start from any sequence; after that each trade
        must follow its predecessor exactly.

        Raises:
            ValueError: If the trade belongs to another ticker, skips or
                repeats a sequence number, or is older than the last trade.
        """
        if trade.ticker != self._ticker:
            raise ValueError(f"trade for {trade.ticker} recorded in {self._ticker} ledger")
        if self._trades:
            last = self._trades[-1]
            if trade.sequence != last.sequence + 1:
                raise ValueError(
                    f"{self._ticker}: expected sequence {last.sequence + 1}, got {trade.sequence}"
                )
            if trade.timestamp < last.timestamp:
                raise ValueError(
                    f"{self._ticker}: trade {trade.id} is older than the last trade"
                )
        self._trades.append(trade)

    def all(self) -> list[Trade]:
        """All trades, oldest first (a copy)."""
        return list(self._trades)

    def recent(self, n: int) -> list[Trade]:
        """The ``n`` most recent trades, newest first."""
        if n <= 0:
            return []
        return self._trades[-n:][::-1]

    def since(self, timestamp: float) -> list[Trade]:
        """Trades strictly after ``timestamp``, oldest first."""
        # Scan from the end; recent windows are short relative to the ledger.
        idx = len(self._trades)
        while idx > 0 and self._trades[idx - 1].timestamp > timestamp:
            idx -= 1
        return self._trades[idx:]

    def volume_since(self, timestamp: float) -> Decimal:
        """Sum of execution_price * units (the gross notional) after ``timestamp``."""
        with wide_arithmetic():
            return sum((t.gross_amount for t in self.since(timestamp)), Decimal("0"))

    def volume_24h(self, now: float) -> Decimal:
        return self.volume_since(now - _DAY_SECONDS)

    def holder_balances(self, until: float | None = None) -> dict[str, int]:
        """Net units held per actor, from trades at or before ``until`` (default: all)."""
        balances: dict[str, int] = defaultdict(int)
        for trade in self._trades:
            if until is not None and trade.timestamp > until:
                break
            if trade.kind == TradeKind.BUY:
                balances[trade.actor] += trade.units
            else:
                balances[trade.actor] -= trade.units
        return dict(balances)

    def holder_count(self, until: float | None = None) -> int:
        """Number of actors holding a positive net balance."""
        return sum(1 for units in self.holder_balances(until).values() if units > 0)

    def holder_delta(self, since: float) -> int:
        """Change in holder count caused by trades after ``since``."""
        return self.holder_count() - self.holder_count(until=since)
