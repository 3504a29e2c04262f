"""Bounded price history for charting."""

from collections import deque

from launchpad.models import PricePoint


class PriceHistory:
    """Fixed-capacity, time-ordered ring buffer of price points.

    Appending beyond capacity evicts the oldest point. Settlement appends the
    post-trade price; the synthetic walk appends display-only samples marked
    ``synthetic=True``.

    Args:
        capacity: Maximum number of points retained (must be positive).
        points: Optional initial points, oldest first.
    """

    def __init__(self, capacity: int, points: list[PricePoint] | None = None) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._points: deque[PricePoint] = deque(maxlen=capacity)
        self._last_real_at: float | None = None
        for point in points or []:
            self.append(point)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def capacity(self) -> int:
        return self._points.maxlen or 0

    @property
    def last_real_at(self) -> float | None:
        """Timestamp of the newest point produced by a settled trade."""
        return self._last_real_at

    def append(self, point: PricePoint) -> None:
        """Add a point, evicting the oldest if full.

        Raises:
            ValueError: If the point is older than the newest point held.
        """
        if self._points and point.timestamp < self._points[-1].timestamp:
            raise ValueError(
                f"price point at {point.timestamp} is older than {self._points[-1].timestamp}"
            )
        self._points.append(point)
        if not point.synthetic:
            self._last_real_at = point.timestamp

    def latest(self) -> PricePoint | None:
        return self._points[-1] if self._points else None

    def points(self) -> list[PricePoint]:
        """Copy of the series, oldest first."""
        return list(self._points)

    def value_at_or_before(self, timestamp: float) -> PricePoint | None:
        """Newest point at or before ``timestamp``, or the oldest point held."""
        candidate = None
        for point in self._points:
            if point.timestamp > timestamp:
                break
            candidate = point
        if candidate is None and self._points:
            return self._points[0]
        return candidate
