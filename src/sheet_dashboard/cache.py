"""Process-wide cache of assembled dashboards."""

from __future__ import annotations

from sheet_dashboard.models import DashboardData


class DashboardCache:
    """In-memory cache keyed by ticker (including its ``$`` prefix).

    One instance lives for the whole process. Entries are filled lazily and
    never expire; ``invalidate``/``clear`` exist for tests and manual refresh.
    Access is unsynchronised: two concurrent misses for one ticker both
    fetch and the later ``set`` wins.
    """

    def __init__(self) -> None:
        self._entries: dict[str, DashboardData] = {}

    def get(self, ticker: str) -> DashboardData | None:
        return self._entries.get(ticker)

    def set(self, ticker: str, data: DashboardData) -> DashboardData:
        self._entries[ticker] = data
        return data

    def invalidate(self, ticker: str) -> bool:
        """Drop *ticker*; return True if it was cached."""
        return self._entries.pop(ticker, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, ticker: object) -> bool:
        return ticker in self._entries

    def __len__(self) -> int:
        return len(self._entries)
