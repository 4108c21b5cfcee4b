from __future__ import annotations

from sheet_dashboard.cache import DashboardCache
from sheet_dashboard.models import DashboardData


def test_set_then_get_returns_same_object() -> None:
    cache = DashboardCache()
    data = DashboardData.empty()

    assert cache.set("$GOOG", data) is data
    assert cache.get("$GOOG") is data
    assert "$GOOG" in cache
    assert len(cache) == 1


def test_keys_keep_dollar_prefix() -> None:
    cache = DashboardCache()
    cache.set("$GOOG", DashboardData.empty())

    assert cache.get("GOOG") is None


def test_later_set_wins() -> None:
    cache = DashboardCache()
    first = DashboardData.empty()
    second = DashboardData.empty()

    cache.set("$MSFT", first)
    cache.set("$MSFT", second)

    assert cache.get("$MSFT") is second


def test_invalidate_and_clear() -> None:
    cache = DashboardCache()
    cache.set("$A", DashboardData.empty())
    cache.set("$B", DashboardData.empty())

    assert cache.invalidate("$A") is True
    assert cache.invalidate("$A") is False
    assert "$A" not in cache

    cache.clear()
    assert len(cache) == 0
