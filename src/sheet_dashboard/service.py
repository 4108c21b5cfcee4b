"""Dashboard assembly — fetch, normalise and cache one company at a time."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from sheet_dashboard.cache import DashboardCache
from sheet_dashboard.models import CardData, DashboardData, HistoricalSeries, Row
from sheet_dashboard.pipeline import (
    extract_historical,
    find_revenue_row,
    period_columns,
    relevant_rows,
    summarize_card,
)
from sheet_dashboard.source import RowSource, TransportError

logger = logging.getLogger(__name__)


class DashboardService:
    """Assemble :class:`DashboardData` per ticker on top of a row source.

    Failures never propagate: a sheet that cannot be fetched or is empty is
    cached as an all-"N/A" dashboard.

    Args:
        source: Where raw sheet rows come from.
        cache: Shared cache; a fresh one is created if omitted.
    """

    def __init__(self, source: RowSource, cache: DashboardCache | None = None) -> None:
        self._source = source
        self.cache = cache if cache is not None else DashboardCache()

    async def get_company_dashboard_data(self, ticker: str) -> DashboardData:
        """Return the dashboard for *ticker* (e.g. ``"$GOOG"``)."""
        cached = self.cache.get(ticker)
        if cached is not None:
            logger.debug("Returning cached data for %s", ticker)
            return cached

        loop = asyncio.get_running_loop()
        try:
            rows = await loop.run_in_executor(None, self._source.fetch_rows, ticker)
        except TransportError as exc:
            logger.error("Error fetching data for sheet %r: %s", ticker, exc)
            return self.cache.set(ticker, DashboardData.empty())
        except Exception:
            logger.exception("Unexpected error fetching sheet %r", ticker)
            return self.cache.set(ticker, DashboardData.empty())

        if not rows:
            logger.warning("No data or empty data for %s", ticker)
            return self.cache.set(ticker, DashboardData.empty())

        try:
            data = assemble_dashboard(rows, ticker=ticker)
        except Exception:
            logger.exception("Could not assemble dashboard for sheet %r", ticker)
            data = DashboardData.empty()
        return self.cache.set(ticker, data)


def assemble_dashboard(rows: Sequence[Row], *, ticker: str = "") -> DashboardData:
    """Build the dashboard for already-fetched, non-empty *rows*."""
    periods = period_columns(rows)
    revenue_row = find_revenue_row(rows)

    card_data = CardData.not_available()
    historical_data: HistoricalSeries = {}
    if revenue_row is not None and periods:
        card_data = summarize_card(revenue_row, periods)
        historical_data = extract_historical(rows, periods)
    else:
        logger.warning(
            "Revenue row not found or no date columns for %s. Card data will be N/A.",
            ticker or "sheet",
        )

    return DashboardData(
        card_data=card_data,
        historical_data=historical_data,
        all_rows=relevant_rows(rows),
    )


async def load_dashboards(
    service: DashboardService, tickers: Sequence[str]
) -> dict[str, DashboardData]:
    """Fetch every ticker concurrently; return ``{ticker: data}`` in input order."""
    results = await asyncio.gather(
        *(service.get_company_dashboard_data(ticker) for ticker in tickers)
    )
    logger.info("Loaded %d dashboards", len(results))
    return dict(zip(tickers, results))
