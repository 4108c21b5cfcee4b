"""Normalisation pipeline — pure functions, no side effects.

Turns the loosely typed rows of a company sheet into the revenue card and
the per-metric history shown on the dashboard.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Context, Decimal

from sheet_dashboard import NOT_AVAILABLE, RELEASE_COLUMN, ROW_LABEL_COLUMN
from sheet_dashboard.models import (
    CardData,
    CellValue,
    HistoricalPoint,
    HistoricalSeries,
    PeriodLabel,
    Row,
)

# ── Period columns ──────────────────────────────────────────────


_DAY_MONTH_YEAR_RE = re.compile(r"(\d{1,2}) ([A-Za-z]{3}) (\d{2,4})", re.ASCII)
_ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_MONTHS: dict[str, int] = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

EPOCH = date(1970, 1, 1)
"""Sort key for headers that are not dates; sorts last when descending."""


def is_period_column(header: object) -> bool:
    """Return True if *header* names a reporting period.

    Accepts ``DD Mon YY``/``DD Mon YYYY`` anywhere in the header, or an
    exact ISO ``YYYY-MM-DD``.
    """
    if not isinstance(header, str):
        return False
    return bool(_DAY_MONTH_YEAR_RE.search(header) or _ISO_DATE_RE.fullmatch(header))


def _rolled_date(year: int, month: int, day: int) -> date | None:
    # Days past the month end roll forward, day 0 is the previous month's last day.
    try:
        return date(year, month, 1) + timedelta(days=day - 1)
    except (ValueError, OverflowError):
        return None


def _parse_period(header: str) -> date | None:
    if _ISO_DATE_RE.fullmatch(header):
        year, month, day = (int(part) for part in header.split("-"))
        if not 1 <= month <= 12 or not 1 <= day <= 31:
            return None
        return _rolled_date(year, month, day)

    match = _DAY_MONTH_YEAR_RE.search(header)
    if match is None:
        return None
    day, month_name, year_text = match.groups()
    month = _MONTHS.get(month_name)
    if month is None:
        return None
    year = int(year_text)
    if year < 100:
        year += 2000
    return _rolled_date(year, month, int(day))


def parse_period_for_sort(header: str) -> date:
    """Return a chronological sort key for *header* (``EPOCH`` if unparseable)."""
    parsed = _parse_period(header)
    if parsed is None:
        return EPOCH
    return parsed


def order_period_columns(headers: Iterable[str]) -> list[str]:
    """Return the period headers among *headers*, latest first."""
    periods = [header for header in headers if is_period_column(header)]
    return sorted(periods, key=parse_period_for_sort, reverse=True)


def period_label(header: str) -> PeriodLabel:
    """Label *header* as ``Q<n> <year>``, or fall back to ``Latest (<header>)``."""
    parsed = _parse_period(header)
    if parsed is not None and parsed.year > 1900:
        quarter = (parsed.month - 1) // 3 + 1
        return PeriodLabel(f"Q{quarter} {parsed.year}", True)
    return PeriodLabel(f"Latest ({header})", False)


# ── Numeric parsing ─────────────────────────────────────────────


_FLOAT_PREFIX_RE = re.compile(
    r"[+-]?(?:Infinity|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)", re.ASCII
)


def _parse_float_prefix(text: str) -> float | None:
    match = _FLOAT_PREFIX_RE.match(text.lstrip())
    if match is None:
        return None
    return float(match.group())


def parse_numeric(value: object) -> float | int | None:
    """Convert a sheet cell to a number, or None if it holds no number.

    Thousands commas are dropped, ``12%`` becomes ``0.12`` and ``(50)``
    becomes ``-50``. Trailing text after a leading number is ignored.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return None

    clean = value.replace(",", "")
    if clean.endswith("%"):
        parsed = _parse_float_prefix(clean.replace("%", "", 1))
        return None if parsed is None else parsed / 100
    if clean.startswith("(") and clean.endswith(")"):
        clean = "-" + clean[1:-1]
    return _parse_float_prefix(clean)


# ── Display formatting ──────────────────────────────────────────


_WIDE = Context(prec=400)
_MILLI = Decimal("0.001")
_CENT = Decimal("0.01")


def format_de(value: float | int) -> str:
    """Format *value* with German grouping: ``1.234.567,891``.

    At most three fraction digits, trailing zeros dropped.
    """
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "∞" if value > 0 else "-∞"

    # Round the shortest repr, not the exact binary value: 1.0005 -> "1,001".
    decimal_value = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    amount = decimal_value.quantize(_MILLI, rounding=ROUND_HALF_UP, context=_WIDE)
    sign = "-" if amount.is_signed() else ""
    whole, _, fraction = f"{amount.copy_abs():f}".partition(".")
    fraction = fraction.rstrip("0")
    grouped = f"{int(whole):,}".replace(",", ".")
    if fraction:
        return f"{sign}{grouped},{fraction}"
    return f"{sign}{grouped}"


def format_percentage(ratio: float) -> str:
    """Format a ratio as percent points with two decimals: ``0.5`` -> ``50,00%``."""
    scaled = ratio * 100
    if math.isnan(scaled):
        return "NaN%"
    if math.isinf(scaled):
        return "Infinity%" if scaled > 0 else "-Infinity%"
    if scaled == 0:
        scaled = 0.0  # no "-0,00%"
    amount = Decimal(scaled).quantize(_CENT, rounding=ROUND_HALF_UP, context=_WIDE)
    return f"{amount:f}".replace(".", ",") + "%"


# ── Revenue row ─────────────────────────────────────────────────


_IDENTIFYING_RELEASE_VALUES = frozenset({"Quarter", "Episode", "Period", "Metric"})
_MIN_REVENUE = 100


def _is_identifying_release(value: CellValue) -> bool:
    return isinstance(value, str) and value.strip() in _IDENTIFYING_RELEASE_VALUES


def find_revenue_row(rows: Iterable[Row]) -> Row | None:
    """Return the row most likely to hold top-line revenue.

    Candidates have a row-label number above 100 and at least one period
    column; the largest wins, first seen on ties. Rows whose ``Release``
    cell reads Quarter/Episode/Period/Metric only label periods and are
    never picked.
    """
    best_row: Row | None = None
    max_revenue: float = -1

    for row in rows:
        if not isinstance(row, Mapping):
            continue
        value = parse_numeric(row.get(ROW_LABEL_COLUMN))
        if value is None or not value > _MIN_REVENUE:
            continue
        if not any(is_period_column(key) for key in row):
            continue
        if value > max_revenue and not _is_identifying_release(row.get(RELEASE_COLUMN)):
            max_revenue = value
            best_row = row
    return best_row


# ── Card summary ────────────────────────────────────────────────


def summarize_card(revenue_row: Row, ordered_periods: Sequence[str]) -> CardData:
    """Build the card for *revenue_row*.

    *ordered_periods* must be non-empty and sorted latest first.
    """
    latest = ordered_periods[0]
    previous = ordered_periods[1] if len(ordered_periods) > 1 else None

    latest_value = parse_numeric(revenue_row.get(latest))
    previous_value = parse_numeric(revenue_row.get(previous)) if previous is not None else None

    change = NOT_AVAILABLE
    percentage_change = NOT_AVAILABLE
    numeric_percentage_change: float | None = None

    if latest_value is not None and previous_value is not None:
        delta = latest_value - previous_value
        change = format_de(delta)
        if previous_value != 0:
            ratio = delta / previous_value
            numeric_percentage_change = ratio
            percentage_change = format_percentage(ratio)
        elif delta > 0:
            numeric_percentage_change = math.inf
            percentage_change = "Inf%"
        else:
            # 0 -> 0 also lands here and reads as -Inf%.
            numeric_percentage_change = -math.inf
            percentage_change = "-Inf%"

    return CardData(
        revenue=format_de(latest_value) if latest_value is not None else NOT_AVAILABLE,
        change=change,
        percentage_change=percentage_change,
        numeric_percentage_change=numeric_percentage_change,
        revenue_label=period_label(latest).text,
    )


# ── Historical series ───────────────────────────────────────────


_HEADER_METRICS = frozenset({"Quarter", "Episode"})


def _cell_text(value: CellValue) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _metric_name(row: Row) -> str:
    label = row.get(ROW_LABEL_COLUMN) or row.get(RELEASE_COLUMN) or ""
    return _cell_text(label).strip()


def extract_historical(rows: Iterable[Row], ordered_periods: Sequence[str]) -> HistoricalSeries:
    """Return ``{metric: [HistoricalPoint, ...]}`` ordered oldest to newest.

    Cells that hold no number are skipped; rows with no numbers at all are
    left out. A later row with the same metric name replaces an earlier one.
    """
    historical: HistoricalSeries = {}
    ascending = list(reversed(ordered_periods))

    for row in rows:
        metric = _metric_name(row)
        if not metric or metric in _HEADER_METRICS:
            continue
        series: list[HistoricalPoint] = []
        for period in ascending:
            value = parse_numeric(row.get(period))
            if value is not None:
                series.append(HistoricalPoint(period=period, value=value))
        if series:
            historical[metric] = series
    return historical


# ── Row helpers ─────────────────────────────────────────────────


def period_columns(rows: Sequence[Row]) -> list[str]:
    """Period headers of the first row, latest first."""
    if not rows:
        return []
    return order_period_columns(rows[0].keys())


def relevant_rows(rows: Iterable[Row]) -> list[Row]:
    """Rows with at least one cell that is neither ``""`` nor None."""
    return [
        row for row in rows
        if any(value != "" and value is not None for value in row.values())
    ]
