"""Data models shared across the package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Union

from sheet_dashboard import NOT_AVAILABLE

CellValue = Union[str, int, float, None]
Row = dict[str, CellValue]


def _to_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    return value


def _json_number(value: float | None) -> float | str | None:
    if value is None:
        return None
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


@dataclass
class CardData:
    """Compact summary shown on a company's card.

    Contract invariant: ``numeric_percentage_change is None`` exactly when
    ``percentage_change == "N/A"``.
    """

    revenue: str = NOT_AVAILABLE
    change: str = NOT_AVAILABLE
    percentage_change: str = NOT_AVAILABLE
    numeric_percentage_change: float | None = None
    revenue_label: str = NOT_AVAILABLE

    def __post_init__(self) -> None:
        self.revenue = _to_string(self.revenue, "revenue")
        self.change = _to_string(self.change, "change")
        self.percentage_change = _to_string(self.percentage_change, "percentage_change")
        self.revenue_label = _to_string(self.revenue_label, "revenue_label")
        pct = self.numeric_percentage_change
        if pct is not None and (isinstance(pct, bool) or not isinstance(pct, Real)):
            raise TypeError("numeric_percentage_change must be a number or None")
        if (pct is None) != (self.percentage_change == NOT_AVAILABLE):
            raise ValueError(
                "numeric_percentage_change must be None exactly when percentage_change is N/A"
            )

    @classmethod
    def not_available(cls) -> CardData:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "revenue": self.revenue,
            "change": self.change,
            "percentage_change": self.percentage_change,
            "numeric_percentage_change": _json_number(self.numeric_percentage_change),
            "revenue_label": self.revenue_label,
        }


@dataclass(frozen=True)
class HistoricalPoint:
    """One value of a metric in one reporting period."""

    period: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"period": self.period, "value": _json_number(self.value)}


HistoricalSeries = dict[str, list[HistoricalPoint]]


@dataclass
class DashboardData:
    """Everything the UI needs for one company."""

    card_data: CardData = field(default_factory=CardData.not_available)
    historical_data: HistoricalSeries = field(default_factory=dict)
    all_rows: list[Row] = field(default_factory=list)

    @classmethod
    def empty(cls) -> DashboardData:
        """Degraded result used when the upstream sheet cannot be read."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_data": self.card_data.to_dict(),
            "historical_data": {
                metric: [point.to_dict() for point in series]
                for metric, series in self.historical_data.items()
            },
            "all_rows": [dict(row) for row in self.all_rows],
        }


@dataclass(frozen=True)
class PeriodLabel:
    """Display label for a period header.

    ``is_quarter`` is False when the header could not be turned into a
    calendar quarter and ``text`` holds the ``Latest (<header>)`` fallback.
    """

    text: str
    is_quarter: bool
