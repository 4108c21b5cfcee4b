"""Tests for dashboard assembly, caching and the concurrent fan-out."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from sheet_dashboard import service as service_mod
from sheet_dashboard.cache import DashboardCache
from sheet_dashboard.models import CardData, DashboardData, Row
from sheet_dashboard.service import DashboardService, load_dashboards
from sheet_dashboard.source import FileSource, TransportError

SHEET_ROWS: list[Row] = [
    {"": "", "Release": "Quarter", "31 Mar 24": "Q1 24", "31 Dec 23": "Q4 23", "30 Sep 23": "Q3 23"},
    {"": "86,310", "Release": "Revenue", "31 Mar 24": "86,310", "31 Dec 23": "80,539", "30 Sep 23": "76,693"},
    {"": "Net income", "Release": "", "31 Mar 24": "23,662", "31 Dec 23": "20,687", "30 Sep 23": "19,689"},
    {"": "Operating margin", "Release": "", "31 Mar 24": "32%", "31 Dec 23": "27%", "30 Sep 23": "28%"},
    {"": "", "Release": "", "31 Mar 24": "", "31 Dec 23": "", "30 Sep 23": ""},
]


class _FakeSource:
    def __init__(self, sheets: dict[str, list[Row] | Exception]) -> None:
        self._sheets = sheets
        self.calls: list[str] = []

    def fetch_rows(self, ticker: str) -> list[Row]:
        self.calls.append(ticker)
        result = self._sheets.get(ticker, [])
        if isinstance(result, Exception):
            raise result
        return result


def _get(service: DashboardService, ticker: str) -> DashboardData:
    return asyncio.run(service.get_company_dashboard_data(ticker))


def test_full_sheet_produces_card_history_and_rows() -> None:
    service = DashboardService(_FakeSource({"$GOOG": SHEET_ROWS}))

    data = _get(service, "$GOOG")

    card = data.card_data
    assert card.revenue == "86.310"
    assert card.change == "5.771"
    assert card.percentage_change == "7,17%"
    assert card.numeric_percentage_change == pytest.approx(5771 / 80539)
    assert card.revenue_label == "Q1 2024"

    assert set(data.historical_data) == {"86,310", "Net income", "Operating margin"}
    net_income = data.historical_data["Net income"]
    assert [p.period for p in net_income] == ["30 Sep 23", "31 Dec 23", "31 Mar 24"]
    assert [p.value for p in net_income] == [19689, 20687, 23662]
    margins = [p.value for p in data.historical_data["Operating margin"]]
    assert margins == pytest.approx([0.28, 0.27, 0.32])

    assert data.all_rows == SHEET_ROWS[:4]


def test_second_call_returns_cached_object_without_fetch() -> None:
    source = _FakeSource({"$GOOG": SHEET_ROWS})
    service = DashboardService(source)

    first = _get(service, "$GOOG")
    second = _get(service, "$GOOG")

    assert second is first
    assert source.calls == ["$GOOG"]


def test_empty_payload_yields_not_available_dashboard() -> None:
    source = _FakeSource({"$XYZ": []})
    service = DashboardService(source)

    data = _get(service, "$XYZ")

    assert data.to_dict() == {
        "card_data": {
            "revenue": "N/A",
            "change": "N/A",
            "percentage_change": "N/A",
            "numeric_percentage_change": None,
            "revenue_label": "N/A",
        },
        "historical_data": {},
        "all_rows": [],
    }
    assert "$XYZ" in service.cache


def test_transport_error_is_absorbed_and_cached() -> None:
    source = _FakeSource({"$ERR": TransportError("HTTP error! status: 500")})
    service = DashboardService(source)

    data = _get(service, "$ERR")
    again = _get(service, "$ERR")

    assert data.card_data == CardData.not_available()
    assert data.all_rows == []
    assert again is data
    assert source.calls == ["$ERR"]


def test_missing_revenue_row_keeps_rows_but_no_card() -> None:
    rows: list[Row] = [
        {"": "Net income", "31 Dec 23": "20", "30 Sep 23": "19"},
        {"": "", "31 Dec 23": "", "30 Sep 23": None},
    ]
    service = DashboardService(_FakeSource({"$LOW": rows}))

    data = _get(service, "$LOW")

    assert data.card_data == CardData.not_available()
    assert data.historical_data == {}
    assert data.all_rows == rows[:1]


def test_assembly_failure_degrades_to_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*_args: object, **_kwargs: object) -> DashboardData:
        raise RuntimeError("boom")

    monkeypatch.setattr(service_mod, "assemble_dashboard", _boom)
    service = DashboardService(_FakeSource({"$GOOG": SHEET_ROWS}))

    assert _get(service, "$GOOG").to_dict() == DashboardData.empty().to_dict()


def test_shared_cache_invalidate_forces_refetch() -> None:
    cache = DashboardCache()
    source = _FakeSource({"$GOOG": SHEET_ROWS})
    service = DashboardService(source, cache=cache)

    _get(service, "$GOOG")
    cache.invalidate("$GOOG")
    _get(service, "$GOOG")

    assert service.cache is cache
    assert source.calls == ["$GOOG", "$GOOG"]


def test_load_dashboards_keeps_order_and_isolates_failures() -> None:
    source = _FakeSource(
        {"$GOOG": SHEET_ROWS, "$ERR": TransportError("down"), "$XYZ": []}
    )
    service = DashboardService(source)

    result = asyncio.run(load_dashboards(service, ["$XYZ", "$GOOG", "$ERR"]))

    assert list(result) == ["$XYZ", "$GOOG", "$ERR"]
    assert result["$GOOG"].card_data.revenue == "86.310"
    assert result["$ERR"].card_data.revenue == "N/A"
    assert sorted(source.calls) == ["$ERR", "$GOOG", "$XYZ"]


def test_unexpected_source_error_is_absorbed_and_cached() -> None:
    source = _FakeSource({"$ODD": RuntimeError("sheet backend exploded")})
    service = DashboardService(source)

    data = _get(service, "$ODD")

    assert data.to_dict() == DashboardData.empty().to_dict()
    assert service.cache.get("$ODD") is data


def test_corrupt_export_does_not_abort_sibling_tickers(tmp_path: Path) -> None:
    (tmp_path / "$GOOG.csv").write_text(
        ',Release,31 Mar 24,31 Dec 23\n"86,310",Revenue,"86,310","80,539"\n', encoding="utf-8"
    )
    (tmp_path / "$BAD.xlsx").write_bytes(b"not a zip")
    service = DashboardService(FileSource(tmp_path))

    result = asyncio.run(load_dashboards(service, ["$GOOG", "$BAD"]))

    assert result["$GOOG"].card_data.revenue == "86.310"
    assert result["$BAD"].to_dict() == DashboardData.empty().to_dict()
