"""Excel export — produces Dashboard_Report.xlsx."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from sheet_dashboard.models import DashboardData

REPORT_NAME = "Dashboard_Report.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
VALUE_FONT = Font(name="Calibri", size=11)
UP_FONT = Font(name="Calibri", size=11, color="2E7D32")
DOWN_FONT = Font(name="Calibri", size=11, color="C62828")

RATIO_FMT = '0.00%'

CARD_COLUMNS = ["Ticker", "Period", "Revenue", "Change", "% Change", "Change Ratio"]
HISTORY_COLUMNS = ["ticker", "metric", "period", "value"]

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")
_SHEET_TITLE_INVALID_RE = re.compile(r"[\[\]:*?/\\]")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int, *, row: int = 1) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=row, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 30)


def _sheet_title(name: str) -> str:
    return _SHEET_TITLE_INVALID_RE.sub("_", name)[:31] or "Sheet"


def _table_name(ws: Worksheet, base_name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", base_name) or "Table"
    if not re.match(r"^[A-Za-z_]", cleaned):
        cleaned = f"_{cleaned}"
    existing: set[str] = set()
    if ws.parent is not None:
        for sheet in ws.parent.worksheets:
            existing.update(cast(Iterable[str], sheet.tables.keys()))
    candidate = cleaned
    suffix = 1
    while candidate in existing:
        candidate = f"{cleaned}_{suffix}"
        suffix += 1
    return candidate


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    """Turn the data range into a proper Excel Table object."""
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"
    table = Table(displayName=_table_name(ws, name), ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    if val is None:
        return None
    if isinstance(val, float) and not math.isfinite(val):
        return None
    if isinstance(val, str):
        stripped = val.lstrip()
        if not val.startswith("'") and stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"
    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame, *, as_table: bool = False) -> None:
    ws = wb.create_sheet(title=_sheet_title(name))
    col_names = [str(c) for c in df.columns]

    if not col_names:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            if not isinstance(val, str) and pd.isna(val):
                val = None
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    ws.freeze_panes = "A2"
    _auto_width(ws)
    if as_table and len(df) > 0:
        _add_excel_table(ws, name, len(col_names), len(df))
    elif len(df) > 0:
        ws.auto_filter.ref = ws.dimensions


def _write_cards(wb: Workbook, dashboards: Mapping[str, DashboardData]) -> None:
    ws = wb.create_sheet(title="Cards")

    ws.cell(row=1, column=1, value="Company Revenue Cards").font = TITLE_FONT
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT

    header_row = 4
    for c_idx, name in enumerate(CARD_COLUMNS, 1):
        ws.cell(row=header_row, column=c_idx, value=name)
    _style_header(ws, len(CARD_COLUMNS), row=header_row)

    row = header_row + 1
    for ticker, data in dashboards.items():
        card = data.card_data
        ratio = card.numeric_percentage_change
        values = [ticker, card.revenue_label, card.revenue, card.change, card.percentage_change]
        for c_idx, value in enumerate(values, 1):
            ws.cell(row=row, column=c_idx, value=_excel_value(value)).font = VALUE_FONT
        ratio_cell = ws.cell(row=row, column=len(values) + 1, value=_excel_value(ratio))
        ratio_cell.number_format = RATIO_FMT
        ratio_cell.alignment = Alignment(horizontal="right")
        if ratio is not None:
            ratio_cell.font = UP_FONT if ratio >= 0 else DOWN_FONT
        row += 1

    for c_idx, width in enumerate([12, 14, 18, 18, 14, 14], 1):
        ws.column_dimensions[get_column_letter(c_idx)].width = width
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)


def _history_frame(dashboards: Mapping[str, DashboardData]) -> pd.DataFrame:
    records = [
        {"ticker": ticker, "metric": metric, "period": point.period, "value": point.value}
        for ticker, data in dashboards.items()
        for metric, series in data.historical_data.items()
        for point in series
    ]
    return pd.DataFrame(records, columns=HISTORY_COLUMNS)


# ── Public API ───────────────────────────────────────────────────


def write_report(out_dir: Path, dashboards: Mapping[str, DashboardData]) -> Path:
    """Write ``Dashboard_Report.xlsx`` and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_NAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)

    _write_cards(wb, dashboards)

    history = _history_frame(dashboards)
    _df_to_sheet(wb, "History", history, as_table=True)

    for ticker, data in dashboards.items():
        _df_to_sheet(wb, f"Rows_{ticker}", pd.DataFrame(data.all_rows))

    tmp_path = out_dir / "Dashboard_Report.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
