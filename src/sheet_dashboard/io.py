"""I/O helpers — load local sheet exports, write JSON artifacts."""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from sheet_dashboard import ROW_LABEL_COLUMN
from sheet_dashboard.models import CellValue, Row

# ── Loading ──────────────────────────────────────────────────────


def load_table(path: Path) -> pd.DataFrame:
    """Load a CSV or Excel sheet export as an all-string DataFrame.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not supported, or CSV decoding/parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        last_exc: Exception | None = None
        for encoding in ("utf-8-sig", "utf-8", "latin-1"):
            try:
                return pd.read_csv(
                    path,
                    dtype="string",
                    encoding=encoding,
                    encoding_errors="strict",
                    keep_default_na=False,
                    na_values=[""],
                )
            except (UnicodeDecodeError, pd.errors.ParserError) as exc:
                last_exc = exc
        raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc

    if suffix in (".xlsx", ".xlsm"):
        read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
        return read_excel(path, engine="openpyxl", dtype="string")

    raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv or .xlsx")


_UNNAMED_RE = re.compile(r"^Unnamed: \d+$")


def _header_text(name: object) -> str:
    if isinstance(name, (datetime, date)):
        return name.strftime("%Y-%m-%d")
    return str(name)


def _cell_value(val: Any) -> CellValue:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        pass
    item = getattr(val, "item", None)
    if callable(item):
        val = item()
    if isinstance(val, (str, int, float)) and not isinstance(val, bool):
        return val
    return str(val)


def frame_to_rows(df: pd.DataFrame) -> list[Row]:
    """Convert *df* to sheet rows.

    The first unnamed header (pandas' ``Unnamed: N``) becomes the row-label
    column; missing cells become None.
    """
    columns = [_header_text(c) for c in df.columns]
    if ROW_LABEL_COLUMN not in columns:
        for idx, name in enumerate(columns):
            if _UNNAMED_RE.match(name):
                columns[idx] = ROW_LABEL_COLUMN
                break

    rows: list[Row] = []
    for values in df.itertuples(index=False, name=None):
        rows.append({col: _cell_value(val) for col, val in zip(columns, values)})
    return rows


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
