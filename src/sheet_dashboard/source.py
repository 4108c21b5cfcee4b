"""Upstream row sources.

Provides a RowSource protocol with two implementations:
- SheetClient: the spreadsheet JSON API, one sheet per ticker.
- FileSource: local CSV/XLSX exports of the same sheets.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import requests

from sheet_dashboard.io import frame_to_rows, load_table
from sheet_dashboard.models import CellValue, Row

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://sheetdb.io/api/v1/w8reb3oo0bas6"
DEFAULT_TIMEOUT = 30.0


class TransportError(RuntimeError):
    """The upstream sheet could not be fetched."""


class RowSource(Protocol):
    """Interface for fetching the raw rows of one company sheet."""

    def fetch_rows(self, ticker: str) -> list[Row]:
        """Return the rows of the sheet named *ticker* (e.g. ``"$GOOG"``).

        Raises:
            TransportError: If the sheet cannot be read.
        """
        ...


def _coerce_cell(value: Any) -> CellValue:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return str(value)


def normalize_rows(payload: Any) -> list[Row]:
    """Coerce a decoded JSON payload into a list of rows.

    Anything but a list is treated as empty. Entries that are not objects
    are dropped.
    """
    if not isinstance(payload, list):
        if payload:
            logger.warning("Expected a list of rows, got %s", type(payload).__name__)
        return []

    rows: list[Row] = []
    skipped = 0
    for entry in payload:
        if not isinstance(entry, Mapping):
            skipped += 1
            continue
        rows.append({str(key): _coerce_cell(value) for key, value in entry.items()})
    if skipped:
        logger.warning("Skipped %d non-object entries in sheet payload", skipped)
    return rows


class SheetClient:
    """Fetch sheet rows from the spreadsheet JSON API.

    Args:
        api_url: Base URL of the sheet API.
        timeout: Seconds to wait for the server before giving up.
        session: Optional ``requests.Session`` to reuse connections.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float | None = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session

    @property
    def api_url(self) -> str:
        return self._api_url

    def fetch_rows(self, ticker: str) -> list[Row]:
        url = f"{self._api_url}/"
        logger.info("Fetching raw data from %s?sheet=%s", url, ticker)
        get = self._session.get if self._session is not None else requests.get
        try:
            response = get(url, params={"sheet": ticker}, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise TransportError(f"Request for sheet {ticker!r} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Sheet {ticker!r} did not return JSON: {exc}") from exc

        rows = normalize_rows(payload)
        logger.debug("Sheet %s: %d raw rows", ticker, len(rows))
        return rows


class FileSource:
    """Read sheets from ``<directory>/<ticker>.csv`` or ``.xlsx``."""

    SUFFIXES = (".csv", ".xlsx", ".xlsm")

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def _path_for(self, ticker: str) -> Path | None:
        for suffix in self.SUFFIXES:
            path = self._directory / f"{ticker}{suffix}"
            if path.exists():
                return path
        return None

    def fetch_rows(self, ticker: str) -> list[Row]:
        path = self._path_for(ticker)
        if path is None:
            raise TransportError(f"No sheet export for {ticker!r} in {self._directory}")
        try:
            df = load_table(path)
        except Exception as exc:
            logger.warning("Could not read %s: %s", path, exc)
            raise TransportError(f"Could not read {path}: {exc}") from exc
        logger.info("Loaded %d rows x %d columns from %s", len(df), len(df.columns), path)
        return frame_to_rows(df)
