"""sheet-dashboard — Revenue cards and trends from spreadsheet-backed company data."""

__version__ = "0.1.0"

ROW_LABEL_COLUMN: str = ""
"""Header of the unnamed first column that carries each row's label."""

RELEASE_COLUMN: str = "Release"

NOT_AVAILABLE: str = "N/A"

DEFAULT_TICKERS: list[str] = ["$AAPL", "$MSFT", "$GOOG", "$AMZN", "$META", "$NVDA", "$TSLA"]
