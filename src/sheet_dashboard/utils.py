"""Shared helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def ticker_key(raw: str) -> str:
    """Normalise a ticker to the ``$``-prefixed sheet name: ``goog`` -> ``$GOOG``."""
    symbol = raw.strip().lstrip("$").upper()
    if not symbol:
        raise ValueError(f"Invalid ticker: {raw!r}")
    return f"${symbol}"
