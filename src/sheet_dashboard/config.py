"""Runtime configuration: defaults, profile file, environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from sheet_dashboard import DEFAULT_TICKERS
from sheet_dashboard.source import DEFAULT_API_URL, DEFAULT_TIMEOUT

ENV_API_URL = "SHEETDASH_API_URL"
ENV_TIMEOUT = "SHEETDASH_TIMEOUT"


@dataclass
class DashboardConfig:
    api_url: str = DEFAULT_API_URL
    timeout: float | None = DEFAULT_TIMEOUT
    tickers: list[str] = field(default_factory=lambda: list(DEFAULT_TICKERS))


def parse_timeout(raw: str) -> float | None:
    """Parse a timeout in seconds; ``none`` disables it."""
    text = raw.strip()
    if text.lower() == "none":
        return None
    try:
        value = float(text)
    except ValueError as exc:
        raise ValueError(f"Invalid timeout: {raw!r} (expected seconds or 'none')") from exc
    if not value > 0:
        raise ValueError(f"Timeout must be > 0, got {raw!r}")
    return value


def _read_profile_lines(path: Path) -> list[str]:
    if not path.exists():
        raise ValueError(f"Config not found: {path} (expected lines like ticker=$GOOG)")
    if path.is_dir():
        raise ValueError(f"Config is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read config {path}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> DashboardConfig:
    """Build the configuration from defaults, *path*, then *environ*.

    The profile file holds ``key=value`` lines: ``api_url``, ``timeout`` and
    any number of ``ticker`` lines (which replace the default ticker list).

    Raises
    ------
    ValueError
        If the file cannot be read or holds an invalid line.
    """
    config = DashboardConfig()
    env = os.environ if environ is None else environ

    if path is not None:
        tickers: list[str] = []
        for line in _read_profile_lines(Path(path)):
            if "=" not in line:
                raise ValueError(f"Invalid config line: {line!r}  (expected key=value)")
            key, value = (part.strip() for part in line.split("=", 1))
            if not value:
                raise ValueError(f"Config key {key!r} has an empty value")
            if key == "api_url":
                config.api_url = value
            elif key == "timeout":
                config.timeout = parse_timeout(value)
            elif key == "ticker":
                tickers.append(value)
            else:
                raise ValueError(f"Unknown config key: {key!r}")
        if tickers:
            config.tickers = tickers

    if env.get(ENV_API_URL):
        config.api_url = env[ENV_API_URL]
    if env.get(ENV_TIMEOUT):
        config.timeout = parse_timeout(env[ENV_TIMEOUT])
    return config
