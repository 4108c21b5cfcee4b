from __future__ import annotations

from pathlib import Path

import pytest

from sheet_dashboard import DEFAULT_TICKERS
from sheet_dashboard.config import ENV_API_URL, ENV_TIMEOUT, load_config, parse_timeout
from sheet_dashboard.source import DEFAULT_API_URL, DEFAULT_TIMEOUT


def test_defaults_without_file_or_environment() -> None:
    config = load_config(environ={})

    assert config.api_url == DEFAULT_API_URL
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.tickers == DEFAULT_TICKERS
    assert config.tickers is not DEFAULT_TICKERS
    assert len(config.tickers) == 7


def test_profile_file_overrides_defaults(tmp_path: Path) -> None:
    profile = tmp_path / "dash.conf"
    profile.write_text(
        "# sheet api\napi_url = https://sheets.example/api\n\ntimeout=5\nticker=$GOOG\nticker = $MSFT\n",
        encoding="utf-8",
    )

    config = load_config(profile, environ={})

    assert config.api_url == "https://sheets.example/api"
    assert config.timeout == 5.0
    assert config.tickers == ["$GOOG", "$MSFT"]


def test_environment_overrides_profile(tmp_path: Path) -> None:
    profile = tmp_path / "dash.conf"
    profile.write_text("api_url=https://file.example\n", encoding="utf-8")

    config = load_config(
        profile, environ={ENV_API_URL: "https://env.example", ENV_TIMEOUT: "none"}
    )

    assert config.api_url == "https://env.example"
    assert config.timeout is None


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("api_url\n", "expected key=value"),
        ("colour=blue\n", "Unknown config key"),
        ("ticker=\n", "empty value"),
        ("timeout=soon\n", "Invalid timeout"),
    ],
)
def test_invalid_profile_lines_raise(tmp_path: Path, text: str, message: str) -> None:
    profile = tmp_path / "dash.conf"
    profile.write_text(text, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        load_config(profile, environ={})


def test_missing_or_directory_profile_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Config not found"):
        load_config(tmp_path / "missing.conf", environ={})

    with pytest.raises(ValueError, match="directory"):
        load_config(tmp_path, environ={})


def test_parse_timeout_rejects_non_positive() -> None:
    assert parse_timeout(" 2.5 ") == 2.5
    with pytest.raises(ValueError, match="> 0"):
        parse_timeout("0")
