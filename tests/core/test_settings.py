from __future__ import annotations

from collections.abc import Iterator
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from picks_api.settings import Settings, get_settings

_ENV_VARS = (
    "PICKS_APP_NAME",
    "PICKS_DATABASE_DSN",
    "PICKS_JWT_ACCESS_TTL",
    "PICKS_SERVER_CORS_ORIGINS",
    "PICKS_TRENDING_CACHE_TTL",
    "PICKS_WHOP_API_KEY",
    "PICKS_WHOP_WEBHOOK_SECRET",
    "PICKS_PLATFORM_FEE_PERCENT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Run each test from an empty directory with no PICKS_* overrides."""

    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


def test_settings_defaults() -> None:
    """Defaults should mirror the Settings model without .env overrides."""

    settings = get_settings()

    assert settings.app_name == "Picks API"
    assert settings.api_docs_enabled is False
    assert settings.database_dsn.endswith("var/db/picks.sqlite")
    assert settings.jwt_access_ttl == timedelta(days=7)
    assert settings.platform_fee_percent == 15.0
    assert settings.whop_api_key is None
    assert settings.server_cors_origins == []


def test_settings_reads_from_dotenv(tmp_path: Path) -> None:
    """Values stored in a local .env file should be honoured."""

    (tmp_path / ".env").write_text(
        "PICKS_APP_NAME=Sharp Picks\nPICKS_PLATFORM_FEE_PERCENT=12.5\n",
        encoding="utf-8",
    )

    settings = get_settings()

    assert settings.app_name == "Sharp Picks"
    assert settings.platform_fee_percent == 12.5


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("90", timedelta(seconds=90)),
        ("15m", timedelta(minutes=15)),
        ("12 hours", timedelta(hours=12)),
        ("7d", timedelta(days=7)),
    ],
)
def test_durations_accept_suffixed_strings(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: timedelta
) -> None:
    monkeypatch.setenv("PICKS_JWT_ACCESS_TTL", raw)

    assert get_settings().jwt_access_ttl == expected


@pytest.mark.parametrize("raw", ["0", "-5m", "3 fortnights", ""])
def test_invalid_durations_are_rejected(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("PICKS_TRENDING_CACHE_TTL", raw)

    with pytest.raises(ValidationError):
        get_settings()


def test_cors_origins_accept_lists_and_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PICKS_SERVER_CORS_ORIGINS", "http://a.test, http://b.test")
    assert get_settings().server_cors_origins == ["http://a.test", "http://b.test"]

    monkeypatch.setenv("PICKS_SERVER_CORS_ORIGINS", '["http://c.test"]')
    assert get_settings().server_cors_origins == ["http://c.test"]


def test_blank_provider_secrets_become_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PICKS_WHOP_API_KEY", "   ")

    assert Settings().whop_api_key is None
