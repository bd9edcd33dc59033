"""Environment-driven configuration (``PICKS_*`` variables and an optional ``.env``)."""

from __future__ import annotations

import json
import re
from datetime import timedelta
from typing import Annotated, Any, Literal, Protocol

from pydantic import BeforeValidator, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"]

_UNIT_SECONDS = {
    **dict.fromkeys(("s", "sec", "secs", "second", "seconds"), 1),
    **dict.fromkeys(("m", "min", "mins", "minute", "minutes"), 60),
    **dict.fromkeys(("h", "hr", "hrs", "hour", "hours"), 3600),
    **dict.fromkeys(("d", "day", "days"), 86400),
}
_DURATION_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[a-z]+)?$", re.IGNORECASE)


def parse_duration(value: Any) -> timedelta:
    """Accept ``timedelta``, plain seconds, or strings such as ``"15m"`` and ``"12 hours"``."""

    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value.strip())
        if match is None:
            raise ValueError("Duration must be seconds or a value like '15m', '1h' or '7d'")
        unit = (match.group("unit") or "s").lower()
        if unit not in _UNIT_SECONDS:
            raise ValueError(f"Unsupported duration unit {unit!r}")
        seconds = float(match.group("number")) * _UNIT_SECONDS[unit]
    else:
        raise ValueError("Duration must be a number or a string")
    if seconds <= 0:
        raise ValueError("Duration must be greater than zero")
    return timedelta(seconds=seconds)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _required_text(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError("Value must not be empty")
    return text


Duration = Annotated[timedelta, BeforeValidator(parse_duration)]
OptionalSecret = Annotated[SecretStr | None, BeforeValidator(_blank_to_none)]
OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]
RequiredText = Annotated[str, BeforeValidator(_required_text)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PICKS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    debug: bool = False
    app_name: str = "Picks API"
    app_version: str = "0.1.0"
    api_docs_enabled: bool = Field(default=False, description="Serve Swagger/ReDoc/OpenAPI.")
    docs_url: str = "/docs"
    redoc_url: str = "/redoc"
    openapi_url: str = "/openapi.json"
    logging_level: LogLevel = "INFO"

    # Server
    server_host: RequiredText = "localhost"
    server_port: int = Field(default=8000, ge=1, le=65535)
    server_cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma/whitespace separated list or JSON array.",
    )

    # Database
    database_dsn: str = "sqlite+aiosqlite:///./var/db/picks.sqlite"
    database_echo: bool = False
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_timeout: int = Field(default=30, gt=0, description="Seconds.")

    # Sessions and accounts
    jwt_secret: SecretStr = SecretStr("development-secret")
    jwt_algorithm: str = "HS256"
    jwt_access_ttl: Duration = timedelta(days=7)
    encryption_key: OptionalSecret = Field(
        default=None,
        description="Key sealing creator bank details; the JWT secret is used when unset.",
    )
    session_cookie_name: RequiredText = "picks_session"
    session_csrf_cookie_name: RequiredText = "picks_csrf"
    session_cookie_domain: OptionalText = None
    session_cookie_path: str = "/"
    email_verification_ttl: Duration = timedelta(hours=24)
    password_reset_ttl: Duration = timedelta(hours=1)

    # Payments
    platform_fee_percent: float = Field(
        default=15.0,
        ge=0,
        le=100,
        description="Fee used until an administrator saves a payment configuration.",
    )
    whop_api_url: str = "https://api.whop.com/v5"
    whop_api_key: OptionalSecret = None
    whop_app_id: OptionalText = None
    whop_webhook_secret: OptionalSecret = None
    whop_timeout: Duration = timedelta(seconds=10)
    checkout_base_url: str = "https://whop.com/checkout"

    # Feeds and streams
    trending_cache_ttl: Duration = timedelta(minutes=2)
    trending_cache_max_entries: int = Field(default=1024, ge=1)
    account_status_keepalive: Duration = timedelta(seconds=30)

    @field_validator("server_cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            raw = value.strip()
            if raw.startswith("["):
                try:
                    value = json.loads(raw)
                except json.JSONDecodeError as exc:
                    raise ValueError("server_cors_origins is not valid JSON") from exc
                if not isinstance(value, list):
                    raise ValueError("server_cors_origins JSON must be an array")
            else:
                value = re.split(r"[\s,]+", raw)
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @field_validator("session_cookie_path", mode="before")
    @classmethod
    def _rooted_path(cls, value: Any) -> str:
        path = str(value or "").strip() or "/"
        return path if path.startswith("/") else f"/{path}"

    @property
    def payments_configured(self) -> bool:
        return self.whop_api_key is not None


def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    """Alias of :func:`get_settings` for callers that want to stress the re-read."""

    return get_settings()


class SupportsState(Protocol):
    state: Any


def get_app_settings(container: SupportsState) -> Settings:
    """Settings stored on ``container.state`` (an app), loading them on first use."""

    settings = getattr(container.state, "settings", None)
    if not isinstance(settings, Settings):
        settings = get_settings()
        container.state.settings = settings
    return settings


__all__ = [
    "Duration",
    "Settings",
    "get_app_settings",
    "get_settings",
    "parse_duration",
    "reload_settings",
]
