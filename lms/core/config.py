from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so casting and defaults live in one place
    return os.environ.get(name, default).strip()


def _getenv_optional(name: str) -> str | None:
    return _getenv(name, "") or None


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    return raw in _TRUTHY


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    # Payment gateway (Razorpay-style orders + HMAC signatures)
    payment_key_id: str | None = None
    payment_key_secret: str | None = None
    payment_webhook_secret: str | None = None
    payment_currency: str = "INR"
    payment_test_mode: bool = True
    # Video meetings (server-to-server OAuth)
    meeting_account_id: str | None = None
    meeting_client_id: str | None = None
    meeting_client_secret: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def payments_enabled(self) -> bool:
        return bool(self.payment_key_id and self.payment_key_secret)

    @property
    def meetings_enabled(self) -> bool:
        return bool(
            self.meeting_account_id
            and self.meeting_client_id
            and self.meeting_client_secret
        )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    currency_raw = _getenv("PAYMENT_CURRENCY", "INR").upper()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    if len(currency_raw) != 3 or not currency_raw.isalpha():
        raise ValueError(
            f"PAYMENT_CURRENCY must be a 3-letter ISO code (got {currency_raw!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv_bool("LOG_JSON", False),
        port=port,
        database_url=_getenv_optional("DATABASE_URL"),
        payment_key_id=_getenv_optional("PAYMENT_KEY_ID"),
        payment_key_secret=_getenv_optional("PAYMENT_KEY_SECRET"),
        payment_webhook_secret=_getenv_optional("PAYMENT_WEBHOOK_SECRET"),
        payment_currency=currency_raw,
        payment_test_mode=_getenv_bool("PAYMENT_TEST_MODE", True),
        meeting_account_id=_getenv_optional("MEETING_ACCOUNT_ID"),
        meeting_client_id=_getenv_optional("MEETING_CLIENT_ID"),
        meeting_client_secret=_getenv_optional("MEETING_CLIENT_SECRET"),
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
