from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    payment_status_url: str | None = None
    payment_max_checks: int = 12
    payment_check_interval: float = 5.0
    redeem_rate_limit: int = 10
    jwt_public_key: str | None = None
    jwt_issuer: str = "course-platform"
    jwt_audience: str = "enrollment"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_bool(name: str, raw: str) -> bool:
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("", "0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be true|false (got {raw!r})")


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1 (got {value})")
    return value


def _read_public_key(path: str) -> str | None:
    if not path:
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            return fh.read()
    except OSError as e:
        raise ValueError(f"JWT_PUBLIC_KEY_FILE could not be read ({e})") from None


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

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

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false").lower())

    payment_max_checks = _parse_positive_int(
        "PAYMENT_MAX_CHECKS", _getenv("PAYMENT_MAX_CHECKS", "12")
    )

    interval_raw = _getenv("PAYMENT_CHECK_INTERVAL", "5")
    try:
        payment_check_interval = float(interval_raw)
    except ValueError:
        raise ValueError(
            f"PAYMENT_CHECK_INTERVAL must be a number (got {interval_raw!r})"
        ) from None
    if payment_check_interval <= 0:
        raise ValueError(
            f"PAYMENT_CHECK_INTERVAL must be > 0 (got {payment_check_interval})"
        )

    redeem_rate_limit = _parse_positive_int(
        "REDEEM_RATE_LIMIT", _getenv("REDEEM_RATE_LIMIT", "10")
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        payment_status_url=_getenv("PAYMENT_STATUS_URL", "") or None,
        payment_max_checks=payment_max_checks,
        payment_check_interval=payment_check_interval,
        redeem_rate_limit=redeem_rate_limit,
        jwt_public_key=_read_public_key(_getenv("JWT_PUBLIC_KEY_FILE", "")),
        jwt_issuer=_getenv("JWT_ISSUER", "course-platform"),
        jwt_audience=_getenv("JWT_AUDIENCE", "enrollment"),
    )


SETTINGS = load_settings()
