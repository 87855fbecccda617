from __future__ import annotations

from pathlib import Path

import pytest

from enrollment.core.config import Settings, load_settings

_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PAYMENT_MAX_CHECKS",
    "PAYMENT_CHECK_INTERVAL",
    "REDEEM_RATE_LIMIT",
    "JWT_PUBLIC_KEY_FILE",
    "JWT_ISSUER",
    "JWT_AUDIENCE",
    "PAYMENT_STATUS_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.payment_max_checks == 12
    assert settings.payment_check_interval == 5.0
    assert settings.redeem_rate_limit == 10
    assert settings.jwt_public_key is None
    assert settings.jwt_issuer == "course-platform"
    assert settings.jwt_audience == "enrollment"
    assert settings.payment_status_url is None


def test_normalizes_case_and_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  PROD ")
    monkeypatch.setenv("LOG_LEVEL", "Warning")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "warning"
    assert settings.is_prod is True


def test_rejects_invalid_app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_rejects_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        load_settings()


@pytest.mark.parametrize("raw", ["1", "true", "yes", "on"])
def test_log_json_truthy(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("LOG_JSON", raw)
    assert load_settings().log_json is True


def test_log_json_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "maybe")
    with pytest.raises(ValueError, match="LOG_JSON"):
        load_settings()


def test_payment_polling_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAYMENT_MAX_CHECKS", "3")
    monkeypatch.setenv("PAYMENT_CHECK_INTERVAL", "0.5")
    monkeypatch.setenv("PAYMENT_STATUS_URL", "https://pay.example.com/status")
    settings = load_settings()
    assert settings.payment_max_checks == 3
    assert settings.payment_check_interval == 0.5
    assert settings.payment_status_url == "https://pay.example.com/status"


@pytest.mark.parametrize(
    ("name", "raw"),
    [
        ("PAYMENT_MAX_CHECKS", "0"),
        ("PAYMENT_MAX_CHECKS", "many"),
        ("PAYMENT_CHECK_INTERVAL", "-1"),
        ("PAYMENT_CHECK_INTERVAL", "soon"),
        ("REDEEM_RATE_LIMIT", "0"),
    ],
)
def test_rejects_bad_numbers(
    monkeypatch: pytest.MonkeyPatch, name: str, raw: str
) -> None:
    monkeypatch.setenv(name, raw)
    with pytest.raises(ValueError, match=name):
        load_settings()


def test_reads_public_key_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    key_file = tmp_path / "issuer.pem"
    key_file.write_text("-----BEGIN PUBLIC KEY-----\nabc\n-----END PUBLIC KEY-----\n")
    monkeypatch.setenv("JWT_PUBLIC_KEY_FILE", str(key_file))
    monkeypatch.setenv("JWT_ISSUER", "auth.example.com")
    settings = load_settings()
    assert settings.jwt_public_key is not None
    assert settings.jwt_public_key.startswith("-----BEGIN PUBLIC KEY-----")
    assert settings.jwt_issuer == "auth.example.com"


def test_missing_public_key_file_is_an_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("JWT_PUBLIC_KEY_FILE", str(tmp_path / "absent.pem"))
    with pytest.raises(ValueError, match="JWT_PUBLIC_KEY_FILE"):
        load_settings()


def test_settings_is_frozen() -> None:
    s = Settings(  # type: ignore[arg-type]
        app_env="test",
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )
    assert s.is_test is True
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
