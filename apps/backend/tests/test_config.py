"""Tests for configuration helpers."""

from fintrack.config import Settings, parse_comma_list, parse_key_value_pairs


def test_parse_comma_list_defaults() -> None:
    assert parse_comma_list(None, ["a"]) == ["a"]


def test_parse_comma_list_accepts_list() -> None:
    assert parse_comma_list(["x", "y"], ["a"]) == ["x", "y"]


def test_parse_comma_list_splits_string() -> None:
    assert parse_comma_list("x, y, ,z", ["a"]) == ["x", "y", "z"]


def test_parse_key_value_pairs() -> None:
    assert parse_key_value_pairs(None) == {}
    assert parse_key_value_pairs("env=prod, team = data,broken,=x") == {"env": "prod", "team": "data"}


def test_oracle_disabled_without_api_key(monkeypatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    assert Settings(_env_file=None).oracle_enabled is False


def test_oracle_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setenv("ORACLE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("CURRENCY_PRECISION", "3")

    settings = Settings(_env_file=None)

    assert settings.oracle_enabled is True
    assert settings.oracle_timeout_seconds == 2.5
    assert settings.currency_precision == 3


def test_cors_origins_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, https://admin.example.com")

    settings = Settings(_env_file=None)

    assert settings.cors_origins == ["https://app.example.com", "https://admin.example.com"]


def test_cors_origins_default(monkeypatch) -> None:
    monkeypatch.delenv("CORS_ORIGINS", raising=False)

    assert "http://localhost:3000" in Settings(_env_file=None).cors_origins
