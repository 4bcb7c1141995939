"""Tests for environment-driven application settings."""

import pytest
from pydantic import ValidationError

from adminws.settings import Settings


def test_short_jwt_secret_is_rejected(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "SECRET")

    with pytest.raises(ValidationError) as exc_info:
        Settings()

    assert exc_info.value.errors()[0]["loc"] == ("JWT_SECRET",)


def test_missing_jwt_secret_is_rejected(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)

    with pytest.raises(ValidationError):
        Settings()


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "x" * 32)
    monkeypatch.setenv("WS_SEND_QUEUE_SIZE", "8")

    settings = Settings()

    assert settings.JWT_SECRET == "x" * 32
    assert settings.WS_SEND_QUEUE_SIZE == 8
    assert settings.JWT_ALGORITHM == "HS256"
