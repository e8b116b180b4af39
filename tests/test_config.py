"""Tests for core/config.py."""

import pytest
from pydantic import ValidationError

from device_auth.core.config import Settings, get_settings, reload_settings


def test_short_refresh_secret_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(REFRESH_TOKEN_SECRET="too-short", DEBUG=False)


def test_short_refresh_secret_allowed_in_debug() -> None:
    settings = Settings(REFRESH_TOKEN_SECRET="too-short", DEBUG=True)
    assert settings.REFRESH_TOKEN_SECRET == "too-short"


def test_defaults() -> None:
    settings = Settings(REFRESH_TOKEN_SECRET="r" * 40)
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 24 * 60
    assert settings.REFRESH_TOKEN_EXPIRE_DAYS == 7
    assert settings.JWT_ALGORITHM == "HS256"
    assert settings.REFRESH_COOKIE_NAME == "refreshToken"
    assert settings.REFRESH_TOKEN_PREVIOUS_SECRETS == []


def test_sync_url_swaps_driver() -> None:
    settings = Settings(
        REFRESH_TOKEN_SECRET="r" * 40,
        DATABASE_URL="postgresql+asyncpg://u:p@db:5432/auth",
    )
    assert settings.SYNC_DATABASE_URL == "postgresql+psycopg2://u:p@db:5432/auth"


def test_reload_settings_picks_up_rotated_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    old_secret = "old-refresh-secret-0123456789-abcdefghijk"
    new_secret = "new-refresh-secret-0123456789-abcdefghijk"
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", old_secret)
    monkeypatch.delenv("REFRESH_TOKEN_PREVIOUS_SECRETS", raising=False)
    assert reload_settings().REFRESH_TOKEN_SECRET == old_secret

    monkeypatch.setenv("REFRESH_TOKEN_SECRET", new_secret)
    monkeypatch.setenv("REFRESH_TOKEN_PREVIOUS_SECRETS", f'["{old_secret}"]')
    # still cached until reloaded
    assert get_settings().REFRESH_TOKEN_SECRET == old_secret

    reloaded = reload_settings()
    assert reloaded.REFRESH_TOKEN_SECRET == new_secret
    assert reloaded.REFRESH_TOKEN_PREVIOUS_SECRETS == [old_secret]
    assert get_settings() is reloaded

    monkeypatch.undo()
    reload_settings()
