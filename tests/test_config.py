from zoneinfo import ZoneInfo

import pytest

from config import get_settings


@pytest.fixture
def fresh_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("BILLS_DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


def test_timezone_is_loaded_once(fresh_settings):
    fresh_settings.setenv("BILLS_TIMEZONE", "Europe/Berlin")
    settings = get_settings()
    assert settings.timezone == "Europe/Berlin"
    assert settings.tzinfo == ZoneInfo("Europe/Berlin")


def test_unknown_timezone_fails_at_startup(fresh_settings):
    fresh_settings.setenv("BILLS_TIMEZONE", "Mars/Olympus_Mons")
    with pytest.raises(ValueError, match="BILLS_TIMEZONE"):
        get_settings()


def test_malformed_timezone_fails_at_startup(fresh_settings):
    fresh_settings.setenv("BILLS_TIMEZONE", "../etc/passwd")
    with pytest.raises(ValueError, match="BILLS_TIMEZONE"):
        get_settings()
