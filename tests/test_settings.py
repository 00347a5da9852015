from __future__ import annotations

import json

import pytest

from upnext_tracker.config import settings
from upnext_tracker.config.settings.paths import expand_env


@pytest.fixture
def fresh_settings(monkeypatch, tmp_path):
    monkeypatch.setitem(settings.PATHS, "user_settings", str(tmp_path / "user_settings.json"))
    yield tmp_path
    monkeypatch.undo()
    settings.get_settings(reload=True)


def test_defaults_without_user_file(fresh_settings, monkeypatch):
    for key in ("TRACKER_UP_NEXT_WINDOW_DAYS", "TRACKER_UPCOMING_WINDOW_DAYS", "TRACKER_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)

    cfg = settings.get_settings(reload=True)

    assert cfg.up_next_window_days == 365
    assert cfg.upcoming_window_days == 30
    assert cfg.history_page_size == 50
    assert cfg.log_level == "INFO"


def test_user_file_then_env_override(fresh_settings, monkeypatch):
    (fresh_settings / "user_settings.json").write_text(
        json.dumps({"up_next_window_days": 120, "history_page_size": 25, "log_level": "debug"}),
        encoding="utf-8",
    )
    monkeypatch.setenv("TRACKER_UP_NEXT_WINDOW_DAYS", "90")

    cfg = settings.get_settings(reload=True)

    assert cfg.up_next_window_days == 90
    assert cfg.history_page_size == 25
    assert cfg.log_level == "DEBUG"


def test_invalid_values_fall_back(fresh_settings, monkeypatch):
    monkeypatch.setenv("TRACKER_HTTP_TIMEOUT", "soon")

    assert settings.get_settings(reload=True).http_timeout == 20


def test_unreadable_user_file_is_ignored(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    assert settings.load_user_settings(path) == {}
    assert settings.load_user_settings(tmp_path / "missing.json") == {}


def test_expand_env_fills_placeholders(monkeypatch):
    monkeypatch.setenv("TRAKT_CLIENT_ID", "abc")
    monkeypatch.delenv("UNSET_FOR_TEST", raising=False)

    expanded = expand_env({"headers": ["${TRAKT_CLIENT_ID}", "x-${UNSET_FOR_TEST}"], "n": 3})

    assert expanded == {"headers": ["abc", "x-"], "n": 3}


def test_trakt_endpoints_are_configured():
    endpoints = settings.get_provider_endpoints("trakt")

    assert endpoints["calendar_shows"] == "calendars/my/shows/{start_date}/{days}"
    assert endpoints["progress_watched"] == "shows/{show_id}/progress/watched"
