from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from upnext_tracker.backend.common.logging import get_logger

from .paths import get_user_settings_path

log = get_logger(__name__)

_SETTINGS_LOCK = threading.Lock()
_SETTINGS_SINGLETON: Optional["Settings"] = None


@dataclass
class Settings:
    app_name: str
    env: str
    log_level: str
    http_timeout: int
    up_next_window_days: int
    upcoming_window_days: int
    calendar_window_days: int
    history_page_size: int
    user_settings_path: os.PathLike[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "app_name": self.app_name,
            "env": self.env,
            "log_level": self.log_level,
            "http_timeout": self.http_timeout,
            "up_next_window_days": self.up_next_window_days,
            "upcoming_window_days": self.upcoming_window_days,
            "calendar_window_days": self.calendar_window_days,
            "history_page_size": self.history_page_size,
            "user_settings_path": str(self.user_settings_path),
        }


def load_user_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    user_path = Path(path or get_user_settings_path())
    if not user_path.exists():
        return {}
    try:
        with user_path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        log.warning("user_settings_unreadable", extra={"path": str(user_path), "error": str(exc)})
        return {}

    return data if isinstance(data, dict) else {}


def _positive_int(env_key: str, user_cfg: Mapping[str, Any], cfg_key: str, default: int) -> int:
    raw = os.getenv(env_key) or user_cfg.get(cfg_key, default)
    try:
        return max(1, int(raw))
    except (TypeError, ValueError):
        log.warning("settings_value_ignored", extra={"key": cfg_key, "value": raw})
        return default


def _build_settings() -> Settings:
    user_path = get_user_settings_path()
    user_cfg = load_user_settings(user_path)
    app_name = os.getenv("TRACKER_APP_NAME", user_cfg.get("app_name", "upnext-tracker"))
    env = os.getenv("TRACKER_ENV", user_cfg.get("env", "development"))
    log_level = os.getenv("TRACKER_LOG_LEVEL", user_cfg.get("log_level", "INFO")).upper()

    return Settings(
        app_name=app_name,
        env=env,
        log_level=log_level,
        http_timeout=_positive_int("TRACKER_HTTP_TIMEOUT", user_cfg, "http_timeout", 20),
        up_next_window_days=_positive_int("TRACKER_UP_NEXT_WINDOW_DAYS", user_cfg, "up_next_window_days", 365),
        upcoming_window_days=_positive_int("TRACKER_UPCOMING_WINDOW_DAYS", user_cfg, "upcoming_window_days", 30),
        calendar_window_days=_positive_int("TRACKER_CALENDAR_WINDOW_DAYS", user_cfg, "calendar_window_days", 33),
        history_page_size=_positive_int("TRACKER_HISTORY_PAGE_SIZE", user_cfg, "history_page_size", 50),
        user_settings_path=user_path,
    )


def get_settings(*, reload: bool = False) -> Settings:
    global _SETTINGS_SINGLETON
    with _SETTINGS_LOCK:
        if _SETTINGS_SINGLETON is None or reload:
            _SETTINGS_SINGLETON = _build_settings()

        return _SETTINGS_SINGLETON


__all__ = [
    "Settings",
    "get_settings",
    "load_user_settings",
]
