from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .paths import expand_env, get_provider_settings_path, read_json


def load_information_provider_settings() -> Dict[str, Any]:
    data = read_json(get_provider_settings_path())

    return expand_env(data)


try:  # pragma: no cover - guard against missing files at import time
    INFORMATION_PROVIDER_SETTINGS: Dict[str, Any] = load_information_provider_settings()
except (OSError, ValueError):
    INFORMATION_PROVIDER_SETTINGS = {}


def _provider_settings() -> Dict[str, Any]:
    return INFORMATION_PROVIDER_SETTINGS.get("providers", {}) if INFORMATION_PROVIDER_SETTINGS else {}


def list_provider_configs() -> Dict[str, Dict[str, Any]]:
    return {
        name: dict(cfg) if isinstance(cfg, Mapping) else {}
        for name, cfg in _provider_settings().items()
    }


def get_service_config(service: str) -> Optional[Dict[str, Any]]:
    return _provider_settings().get(service)


def get_provider_endpoints(service: str) -> Mapping[str, Any]:
    cfg = get_service_config(service) or {}

    return cfg.get("endpoints", {}) or {}


def get_trakt_keys() -> Dict[str, Optional[str]]:
    cfg = get_service_config("trakt") or {}

    # Unset ${VAR} placeholders expand to "", which counts as missing.
    return {
        "client_id": cfg.get("client_id") or None,
        "access_token": cfg.get("access_token") or None,
    }


def get_retry_policy() -> Dict[str, Any]:
    retry = INFORMATION_PROVIDER_SETTINGS.get("retry", {}) if INFORMATION_PROVIDER_SETTINGS else {}

    return dict(retry or {})


__all__ = [
    "INFORMATION_PROVIDER_SETTINGS",
    "get_provider_endpoints",
    "get_retry_policy",
    "get_service_config",
    "get_trakt_keys",
    "list_provider_configs",
    "load_information_provider_settings",
]
