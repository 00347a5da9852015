from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode, urljoin

from upnext_tracker.backend.common.errors import ConfigError
from upnext_tracker.config.settings import list_provider_configs



# ----------------------------
# Data views (read-only access)
# ----------------------------

@dataclass(frozen=True)
class ServiceView:
    name: str
    base_url: str
    default_headers: Dict[str, str]
    rate_limits: Dict[str, Any]
    endpoints: Dict[str, str]


# ----------------------------
# URL Manager
# ----------------------------

class URLManager:
    """
    Builds service URLs and injects per-service default headers, without doing
    any network I/O. Pure config-driven.

    - Trakt: relies on default headers containing `trakt-api-key` (env-expanded)
    """

    def __init__(self, service_overrides: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._services_raw: Dict[str, Dict[str, Any]] = {}
        for svc, cfg in list_provider_configs().items():
            self._services_raw[svc] = dict(cfg)
        for svc, override in (service_overrides or {}).items():
            merged = dict(self._services_raw.get(svc) or {})
            merged.update(override or {})
            self._services_raw[svc] = merged

        # cached views
        self._views: Dict[str, ServiceView] = {}
        for name in self._services_raw.keys():
            self._views[name] = self._build_view(name)

    # -------- Public API --------

    def build(self, service: str, path: str, params: Optional[Mapping[str, Any]] = None
              ) -> Tuple[str, Dict[str, str]]:
        """
        Build a full URL for a relative path for a given service.
        Returns (url, headers).
        """
        view = self._require_view(service)
        headers = dict(view.default_headers or {})

        base = _ensure_trailing_slash(view.base_url)
        url = urljoin(base, path.lstrip("/"))

        if params:
            url = f"{url}?{urlencode(dict(params), doseq=True)}"

        return url, headers

    def endpoint_path(self, service: str, endpoint_key: str, **fmt_kwargs: Any) -> str:
        """
        Resolve an endpoint template by key and fill its placeholders.
        Example:
            endpoint_path("trakt", "progress_watched", show_id=1390)
        """
        path_tmpl = self.get_endpoint(service, endpoint_key)
        if path_tmpl is None:
            raise ConfigError(f"Unknown endpoint '{endpoint_key}' for service '{service}'")

        return path_tmpl.format(**fmt_kwargs)

    def get_endpoint(self, service: str, key: str) -> Optional[str]:
        view = self._require_view(service)

        return view.endpoints.get(key)

    def endpoints(self, service: str) -> Dict[str, str]:
        return dict(self._require_view(service).endpoints)

    def rate_limits(self, service: str) -> Dict[str, Any]:
        view = self._require_view(service)

        return dict(view.rate_limits or {})

    def should_respect_retry_after(self, service: str) -> bool:
        rl = self.rate_limits(service)
        val = rl.get("respect_retry_after")

        return True if val is None else bool(val)

    # -------- Internals --------

    def _require_view(self, service: str) -> ServiceView:
        if service not in self._views:
            raise ConfigError(f"Unknown service '{service}'. Known: {list(self._views.keys())}")

        return self._views[service]

    def _build_view(self, service: str) -> ServiceView:
        raw = dict(self._services_raw.get(service) or {})
        # provider settings are env-expanded at load time
        default_headers = {str(k): str(v) for k, v in (raw.get("default_headers") or {}).items()}

        return ServiceView(
            name=service,
            base_url=raw.get("base_url") or "",
            default_headers=default_headers,
            rate_limits=dict(raw.get("rate_limits") or {}),
            endpoints=dict(raw.get("endpoints") or {}),
        )


# ----------------------------
# Helpers
# ----------------------------

def _ensure_trailing_slash(u: str) -> str:
    return u if u.endswith("/") else (u + "/")
