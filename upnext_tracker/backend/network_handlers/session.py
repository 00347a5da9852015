from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Dict, Mapping, Optional, Type
import random
import socket
import time

import requests
from requests.adapters import HTTPAdapter

from upnext_tracker.backend.common.logging import get_logger
from upnext_tracker.backend.network_handlers.url_manager import URLManager
from upnext_tracker.config.settings import get_retry_policy

log = get_logger(__name__)


# ---------------- Exceptions ----------------

class NetError(Exception): ...
class RequestTimeout(NetError): ...
class DNSFailure(NetError): ...
class ConnectionFailed(NetError): ...
class BadRequest(NetError): ...
class Unauthorized(NetError): ...
class Forbidden(NetError): ...
class NotFound(NetError): ...
class RateLimited(NetError): ...
class Upstream5xx(NetError): ...
class Client4xx(NetError): ...


_STATUS_ERRORS: Dict[int, Type[NetError]] = {
    400: BadRequest,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    429: RateLimited,
}

_MAX_RETRY_AFTER_S = 30


def _map_http_error(status: int) -> NetError:
    if 500 <= status < 600:
        return Upstream5xx(f"{status} Upstream error")
    cls = _STATUS_ERRORS.get(status, Client4xx)

    return cls(f"{status} HTTP error")


def _is_retryable(status: int) -> bool:
    return status in (408, 429) or 500 <= status < 600


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_backoff_ms: int = 300
    max_backoff_ms: int = 6000
    jitter_ms: int = 250

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "RetryPolicy":
        defaults = cls()
        return cls(
            max_attempts=max(1, int(raw.get("max_attempts", defaults.max_attempts))),
            base_backoff_ms=int(raw.get("base_backoff_ms", defaults.base_backoff_ms)),
            max_backoff_ms=int(raw.get("max_backoff_ms", defaults.max_backoff_ms)),
            jitter_ms=int(raw.get("jitter_ms", defaults.jitter_ms)),
        )

    def delay_s(self, attempt: int) -> float:
        """Exponential backoff plus jitter before ``attempt`` (2 and up)."""
        backoff = min(self.max_backoff_ms, int((2 ** (attempt - 2)) * self.base_backoff_ms))
        jitter = random.randint(0, max(0, self.jitter_ms))
        return (backoff + jitter) / 1000.0


# ---------------- Main Session ----------------

class HttpSession:
    """
    Blocking HTTP client shared by every Trakt call:
      - URL building + per-service headers via URLManager
      - Exponential backoff + jitter on 408/429/5xx and transport failures
      - Retry-After honoured on 429 when the service allows it
      - Typed error mapping (see ``NetError`` subclasses)

    The underlying ``requests.Session`` is shared by the worker threads that
    run concurrent lookups; the pool is sized for that.
    """

    def __init__(
        self,
        timeout: int = 20,
        *,
        urlm: Optional[URLManager] = None,
        retry_policy: Optional[Mapping[str, Any]] = None,
    ):
        self.urlm = urlm or URLManager()
        self.timeout = timeout
        self.retry = RetryPolicy.from_mapping(retry_policy if retry_policy is not None else get_retry_policy())

        self._session = requests.Session()
        adapter = HTTPAdapter(pool_connections=8, pool_maxsize=32)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    # -------- public API --------

    def get(
        self,
        service: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:
        return self._request("GET", service, path, params=params, headers=headers, allowed_statuses=allowed_statuses)

    def post(
        self,
        service: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:
        return self._request(
            "POST",
            service,
            path,
            params=params,
            json_body=json_body,
            headers=headers,
            allowed_statuses=allowed_statuses,
        )

    def close(self) -> None:
        self._session.close()

    # -------- internals --------

    def _request(
        self,
        method: str,
        service: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]],
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allowed_statuses: Optional[Collection[int]] = None,
    ) -> requests.Response:
        url, base_headers = self.urlm.build(service, path, params)
        hdrs = {**(base_headers or {}), **(headers or {})}
        allowed = set(allowed_statuses or ())

        waited = False
        for attempt in range(1, self.retry.max_attempts + 1):
            last = attempt == self.retry.max_attempts
            if attempt > 1 and not waited:
                time.sleep(self.retry.delay_s(attempt))
            waited = False

            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    headers=hdrs,
                    json=json_body,
                    timeout=self.timeout,
                )
            except requests.exceptions.Timeout as e:
                if last:
                    raise RequestTimeout(str(e)) from e
                self._log_retry(service, path, attempt, reason="timeout")
                continue
            except requests.exceptions.ConnectionError as e:
                if last:
                    if isinstance(e.__cause__, socket.gaierror):
                        raise DNSFailure(str(e)) from e
                    raise ConnectionFailed(str(e)) from e
                self._log_retry(service, path, attempt, reason="connection")
                continue
            except requests.exceptions.RequestException as e:
                if last:
                    raise NetError(str(e)) from e
                self._log_retry(service, path, attempt, reason=type(e).__name__)
                continue

            status = resp.status_code
            if status < 400 or status in allowed:
                return resp
            if last or not _is_retryable(status):
                raise _map_http_error(status)

            if status == 429:
                waited = self._honour_retry_after(service, resp)
            self._log_retry(service, path, attempt, reason=str(status))

        # max_attempts >= 1 means the loop always returns or raises
        raise NetError(f"{method} {service}:{path} made no attempt")

    def _honour_retry_after(self, service: str, resp: requests.Response) -> bool:
        """Sleep for the server-requested delay; ``True`` when it replaced the backoff."""
        if not self.urlm.should_respect_retry_after(service):
            return False
        raw = resp.headers.get("Retry-After")
        if not raw:
            return False
        try:
            wait = min(int(float(raw)), _MAX_RETRY_AFTER_S)
        except (TypeError, ValueError):
            return False  # HTTP-date form is not used by Trakt
        time.sleep(wait)
        return True

    def _log_retry(self, service: str, path: str, attempt: int, *, reason: str) -> None:
        log.warning(
            "http_retry",
            extra={"service": service, "path": path, "attempt": attempt, "reason": reason},
        )
