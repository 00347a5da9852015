"""Trakt.tv integration helpers.

:class:`TraktManager` is the calendar, progress and history source used by
:class:`~upnext_tracker.backend.information_handlers.up_next.UpNextService`.
It also covers the account, search and removal calls the CLI exposes.
Its HTTP calls are blocking; the ``get_*`` coroutines push them onto worker
threads so that many progress lookups can be in flight at once.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from upnext_tracker.backend.common.errors import (
    AuthError,
    ConfigError,
    DecodeError,
    NetworkError,
    NotFoundError,
)
from upnext_tracker.backend.common.logging import get_logger
from upnext_tracker.backend.information_handlers.models import (
    CalendarEntry,
    HistoryEntry,
    SearchResult,
    ShowProgress,
    TraktPayloadFacade,
    TraktUser,
)
from upnext_tracker.backend.network_handlers.session import (
    Forbidden,
    HttpSession,
    NetError,
    NotFound,
    Unauthorized,
)
from upnext_tracker.backend.network_handlers.url_manager import URLManager
from upnext_tracker.config import settings

_SERVICE_NAME = "trakt"


class TraktManager:
    """Implements the authenticated Trakt reads the tracker relies on."""

    def __init__(
        self,
        *,
        session: Optional[HttpSession] = None,
        facade: Optional[TraktPayloadFacade] = None,
        client_id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> None:
        self._log = get_logger(__name__)

        keys = settings.get_trakt_keys()
        self._client_id = client_id or keys.get("client_id")
        self._access_token = access_token or keys.get("access_token")
        if not self._client_id or not self._access_token:
            raise ConfigError("TRAKT_CLIENT_ID and TRAKT_ACCESS_TOKEN must be configured")

        self._session = session or HttpSession(timeout=settings.get_settings().http_timeout)
        self._urlm: URLManager = getattr(self._session, "urlm", None) or URLManager()
        self._facade = facade or TraktPayloadFacade()

    # ------------------------------------------------------------------
    # Blocking reads
    # ------------------------------------------------------------------
    def calendar_shows(self, start_date: date, days: int) -> Sequence[CalendarEntry]:
        path = self._endpoint("calendar_shows", start_date=start_date.isoformat(), days=int(days))
        payload = self._authorized_get(path)

        return self._facade.calendar_entries(payload)

    def show_progress(self, show_id: int) -> ShowProgress:
        path = self._endpoint("progress_watched", show_id=show_id)
        payload = self._authorized_get(path)

        return self._facade.show_progress(payload)

    def watch_history(self, page: int = 1, limit: int = 50) -> Sequence[HistoryEntry]:
        params = {"page": max(1, int(page)), "limit": max(1, int(limit))}
        payload = self._authorized_get(self._endpoint("history_episodes"), params=params)

        return self._facade.history_entries(payload)

    def search_shows(self, query: str, limit: int = 15) -> Sequence[SearchResult]:
        query = query.strip()
        if not query:
            return []

        params = {"query": query, "limit": max(1, int(limit))}
        payload = self._authorized_get(self._endpoint("search_show"), params=params)

        return self._facade.search_results(payload)

    def user_settings(self) -> TraktUser:
        payload = self._authorized_get(self._endpoint("user_settings"))

        return self._facade.user_settings(payload)

    def remove_from_history(self, history_id: int) -> Dict[str, Any]:
        body = {"ids": [int(history_id)]}
        payload = self._authorized_post(self._endpoint("history_remove"), json_body=body)
        if not isinstance(payload, Mapping):
            raise DecodeError("Trakt returned an unexpected history removal payload")

        deleted = payload.get("deleted") or {}
        self._log.info(
            "history_entry_removed",
            extra={"history_id": history_id, "episodes": deleted.get("episodes")},
        )
        return dict(payload)

    # ------------------------------------------------------------------
    # Async capabilities
    # ------------------------------------------------------------------
    async def get_window(self, start_date: date, days: int) -> Sequence[CalendarEntry]:
        return await asyncio.to_thread(self.calendar_shows, start_date, days)

    async def get_progress(self, show_id: int) -> ShowProgress:
        return await asyncio.to_thread(self.show_progress, show_id)

    async def get_history(self, page: int, limit: int) -> Sequence[HistoryEntry]:
        return await asyncio.to_thread(self.watch_history, page, limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _endpoint(self, key: str, **fmt_kwargs: Any) -> str:
        return self._urlm.endpoint_path(_SERVICE_NAME, key, **fmt_kwargs)

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "trakt-api-key": str(self._client_id),
            "trakt-api-version": "2",
        }

    def _authorized_get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            response = self._session.get(
                _SERVICE_NAME,
                path,
                params=dict(params or {}),
                headers=self._auth_headers(),
            )
        except NetError as exc:
            raise self._translate_error(exc, path) from exc

        return self._parse_json(response)

    def _authorized_post(self, path: str, *, json_body: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            response = self._session.post(
                _SERVICE_NAME,
                path,
                json_body=dict(json_body or {}),
                headers=self._auth_headers(),
            )
        except NetError as exc:
            raise self._translate_error(exc, path) from exc

        return self._parse_json(response)

    def _translate_error(self, exc: NetError, path: str) -> Exception:
        if isinstance(exc, (Unauthorized, Forbidden)):
            self._log.warning("trakt_auth_rejected", extra={"path": path, "error": str(exc)})
            return AuthError(f"Trakt rejected the access token ({exc})")
        if isinstance(exc, NotFound):
            return NotFoundError(f"Trakt has no resource at '{path}'")

        return NetworkError(f"Trakt request to '{path}' failed: {exc}")

    def _parse_json(self, response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError("Trakt returned invalid JSON") from exc


__all__ = [
    "TraktManager",
]
