"""Resolve the next aired-but-unwatched episode for every active show.

The flow mirrors what the calendar screens need:

* fetch a trailing calendar window and treat every show found in it as active,
* look up watched progress for each active show concurrently,
* keep the shows whose next episode has already aired and merge the results
  into consecutive episode groups.

Collaborators are passed in as capability objects (see the ``*Source``
protocols below) so the resolution logic never touches HTTP directly.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field

from upnext_tracker.backend.common.errors import CalendarUnavailable, HistoryUnavailable
from upnext_tracker.backend.common.logging import get_logger
from upnext_tracker.backend.common.tasks import TaskSpec, join_all
from upnext_tracker.backend.information_handlers.grouping import (
    to_consecutive_groups,
    to_history_groups,
    to_individual_groups,
)
from upnext_tracker.backend.information_handlers.models import (
    CalendarEntry,
    EpisodeGroup,
    HistoryEntry,
    Show,
    ShowProgress,
    assume_utc,
)

log = get_logger(__name__)

ProgressLookup = Callable[[int], Awaitable[ShowProgress]]


class CalendarSource(Protocol):
    async def get_window(self, start_date: date, days: int) -> Sequence[CalendarEntry]: ...


class ProgressSource(Protocol):
    async def get_progress(self, show_id: int) -> ShowProgress: ...


class HistorySource(Protocol):
    async def get_history(self, page: int, limit: int) -> Sequence[HistoryEntry]: ...


class Overview(BaseModel):
    """Both calendar sections, resolved together."""

    model_config = ConfigDict(frozen=True)

    up_next: Sequence[EpisodeGroup] = Field(default_factory=tuple)
    upcoming: Sequence[EpisodeGroup] = Field(default_factory=tuple)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def dedupe_shows_preserving_first_seen(entries: Iterable[CalendarEntry]) -> List[Show]:
    seen: set[int] = set()
    shows: List[Show] = []
    for entry in entries:
        if entry.show.id in seen:
            continue
        seen.add(entry.show.id)
        shows.append(entry.show)

    return shows


async def _next_for_show(
    show: Show,
    progress_lookup: ProgressLookup,
    now: datetime,
) -> Optional[CalendarEntry]:
    progress = await progress_lookup(show.id)

    next_episode = progress.next_episode
    if next_episode is None or next_episode.first_aired is None:
        return None
    if next_episode.first_aired >= now:
        return None

    entry = CalendarEntry(
        first_aired=next_episode.first_aired,
        episode=next_episode.to_episode(),
        show=show,
    )
    return entry.with_unwatched_count(progress.unwatched_count)


async def resolve_up_next_entries(
    shows: Iterable[Show],
    progress_lookup: ProgressLookup,
    *,
    now: Optional[datetime] = None,
) -> List[CalendarEntry]:
    """Look up each show's next episode concurrently.

    A show contributes at most one entry. Lookups that fail are dropped
    without affecting the others. Specials are excluded and the result is
    ordered by air time.
    """

    now = assume_utc(now or _utcnow())

    distinct: dict[int, Show] = {}
    for show in shows:
        distinct.setdefault(show.id, show)

    specs = [
        TaskSpec(
            fn=_next_for_show,
            args=(show, progress_lookup, now),
            name=f"progress:{show.id}",
        )
        for show in distinct.values()
    ]
    results = await join_all(specs, context="up_next")

    entries = [entry for entry in results if entry is not None and entry.episode.season > 0]
    entries.sort(key=lambda e: e.first_aired)

    log.info(
        "up_next_resolved",
        extra={"shows": len(specs), "entries": len(entries)},
    )

    return entries


class UpNextService:
    """Builds the "up next", "upcoming" and history sections from Trakt data."""

    def __init__(
        self,
        *,
        calendar: CalendarSource,
        progress: ProgressSource,
        history: Optional[HistorySource] = None,
        up_next_window_days: int = 365,
        upcoming_window_days: int = 30,
        history_page_size: int = 50,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._calendar = calendar
        self._progress = progress
        self._history = history
        self._up_next_window_days = up_next_window_days
        self._upcoming_window_days = upcoming_window_days
        self._history_page_size = history_page_size
        self._clock = clock

    def _now(self, now: Optional[datetime]) -> datetime:
        return assume_utc(now or self._clock())

    # ------------------------------------------------------------------
    # Pure compositions over already-fetched entries
    # ------------------------------------------------------------------
    async def resolve_up_next(
        self,
        window_entries: Sequence[CalendarEntry],
        *,
        now: Optional[datetime] = None,
    ) -> List[EpisodeGroup]:
        shows = dedupe_shows_preserving_first_seen(window_entries)
        entries = await resolve_up_next_entries(
            shows,
            self._progress.get_progress,
            now=self._now(now),
        )

        return to_consecutive_groups(entries)

    def resolve_upcoming(
        self,
        window_entries: Sequence[CalendarEntry],
        now: Optional[datetime] = None,
    ) -> List[EpisodeGroup]:
        now = self._now(now)

        return to_individual_groups(e for e in window_entries if e.first_aired >= now)

    def resolve_history_groups(self, history_entries: Sequence[HistoryEntry]) -> List[EpisodeGroup]:
        return to_history_groups(history_entries)

    # ------------------------------------------------------------------
    # Fetch + resolve
    # ------------------------------------------------------------------
    async def load_up_next(self, *, now: Optional[datetime] = None) -> List[EpisodeGroup]:
        now = self._now(now)
        start = now.date() - timedelta(days=self._up_next_window_days)
        window = await self._fetch_window(start, self._up_next_window_days)

        return await self.resolve_up_next(window, now=now)

    async def load_upcoming(self, *, now: Optional[datetime] = None) -> List[EpisodeGroup]:
        now = self._now(now)
        window = await self._fetch_window(now.date(), self._upcoming_window_days)

        return self.resolve_upcoming(window, now)

    async def load_history(
        self,
        *,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> List[EpisodeGroup]:
        if self._history is None:
            raise HistoryUnavailable("No history source configured")

        size = limit or self._history_page_size
        try:
            entries = await self._history.get_history(page, size)
        except Exception as exc:
            log.error("history_page_failed", extra={"page": page, "limit": size, "error": str(exc)})
            raise HistoryUnavailable(str(exc)) from exc

        return self.resolve_history_groups(entries)

    async def load_overview(self, *, now: Optional[datetime] = None) -> Overview:
        """Load both sections concurrently.

        The first failure cancels the other load, which is awaited before the
        error is re-raised.
        """

        now = self._now(now)
        loads = [
            asyncio.create_task(self.load_up_next(now=now)),
            asyncio.create_task(self.load_upcoming(now=now)),
        ]
        try:
            up_next, upcoming = await asyncio.gather(*loads)
        except BaseException:
            for task in loads:
                task.cancel()
            await asyncio.gather(*loads, return_exceptions=True)
            raise

        return Overview(up_next=tuple(up_next), upcoming=tuple(upcoming))

    async def _fetch_window(self, start: date, days: int) -> Sequence[CalendarEntry]:
        try:
            return await self._calendar.get_window(start, days)
        except Exception as exc:
            log.error(
                "calendar_window_failed",
                extra={"start_date": start.isoformat(), "days": days, "error": str(exc)},
            )
            raise CalendarUnavailable(str(exc)) from exc


__all__ = [
    "CalendarSource",
    "HistorySource",
    "Overview",
    "ProgressLookup",
    "ProgressSource",
    "UpNextService",
    "dedupe_shows_preserving_first_seen",
    "resolve_up_next_entries",
]
