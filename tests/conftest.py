from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest

from upnext_tracker.backend.information_handlers.models import (
    CalendarEntry,
    Episode,
    EpisodeIds,
    HistoryEntry,
    ProgressEpisode,
    Show,
    ShowIds,
    ShowProgress,
)


@pytest.fixture
def make_show():
    def _make(show_id: int, title: Optional[str] = None) -> Show:
        return Show(
            title=title or f"Show {show_id}",
            year=2020,
            ids=ShowIds(trakt=show_id, slug=f"show-{show_id}", tmdb=show_id * 10),
        )

    return _make


def _episode_id(show: Show, season: int, number: int) -> int:
    return show.id * 10_000 + season * 100 + number


@pytest.fixture
def make_entry():
    def _make(
        show: Show,
        season: int,
        number: int,
        aired: datetime,
        *,
        unwatched: Optional[int] = None,
    ) -> CalendarEntry:
        return CalendarEntry(
            first_aired=aired,
            episode=Episode(
                season=season,
                number=number,
                title=f"Episode {number}",
                ids=EpisodeIds(trakt=_episode_id(show, season, number)),
            ),
            show=show,
            unwatched_count=unwatched,
        )

    return _make


@pytest.fixture
def make_history():
    def _make(history_id: int, show: Show, season: int, number: int, watched: datetime) -> HistoryEntry:
        return HistoryEntry(
            id=history_id,
            watched_at=watched,
            action="watch",
            type="episode",
            episode=Episode(
                season=season,
                number=number,
                title=f"Episode {number}",
                ids=EpisodeIds(trakt=_episode_id(show, season, number)),
            ),
            show=show,
        )

    return _make


@pytest.fixture
def make_progress():
    def _make(
        *,
        aired: int = 10,
        completed: int = 5,
        season: Optional[int] = 1,
        number: int = 6,
        next_aired: Optional[datetime] = None,
    ) -> ShowProgress:
        next_episode = None
        if season is not None:
            next_episode = ProgressEpisode(
                season=season,
                number=number,
                title=f"Episode {number}",
                ids=EpisodeIds(trakt=900_000 + season * 100 + number),
                first_aired=next_aired,
            )
        return ShowProgress(aired=aired, completed=completed, next_episode=next_episode)

    return _make
