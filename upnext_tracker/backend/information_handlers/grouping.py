"""Collapse calendar and history entries into display groups."""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, tzinfo
from typing import Iterable, List, Optional, Sequence

from upnext_tracker.backend.information_handlers.models import (
    CalendarEntry,
    EpisodeGroup,
    HistoryDay,
    HistoryEntry,
)


def _single(entry: CalendarEntry) -> EpisodeGroup:
    return EpisodeGroup(show=entry.show, season=entry.episode.season, episodes=(entry,))


def to_individual_groups(entries: Iterable[CalendarEntry]) -> List[EpisodeGroup]:
    """One group per entry, ordered by air time."""

    return [_single(entry) for entry in sorted(entries, key=lambda e: e.first_aired)]


def to_consecutive_groups(entries: Iterable[CalendarEntry]) -> List[EpisodeGroup]:
    """Merge runs of back-to-back episodes of the same show and season.

    Entries are ordered by show title, season and episode number before the
    scan, so the result does not depend on input order. Air dates inside a run
    are not checked; only episode-number contiguity matters. The groups come
    back ordered by the air time of their first entry.
    """

    ordered = sorted(
        entries,
        key=lambda e: (e.show.title, e.episode.season, e.episode.number),
    )

    runs: List[List[CalendarEntry]] = []
    current: List[CalendarEntry] = []
    for entry in ordered:
        if current:
            last = current[-1]
            if (
                last.show.id == entry.show.id
                and last.episode.season == entry.episode.season
                and entry.episode.number == last.episode.number + 1
            ):
                current.append(entry)
                continue
            runs.append(current)
        current = [entry]

    if current:
        runs.append(current)

    groups = [
        EpisodeGroup(show=run[-1].show, season=run[-1].episode.season, episodes=tuple(run))
        for run in runs
    ]

    return sorted(groups, key=lambda g: g.first_aired)


def to_history_groups(history_entries: Iterable[HistoryEntry]) -> List[EpisodeGroup]:
    """Every watch event becomes its own group, timestamped by ``watched_at``."""

    return to_individual_groups(entry.to_calendar_entry() for entry in history_entries)


def group_history_by_day(
    groups: Iterable[EpisodeGroup],
    *,
    tz: Optional[tzinfo] = None,
) -> List[HistoryDay]:
    """Bucket history groups by the calendar day they were watched on.

    ``tz`` selects the local day boundary; ``None`` uses the system zone.
    Days and the groups inside each day are ordered newest first.
    """

    buckets: "OrderedDict[date, List[EpisodeGroup]]" = OrderedDict()
    for group in groups:
        day = group.first_aired.astimezone(tz).date()
        buckets.setdefault(day, []).append(group)

    return [
        HistoryDay(
            day=day,
            groups=tuple(sorted(items, key=lambda g: g.first_aired, reverse=True)),
        )
        for day, items in sorted(buckets.items(), key=lambda item: item[0], reverse=True)
    ]


def day_label(day: date, today: date) -> str:
    delta = (today - day).days
    if delta == 0:
        return "Today"
    if delta == 1:
        return "Yesterday"
    if 0 < delta < 7:
        return day.strftime("%A")

    return f"{day.strftime('%B')} {day.day}, {day.year}"


def find_history_entry(
    history_entries: Sequence[HistoryEntry],
    group: EpisodeGroup,
) -> Optional[HistoryEntry]:
    """Locate the watch event a history group was built from.

    A re-watched episode appears once per watch event, so an entry whose
    ``watched_at`` equals the group timestamp wins over other matches.
    """

    number = group.episodes[0].episode.number
    fallback: Optional[HistoryEntry] = None
    for entry in history_entries:
        if (
            entry.show.id == group.show.id
            and entry.episode.season == group.season
            and entry.episode.number == number
        ):
            if entry.watched_at == group.first_aired:
                return entry
            if fallback is None:
                fallback = entry

    return fallback


__all__ = [
    "day_label",
    "find_history_entry",
    "group_history_by_day",
    "to_consecutive_groups",
    "to_history_groups",
    "to_individual_groups",
]
