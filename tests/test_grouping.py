from __future__ import annotations

import random
from collections import Counter
from datetime import date, datetime, timedelta, timezone

from upnext_tracker.backend.information_handlers.grouping import (
    day_label,
    find_history_entry,
    group_history_by_day,
    to_consecutive_groups,
    to_history_groups,
    to_individual_groups,
)

START = datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)


def day(n: float) -> datetime:
    return START + timedelta(days=n)


def test_individual_groups_empty():
    assert to_individual_groups([]) == []


def test_individual_groups_sorted_by_air_time(make_show, make_entry):
    show_a = make_show(1, "Show A")
    show_b = make_show(2, "Show B")
    a = make_entry(show_a, 1, 1, datetime(2024, 1, 10, tzinfo=timezone.utc))
    b = make_entry(show_b, 1, 1, datetime(2024, 1, 5, tzinfo=timezone.utc))

    groups = to_individual_groups([a, b])

    assert [g.show.title for g in groups] == ["Show B", "Show A"]
    assert all(g.episode_count == 1 for g in groups)


def test_individual_groups_one_per_entry_regardless_of_order(make_show, make_entry):
    show = make_show(1)
    entries = [make_entry(show, 1, n, day(n)) for n in range(1, 8)]
    shuffled = list(entries)
    random.Random(4).shuffle(shuffled)

    groups = to_individual_groups(shuffled)

    assert len(groups) == len(entries)
    assert [g.episodes[0] for g in groups] == entries


def test_consecutive_episodes_merge_into_one_group(make_show, make_entry):
    show = make_show(1, "Show A")
    entries = [make_entry(show, 1, n, day(0)) for n in (3, 1, 2)]

    groups = to_consecutive_groups(entries)

    assert len(groups) == 1
    assert groups[0].episode_code == "S01E01-3"
    assert groups[0].episode_count == 3
    assert [e.episode.number for e in groups[0].episodes] == [1, 2, 3]


def test_gap_splits_groups(make_show, make_entry):
    show = make_show(1, "Show A")
    entries = [make_entry(show, 1, n, day(n)) for n in (1, 2, 4)]

    groups = to_consecutive_groups(entries)

    assert [[e.episode.number for e in g.episodes] for g in groups] == [[1, 2], [4]]


def test_season_change_splits_groups(make_show, make_entry):
    show = make_show(1)
    entries = [make_entry(show, 1, 10, day(0)), make_entry(show, 2, 11, day(1))]

    groups = to_consecutive_groups(entries)

    assert [(g.season, g.episode_count) for g in groups] == [(1, 1), (2, 1)]


def test_single_entry_is_singleton_group(make_show, make_entry):
    entry = make_entry(make_show(1), 1, 5, day(0))
    groups = to_consecutive_groups([entry])
    assert len(groups) == 1
    assert groups[0].episodes == (entry,)


def test_groups_ordered_by_first_air_time(make_show, make_entry):
    alpha = make_show(1, "Alpha")
    zulu = make_show(2, "Zulu")
    entries = [
        make_entry(alpha, 1, 1, day(5)),
        make_entry(alpha, 1, 2, day(6)),
        make_entry(zulu, 3, 7, day(1)),
    ]

    groups = to_consecutive_groups(entries)

    assert [g.show.title for g in groups] == ["Zulu", "Alpha"]


def test_air_date_anomaly_inside_run_is_accepted(make_show, make_entry):
    show = make_show(1)
    entries = [
        make_entry(show, 1, 1, day(0)),
        make_entry(show, 1, 2, day(9)),
        make_entry(show, 1, 3, day(3)),
    ]

    groups = to_consecutive_groups(entries)

    assert len(groups) == 1
    assert groups[0].first_aired == day(0)


def test_consecutive_grouping_invariants_on_mixed_input(make_show, make_entry):
    shows = [make_show(i, f"Show {chr(64 + i)}") for i in range(1, 5)]
    rng = random.Random(11)
    entries = []
    for show in shows:
        for season in (1, 2):
            numbers = sorted(rng.sample(range(1, 15), 8))
            entries.extend(
                make_entry(show, season, n, day(rng.randint(0, 60))) for n in numbers
            )

    forward = to_consecutive_groups(entries)
    backward = to_consecutive_groups(list(reversed(entries)))

    # every entry lands in exactly one group
    assert Counter(e.id for g in forward for e in g.episodes) == Counter(e.id for e in entries)

    for group in forward:
        numbers = [e.episode.number for e in group.episodes]
        assert numbers == list(range(numbers[0], numbers[0] + len(numbers)))
        assert {e.show.id for e in group.episodes} == {group.show.id}
        assert {e.episode.season for e in group.episodes} == {group.season}

    aired = [g.first_aired for g in forward]
    assert aired == sorted(aired)

    assert [g.id for g in forward] == [g.id for g in backward]


def test_history_groups_keep_each_watch_event(make_show, make_history):
    show = make_show(1)
    first = make_history(1, show, 1, 1, day(0))
    rewatch = make_history(2, show, 1, 1, day(3))
    next_episode = make_history(3, show, 1, 2, day(1))

    groups = to_history_groups([rewatch, first, next_episode])

    assert len(groups) == 3
    assert [g.first_aired for g in groups] == [day(0), day(1), day(3)]
    assert all(g.episode_count == 1 for g in groups)


def test_history_grouped_by_day_newest_first(make_show, make_history):
    show = make_show(1)
    history = [
        make_history(1, show, 1, 1, datetime(2024, 3, 1, 9, tzinfo=timezone.utc)),
        make_history(2, show, 1, 2, datetime(2024, 3, 1, 21, tzinfo=timezone.utc)),
        make_history(3, show, 1, 3, datetime(2024, 3, 3, 12, tzinfo=timezone.utc)),
    ]

    days = group_history_by_day(to_history_groups(history), tz=timezone.utc)

    assert [d.day for d in days] == [date(2024, 3, 3), date(2024, 3, 1)]
    assert [g.episodes[0].episode.number for g in days[1].groups] == [2, 1]


def test_history_day_uses_requested_zone(make_show, make_history):
    show = make_show(1)
    late = make_history(1, show, 1, 1, datetime(2024, 3, 2, 2, tzinfo=timezone.utc))
    eastern = timezone(timedelta(hours=-5))

    days = group_history_by_day(to_history_groups([late]), tz=eastern)

    assert days[0].day == date(2024, 3, 1)


def test_day_labels():
    today = date(2024, 3, 10)
    assert day_label(today, today) == "Today"
    assert day_label(date(2024, 3, 9), today) == "Yesterday"
    assert day_label(date(2024, 3, 6), today) == "Wednesday"
    assert day_label(date(2024, 1, 5), today) == "January 5, 2024"


def test_find_history_entry_prefers_exact_watch_event(make_show, make_history):
    show = make_show(1)
    first = make_history(10, show, 1, 1, day(0))
    rewatch = make_history(11, show, 1, 1, day(2))
    groups = to_history_groups([first, rewatch])

    assert find_history_entry([first, rewatch], groups[1]) is rewatch
    assert find_history_entry([first, rewatch], groups[0]) is first


def test_find_history_entry_missing(make_show, make_history):
    show = make_show(1)
    other = make_show(2)
    group = to_history_groups([make_history(1, show, 1, 1, day(0))])[0]
    assert find_history_entry([make_history(2, other, 1, 1, day(0))], group) is None
