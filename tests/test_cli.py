from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from upnext_tracker.backend.information_handlers.grouping import to_consecutive_groups
from upnext_tracker.backend.information_handlers.models import SearchResult, Show, ShowIds, TraktUser
from upnext_tracker.cli import tracker
from upnext_tracker.cli._utils import build_subparser, to_serializable

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_group_payload_describes_a_range(make_show, make_entry):
    show = make_show(4, "Severance")
    groups = to_consecutive_groups(
        [make_entry(show, 2, n, NOW + timedelta(hours=n)) for n in (1, 2, 3)]
    )

    payload = tracker.group_payload(groups[0])

    assert payload["id"] == "4-2-1"
    assert payload["episode_code"] == "S02E01-3"
    assert payload["episode_title"] is None
    assert payload["episode_count"] == 3
    assert payload["unwatched_count"] == 3
    assert payload["show"]["title"] == "Severance"
    assert payload["first_aired"] == (NOW + timedelta(hours=1)).isoformat()


def test_to_serializable_handles_dates_and_models(make_show):
    value = {"when": NOW, "show": make_show(1), "tags": ("a", "b")}

    result = to_serializable(value)

    assert result["when"] == NOW.isoformat()
    assert result["show"]["ids"]["trakt"] == 1
    assert result["tags"] == ["a", "b"]


def test_build_subparser_returns_the_registered_parser():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest="command")

    sub = build_subparser(subparsers, "demo", help="Demo command.")
    sub.add_argument("--flag", action="store_true")

    assert parser.parse_args(["demo", "--flag"]).flag is True


def test_endpoints_command_prints_json(capsys):
    tracker.main(["--log-level", "WARNING", "endpoints"])

    printed = json.loads(capsys.readouterr().out)
    assert printed["history_remove"] == "sync/history/remove"


def test_history_remove_needs_an_id_or_lookup(capsys):
    with pytest.raises(SystemExit):
        tracker.main(["history-remove", "--show-id", "3"])

    assert "history-remove needs" in capsys.readouterr().err


class FakeTrakt:
    """Serves canned Trakt data to the CLI handlers."""

    def __init__(self, *, calendar=None, progress=None, history=None):
        self.calendar = calendar or []
        self.progress = progress or {}
        self.history = history or []
        self.removed = []

    async def get_window(self, start_date, days):
        return list(self.calendar)

    async def get_progress(self, show_id):
        return self.progress[show_id]

    async def get_history(self, page, limit):
        return list(self.history)

    def watch_history(self, page=1, limit=50):
        return list(self.history)

    def remove_from_history(self, history_id):
        self.removed.append(history_id)
        return {"deleted": {"episodes": 1}}

    def show_progress(self, show_id):
        return self.progress[show_id]

    def search_shows(self, query, limit=15):
        return [SearchResult(score=10.5, show=show) for show in self.shows_for(query)][:limit]

    def shows_for(self, query):
        return [Show(title=query.title(), ids=ShowIds(trakt=77))]

    def user_settings(self):
        return TraktUser(username="viewer", vip=False)


@pytest.fixture
def fake_trakt(monkeypatch):
    def _install(**kwargs):
        fake = FakeTrakt(**kwargs)
        monkeypatch.setattr(tracker, "_MANAGER", fake)
        return fake

    return _install


def _run(capsys, *argv):
    tracker.main(["--log-level", "WARNING", *argv])
    return json.loads(capsys.readouterr().out)


def _now():
    return datetime.now(timezone.utc)


def test_up_next_command(capsys, fake_trakt, make_show, make_entry, make_progress):
    show = make_show(1)
    fake_trakt(
        calendar=[make_entry(show, 1, 3, _now() - timedelta(days=10))],
        progress={1: make_progress(aired=8, completed=5, number=6, next_aired=_now() - timedelta(days=2))},
    )

    printed = _run(capsys, "up-next")

    assert [(g["episode_code"], g["unwatched_count"]) for g in printed] == [("S01E06", 3)]


def test_overview_command(capsys, fake_trakt, make_show, make_entry, make_progress):
    show = make_show(1)
    fake_trakt(
        calendar=[
            make_entry(show, 1, 3, _now() - timedelta(days=10)),
            make_entry(show, 1, 7, _now() + timedelta(days=3)),
        ],
        progress={1: make_progress(number=6, next_aired=_now() - timedelta(days=2))},
    )

    printed = _run(capsys, "overview")

    assert [g["episode_code"] for g in printed["up_next"]] == ["S01E06"]
    assert [g["episode_code"] for g in printed["upcoming"]] == ["S01E07"]


def test_history_by_day_command(capsys, fake_trakt, make_show, make_history):
    show = make_show(2)
    fake_trakt(history=[make_history(5, show, 1, 1, _now() - timedelta(seconds=1))])

    printed = _run(capsys, "history", "--by-day")

    assert len(printed) == 1
    assert printed[0]["label"] == "Today"
    assert [g["episode_code"] for g in printed[0]["groups"]] == ["S01E01"]


def test_history_remove_looks_up_latest_watch(capsys, fake_trakt, make_show, make_history):
    show = make_show(3)
    fake = fake_trakt(
        history=[
            make_history(11, show, 1, 2, NOW),
            make_history(10, show, 1, 2, NOW - timedelta(days=30)),
            make_history(12, show, 1, 3, NOW + timedelta(hours=1)),
        ]
    )

    printed = _run(capsys, "history-remove", "--show-id", "3", "--season", "1", "--episode", "2")

    assert fake.removed == [11]
    assert printed == {"deleted": {"episodes": 1}}


def test_history_remove_without_match_fails(capsys, fake_trakt, make_show, make_history):
    fake = fake_trakt(history=[make_history(1, make_show(3), 1, 1, NOW)])

    with pytest.raises(SystemExit):
        tracker.main(["history-remove", "--show-id", "3", "--season", "2", "--episode", "1"])

    assert fake.removed == []
    assert "No matching watch event" in capsys.readouterr().err


def test_progress_search_and_whoami_commands(capsys, fake_trakt, make_progress):
    fake_trakt(progress={9: make_progress(aired=4, completed=1)})

    progress = _run(capsys, "progress", "9")
    results = _run(capsys, "search", "severance", "--limit", "1")
    user = _run(capsys, "whoami")

    assert progress["unwatched_count"] == 3
    assert progress["next_episode"]["number"] == 6
    assert [(r["score"], r["show"]["title"], r["show"]["ids"]["trakt"]) for r in results] == [(10.5, "Severance", 77)]
    assert user["username"] == "viewer"
