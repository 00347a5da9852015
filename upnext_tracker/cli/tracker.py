"""Command line entry point for upnext-tracker."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Sequence

from upnext_tracker.backend.common.errors import TrackerError
from upnext_tracker.backend.common.logging import init_logging
from upnext_tracker.backend.information_handlers.grouping import (
    day_label,
    find_history_entry,
    group_history_by_day,
    to_history_groups,
    to_individual_groups,
)
from upnext_tracker.backend.information_handlers.models import EpisodeGroup
from upnext_tracker.backend.information_handlers.trakt_manager import TraktManager
from upnext_tracker.backend.information_handlers.up_next import UpNextService
from upnext_tracker.backend.network_handlers.url_manager import URLManager
from upnext_tracker.config import settings
from ._utils import (
    build_subparser,
    exit_with_error,
    print_json,
    require_subcommand,
    to_serializable,
)

_MANAGER: Optional[TraktManager] = None


def _trakt() -> TraktManager:
    global _MANAGER
    if _MANAGER is None:
        try:
            _MANAGER = TraktManager()
        except TrackerError as exc:
            exit_with_error(str(exc))
    return _MANAGER


def _service() -> UpNextService:
    cfg = settings.get_settings()
    manager = _trakt()
    return UpNextService(
        calendar=manager,
        progress=manager,
        history=manager,
        up_next_window_days=cfg.up_next_window_days,
        upcoming_window_days=cfg.upcoming_window_days,
        history_page_size=cfg.history_page_size,
    )


def group_payload(group: EpisodeGroup) -> Dict[str, Any]:
    return {
        "id": group.id,
        "show": to_serializable(group.show),
        "season": group.season,
        "episode_code": group.episode_code,
        "episode_title": group.episode_title,
        "episode_count": group.episode_count,
        "unwatched_count": group.unwatched_count,
        "first_aired": group.first_aired.isoformat(),
    }


def _handle_up_next(_: argparse.Namespace) -> None:
    groups = asyncio.run(_service().load_up_next())
    print_json([group_payload(g) for g in groups])


def _handle_upcoming(_: argparse.Namespace) -> None:
    groups = asyncio.run(_service().load_upcoming())
    print_json([group_payload(g) for g in groups])


def _handle_overview(_: argparse.Namespace) -> None:
    overview = asyncio.run(_service().load_overview())
    print_json(
        {
            "up_next": [group_payload(g) for g in overview.up_next],
            "upcoming": [group_payload(g) for g in overview.upcoming],
        }
    )


def _handle_calendar(args: argparse.Namespace) -> None:
    start = args.start or datetime.now(timezone.utc).date()
    days = args.days or settings.get_settings().calendar_window_days
    entries = _trakt().calendar_shows(start, days)
    print_json([group_payload(g) for g in to_individual_groups(entries)])


def _handle_history(args: argparse.Namespace) -> None:
    groups = asyncio.run(_service().load_history(page=args.page, limit=args.limit))
    if not args.by_day:
        print_json([group_payload(g) for g in groups])
        return

    today = datetime.now().astimezone().date()
    print_json(
        [
            {
                "day": day.day.isoformat(),
                "label": day_label(day.day, today),
                "groups": [group_payload(g) for g in day.groups],
            }
            for day in group_history_by_day(groups)
        ]
    )


def _handle_history_remove(args: argparse.Namespace) -> None:
    manager = _trakt()
    history_id = args.history_id
    if history_id is None:
        entries = manager.watch_history(page=1, limit=settings.get_settings().history_page_size)
        matches = [
            g for g in to_history_groups(entries)
            if g.show.id == args.show_id and g.season == args.season
            and g.episodes[0].episode.number == args.episode
        ]
        entry = find_history_entry(entries, matches[-1]) if matches else None
        if entry is None:
            exit_with_error("No matching watch event in the latest history page")
            return
        history_id = entry.id
    print_json(to_serializable(manager.remove_from_history(history_id)))


def _handle_progress(args: argparse.Namespace) -> None:
    progress = _trakt().show_progress(args.show_id)
    payload = to_serializable(progress)
    payload["unwatched_count"] = progress.unwatched_count
    print_json(payload)


def _handle_search(args: argparse.Namespace) -> None:
    results = _trakt().search_shows(args.query, limit=args.limit)
    print_json(
        [
            {"score": r.score, "show": to_serializable(r.show)}
            for r in results
        ]
    )


def _handle_whoami(_: argparse.Namespace) -> None:
    print_json(to_serializable(_trakt().user_settings()))


def _handle_endpoints(_: argparse.Namespace) -> None:
    print_json(URLManager().endpoints("trakt"))


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got '{value}'") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="upnext-tracker",
        description="Track TV show progress against Trakt: up next, upcoming and watch history.",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    subparsers = parser.add_subparsers(dest="command")
    require_subcommand(subparsers)

    up_next = build_subparser(subparsers, "up-next", help="Next aired-but-unwatched episode per active show.")
    up_next.set_defaults(func=_handle_up_next)

    upcoming = build_subparser(subparsers, "upcoming", help="Episodes airing in the coming window.")
    upcoming.set_defaults(func=_handle_upcoming)

    overview = build_subparser(subparsers, "overview", help="Up next and upcoming sections together.")
    overview.set_defaults(func=_handle_overview)

    calendar = build_subparser(subparsers, "calendar", help="Raw calendar window, one row per episode.")
    calendar.add_argument("--start", type=_parse_date, help="First day of the window (YYYY-MM-DD, default today).")
    calendar.add_argument("--days", type=int, help="Window length in days.")
    calendar.set_defaults(func=_handle_calendar)

    history = build_subparser(subparsers, "history", help="Recently watched episodes.")
    history.add_argument("--page", type=int, default=1, help="History page to fetch.")
    history.add_argument("--limit", type=int, help="Entries per page.")
    history.add_argument("--by-day", action="store_true", help="Bucket the page by watch day.")
    history.set_defaults(func=_handle_history)

    remove = build_subparser(subparsers, "history-remove", help="Delete a watch event from history.")
    remove.add_argument("history_id", nargs="?", type=int, help="Trakt history id to delete.")
    remove.add_argument("--show-id", type=int, help="Trakt show id, when looking the event up.")
    remove.add_argument("--season", type=int, help="Season number, when looking the event up.")
    remove.add_argument("--episode", type=int, help="Episode number, when looking the event up.")
    remove.set_defaults(func=_handle_history_remove)

    progress = build_subparser(subparsers, "progress", help="Watched progress for one show.")
    progress.add_argument("show_id", type=int, help="Trakt show id.")
    progress.set_defaults(func=_handle_progress)

    search = build_subparser(subparsers, "search", help="Search Trakt for shows by title.")
    search.add_argument("query", help="Text to search for.")
    search.add_argument("--limit", type=int, default=15, help="Maximum number of results.")
    search.set_defaults(func=_handle_search)

    whoami = build_subparser(subparsers, "whoami", help="Show the account behind the access token.")
    whoami.set_defaults(func=_handle_whoami)

    endpoints = build_subparser(subparsers, "endpoints", help="Display the configured Trakt endpoints.")
    endpoints.set_defaults(func=_handle_endpoints)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    # stdout carries the JSON result
    init_logging(args.log_level or settings.get_settings().log_level, stream=sys.stderr)

    if args.command == "history-remove" and args.history_id is None:
        if None in (args.show_id, args.season, args.episode):
            parser.error("history-remove needs a history id or --show-id, --season and --episode")

    try:
        args.func(args)
    except TrackerError as exc:
        exit_with_error(str(exc))


if __name__ == "__main__":  # pragma: no cover
    main()
