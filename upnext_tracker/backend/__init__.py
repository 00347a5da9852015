"""Backend public interfaces with lazy loading to avoid circular imports."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "CalendarEntry",
    "Episode",
    "EpisodeGroup",
    "HistoryEntry",
    "Overview",
    "Show",
    "ShowProgress",
    "TraktManager",
    "UpNextService",
    "dedupe_shows_preserving_first_seen",
    "resolve_up_next_entries",
    "to_consecutive_groups",
    "to_history_groups",
    "to_individual_groups",
]

_MODULE_EXPORTS = {
    "information_handlers.models": {
        "CalendarEntry",
        "Episode",
        "EpisodeGroup",
        "HistoryEntry",
        "Show",
        "ShowProgress",
    },
    "information_handlers.grouping": {
        "to_consecutive_groups",
        "to_history_groups",
        "to_individual_groups",
    },
    "information_handlers.up_next": {
        "Overview",
        "UpNextService",
        "dedupe_shows_preserving_first_seen",
        "resolve_up_next_entries",
    },
    "information_handlers.trakt_manager": {
        "TraktManager",
    },
}

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from .information_handlers.grouping import (
        to_consecutive_groups,
        to_history_groups,
        to_individual_groups,
    )
    from .information_handlers.models import (
        CalendarEntry,
        Episode,
        EpisodeGroup,
        HistoryEntry,
        Show,
        ShowProgress,
    )
    from .information_handlers.trakt_manager import TraktManager
    from .information_handlers.up_next import (
        Overview,
        UpNextService,
        dedupe_shows_preserving_first_seen,
        resolve_up_next_entries,
    )


def __getattr__(name: str) -> Any:
    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            module = importlib.import_module(f"{__name__}.{module_name}")
            value = getattr(module, name)
            globals()[name] = value
            return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    exported = set(__all__)
    for symbols in _MODULE_EXPORTS.values():
        exported.update(symbols)
    exported.update(globals().keys())
    return sorted(exported)
