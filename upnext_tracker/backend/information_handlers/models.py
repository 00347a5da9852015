"""Normalized Trakt models used by the grouping and "up next" logic.

Every model here is an immutable value object. Trakt payloads are adapted into
these models through the :class:`TraktPayloadFacade` helpers defined at the
bottom of the module; nothing else in the application should read raw JSON.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Any, Iterable, Mapping, Optional, Sequence, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from upnext_tracker.backend.common.errors import DecodeError
from upnext_tracker.backend.common.logging import get_logger

log = get_logger(__name__)


def assume_utc(value: datetime) -> datetime:
    # Trakt timestamps are UTC; values without an offset are read the same way.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(assume_utc)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ShowIds(_Frozen):
    trakt: int
    slug: Optional[str] = None
    tvdb: Optional[int] = None
    imdb: Optional[str] = None
    tmdb: Optional[int] = None


class Show(_Frozen):
    """A show as referenced by calendar, progress, and history payloads."""

    title: str
    year: Optional[int] = None
    ids: ShowIds

    @property
    def id(self) -> int:
        return self.ids.trakt


class EpisodeIds(_Frozen):
    trakt: int
    tvdb: Optional[int] = None
    imdb: Optional[str] = None
    tmdb: Optional[int] = None


class Episode(_Frozen):
    season: int = Field(ge=0, description="0 denotes specials")
    number: int = Field(ge=1)
    title: Optional[str] = None
    ids: EpisodeIds

    @property
    def id(self) -> int:
        return self.ids.trakt

    @property
    def episode_code(self) -> str:
        return f"S{self.season:02d}E{self.number:02d}"


class CalendarEntry(_Frozen):
    """A dated episode of a show; the unit the grouping logic operates on."""

    first_aired: UtcDatetime
    episode: Episode
    show: Show
    unwatched_count: Optional[int] = Field(default=None, ge=0)

    @property
    def id(self) -> str:
        return f"{self.show.id}-{self.episode.id}"

    def with_unwatched_count(self, count: int) -> "CalendarEntry":
        return self.model_copy(update={"unwatched_count": count})


class EpisodeGroup(_Frozen):
    """A run of entries for one show and season, rendered as a single row.

    Groups built by consecutive merging hold entries in ascending episode order
    with no gaps; individual grouping always yields exactly one entry.
    """

    show: Show
    season: int = Field(ge=0)
    episodes: Tuple[CalendarEntry, ...] = Field(min_length=1)

    @property
    def id(self) -> str:
        return f"{self.show.id}-{self.season}-{self.episodes[0].episode.number}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EpisodeGroup):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def first_aired(self) -> datetime:
        return self.episodes[0].first_aired

    @property
    def episode_code(self) -> str:
        first = self.episodes[0].episode.number
        last = self.episodes[-1].episode.number
        if first == last:
            return f"S{self.season:02d}E{first:02d}"

        return f"S{self.season:02d}E{first:02d}-{last}"

    @property
    def episode_title(self) -> Optional[str]:
        if len(self.episodes) == 1:
            return self.episodes[0].episode.title
        return None

    @property
    def episode_count(self) -> int:
        return len(self.episodes)

    @property
    def unwatched_count(self) -> int:
        # Up-next entries carry aired - completed; plain calendar rows do not.
        first = self.episodes[0].unwatched_count
        return first if first is not None else self.episode_count


class ProgressEpisode(_Frozen):
    season: int = Field(ge=0)
    number: int = Field(ge=1)
    title: Optional[str] = None
    ids: EpisodeIds
    first_aired: Optional[UtcDatetime] = None

    def to_episode(self) -> Episode:
        return Episode(season=self.season, number=self.number, title=self.title, ids=self.ids)


class ShowProgress(_Frozen):
    """Watched-progress snapshot for one show."""

    aired: int = Field(ge=0)
    completed: int = Field(ge=0)
    last_watched_at: Optional[UtcDatetime] = None
    next_episode: Optional[ProgressEpisode] = None
    last_episode: Optional[ProgressEpisode] = None

    @property
    def unwatched_count(self) -> int:
        return max(0, self.aired - self.completed)


class HistoryEntry(_Frozen):
    id: int
    watched_at: UtcDatetime
    action: str
    type: str
    episode: Episode
    show: Show

    def to_calendar_entry(self) -> CalendarEntry:
        return CalendarEntry(first_aired=self.watched_at, episode=self.episode, show=self.show)


class HistoryDay(_Frozen):
    """History groups that were watched on the same local calendar day."""

    day: date
    groups: Tuple[EpisodeGroup, ...] = Field(default_factory=tuple)


class SearchResult(_Frozen):
    type: str = "show"
    score: Optional[float] = None
    show: Show


class TraktUser(_Frozen):
    """The account behind the configured access token."""

    username: str
    private: bool = False
    name: Optional[str] = None
    vip: Optional[bool] = None
    location: Optional[str] = None
    joined_at: Optional[UtcDatetime] = None


def _iter_mappings(payload: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(payload, Iterable) or isinstance(payload, (str, bytes, Mapping)):
        raise DecodeError(f"Expected a JSON array, got {type(payload).__name__}")

    for item in payload:
        if isinstance(item, Mapping):
            yield item


class TraktPayloadFacade:
    """Thin facade to create normalized models from Trakt payloads."""

    def calendar_entries(self, payload: Any) -> Sequence[CalendarEntry]:
        entries: list[CalendarEntry] = []
        for item in _iter_mappings(payload):
            try:
                entries.append(CalendarEntry.model_validate(item))
            except ValidationError as exc:
                log.debug("calendar_entry_skipped", extra={"error": str(exc)})
                continue

        return entries

    def history_entries(self, payload: Any) -> Sequence[HistoryEntry]:
        entries: list[HistoryEntry] = []
        for item in _iter_mappings(payload):
            try:
                entries.append(HistoryEntry.model_validate(item))
            except ValidationError as exc:
                log.debug("history_entry_skipped", extra={"error": str(exc)})
                continue

        return entries

    def show_progress(self, payload: Any) -> ShowProgress:
        if not isinstance(payload, Mapping):
            raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
        try:
            return ShowProgress.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(f"Invalid show progress payload: {exc}") from exc

    def search_results(self, payload: Any) -> Sequence[SearchResult]:
        results: list[SearchResult] = []
        for item in _iter_mappings(payload):
            try:
                results.append(SearchResult.model_validate(item))
            except ValidationError as exc:
                log.debug("search_result_skipped", extra={"error": str(exc)})
                continue

        return results

    def user_settings(self, payload: Any) -> TraktUser:
        user = payload.get("user") if isinstance(payload, Mapping) else None
        if not isinstance(user, Mapping):
            raise DecodeError("User settings payload has no 'user' object")
        try:
            return TraktUser.model_validate(user)
        except ValidationError as exc:
            raise DecodeError(f"Invalid user settings payload: {exc}") from exc


__all__ = [
    "ShowIds",
    "Show",
    "EpisodeIds",
    "Episode",
    "CalendarEntry",
    "EpisodeGroup",
    "ProgressEpisode",
    "ShowProgress",
    "HistoryEntry",
    "HistoryDay",
    "SearchResult",
    "TraktUser",
    "TraktPayloadFacade",
    "UtcDatetime",
    "assume_utc",
]
