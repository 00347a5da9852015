from __future__ import annotations



class TrackerError(Exception):
    """Base for all upnext-tracker exceptions."""


class ConfigError(TrackerError):
    """Configuration related issues."""


class NetworkError(TrackerError):
    """Network/HTTP layer issues."""


class ProviderError(TrackerError):
    """Info-provider (Trakt) issues."""


class AuthError(ProviderError):
    """Trakt rejected the configured credentials."""


class NotFoundError(ProviderError):
    """Trakt has no record for the requested resource."""


class DecodeError(ProviderError):
    """Trakt returned a payload that could not be decoded."""


class CalendarUnavailable(TrackerError):
    """The calendar window could not be fetched, so no active shows exist."""


class HistoryUnavailable(TrackerError):
    """The watch history page could not be fetched."""
