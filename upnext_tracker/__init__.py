"""Episode calendar grouping and "up next" resolution for Trakt."""

__version__ = "0.1.0"
