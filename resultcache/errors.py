"""Exceptions raised by the result cache layer.

A missing result set is not an error: lookups return ``None`` for it.
"""


class ResultCacheError(Exception):
    """Base exception for the result cache."""


class StorageFailure(ResultCacheError):
    """Backing store unavailable or transaction aborted."""


class ConfigurationError(ResultCacheError, ValueError):
    """Invalid configuration, detected at load time."""
