"""Search result caching and expiry layer."""

__version__ = "1.0.0"
