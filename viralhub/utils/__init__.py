"""Utility modules for Viral Hub."""

from .config import Settings, get_settings
from .dates import utcnow, as_naive_utc

__all__ = [
    "Settings",
    "get_settings",
    "utcnow",
    "as_naive_utc",
]
