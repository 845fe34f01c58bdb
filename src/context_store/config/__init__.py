"""Configuration management for the context store backend.

Usage:
    >>> from context_store.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.dialect)
"""

from context_store.config.settings import (
    BackendSettings,
    get_settings,
)

__all__ = [
    "BackendSettings",
    "get_settings",
]
