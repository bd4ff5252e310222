"""Configuration module for Melodia."""

from .settings import (
    APISettings,
    DatabaseSettings,
    ObservabilitySettings,
    PaginationSettings,
    Settings,
    get_settings,
)

__all__ = [
    "APISettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "PaginationSettings",
    "Settings",
    "get_settings",
]
