"""Configuration package."""

from bankflow.config.settings import (
    AppSettings,
    PolicySettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "PolicySettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
