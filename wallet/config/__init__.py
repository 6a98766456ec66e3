"""Configuration package."""

from wallet.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    RateLimitSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "RateLimitSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
