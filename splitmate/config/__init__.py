"""Configuration package."""

from splitmate.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    OllamaSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "OllamaSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
