"""
Configuration Management for SplitMate

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every setting has a default except the credentials of hosted services,
so the ledger core runs (and is tested) without any environment at all.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    users_sheet_name: str = Field(default="Users")
    groups_sheet_name: str = Field(default="Groups")
    expenses_sheet_name: str = Field(default="Expenses")
    settlements_sheet_name: str = Field(default="Settlements")
    balances_sheet_name: str = Field(default="Balances")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class OllamaSettings(BaseSettings):
    """Locally-hosted model (Ollama) used as the command interpreter."""

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server"
    )
    model: str = Field(
        default="mistral",
        description="Model name to run"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound for a single interpretation request"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (alternative command interpreter)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=512,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Ledger rules
    split_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Allowed difference between sum of splits and expense amount"
    )
    redistribute_rounding_remainder: bool = Field(
        default=True,
        description=(
            "Give the rounding remainder of an equal split to the payer so "
            "splits add up exactly"
        )
    )
    default_category: str = Field(
        default="Other",
        description="Category used when none is given"
    )

    # Command limits
    max_command_length: int = Field(
        default=500,
        ge=1,
        description="Maximum length of a natural-language command"
    )
    max_expense_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Maximum reasonable expense amount (sanity check)"
    )

    # Wiring
    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Where ledger records are stored"
    )
    interpreter_provider: Literal["ollama", "gemini"] = Field(
        default="ollama",
        description="Which model turns commands into expenses"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Gemini key does not
    # stop an Ollama-only deployment from starting.

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def ollama(self) -> OllamaSettings:
        return OllamaSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "ollama", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
