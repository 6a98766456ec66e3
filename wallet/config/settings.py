"""
Configuration Management for Personal Wallet

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Limit thresholds in particular are NEVER hard-coded in the ledger;
they are read from here and handed to the ledger at construction time.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wallet.models.limits import RateLimits


class RateLimitSettings(BaseSettings):
    """Fraud-prevention thresholds for money-moving operations."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore"
    )

    max_transactions_per_window: int = Field(
        default=5,
        ge=1,
        description="Maximum transactions per actor inside the trailing window"
    )
    window_seconds: int = Field(
        default=60,
        ge=1,
        description="Length of the trailing velocity window in seconds"
    )
    max_amount_per_transaction: Decimal = Field(
        default=Decimal("10000"),
        gt=0,
        description="Largest amount allowed in a single withdrawal or transfer"
    )
    max_daily_withdrawal: Decimal = Field(
        default=Decimal("5000"),
        gt=0,
        description="Cumulative withdrawal cap per calendar day"
    )
    max_daily_transfer: Decimal = Field(
        default=Decimal("5000"),
        gt=0,
        description="Cumulative outgoing transfer cap per calendar day"
    )
    timezone: str = Field(
        default="UTC",
        description="IANA timezone whose midnight starts a new limit day"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names the system does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    def to_limits(self) -> RateLimits:
        """Build the immutable limits value consumed by the ledger."""
        return RateLimits(
            max_transactions_per_window=self.max_transactions_per_window,
            window_seconds=self.window_seconds,
            max_amount_per_transaction=self.max_amount_per_transaction,
            max_daily_withdrawal=self.max_daily_withdrawal,
            max_daily_transfer=self.max_daily_transfer,
            timezone=self.timezone,
        )


class LedgerSettings(BaseSettings):
    """Where the transaction log and the actor registry live."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    storage_backend: Literal["memory", "jsonl", "google_sheets"] = Field(
        default="memory",
        description="Storage backend for the transaction log"
    )
    jsonl_path: str = Field(
        default="data/transactions.jsonl",
        description="Path of the JSON-lines log (jsonl backend only)"
    )
    actors_jsonl_path: str = Field(
        default="data/actors.jsonl",
        description="Path of the registered-actors file (jsonl backend only)"
    )

    @property
    def jsonl_file(self) -> Path:
        return Path(self.jsonl_path)

    @property
    def actors_jsonl_file(self) -> Path:
        return Path(self.actors_jsonl_path)


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

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for ledger entries"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    actors_sheet_name: str = Field(
        default="Actors",
        description="Name of the sheet for registered actors"
    )

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


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Presentation
    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Symbol shown next to amounts"
    )
    recent_activity_count: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many entries the dashboard shows"
    )
    max_note_length: int = Field(
        default=200,
        ge=1,
        le=500,
        description="Longest note accepted on a transaction"
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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def rate_limits(self) -> RateLimitSettings:
        return RateLimitSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for every section that failed.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    sections = {
        "rate_limits": lambda: settings.rate_limits,
        "ledger": lambda: settings.ledger,
        "app": lambda: settings.app,
    }

    try:
        backend = settings.ledger.storage_backend
    except Exception:
        backend = None
    if backend == "google_sheets":
        sections["google_sheets"] = lambda: settings.google_sheets

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
