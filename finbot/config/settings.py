"""
Configuration Management for Finbot

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Sheet names, time-to-live values and the lock timeout are read once
and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

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

    # Sheet names within the spreadsheet
    ledger_sheet_name: str = Field(
        default="Transacoes",
        description="Name of the sheet holding every transaction row"
    )
    accounts_sheet_name: str = Field(
        default="Contas",
        description="Name of the sheet with account metadata"
    )
    dictionary_sheet_name: str = Field(
        default="Dicionario",
        description="Name of the keyword dictionary sheet"
    )
    bills_sheet_name: str = Field(
        default="ContasAPagar",
        description="Name of the payable bills sheet"
    )
    budgets_sheet_name: str = Field(
        default="Orcamento",
        description="Name of the monthly budget sheet"
    )
    goals_sheet_name: str = Field(
        default="Metas",
        description="Name of the savings goals sheet"
    )
    audit_sheet_name: str = Field(
        default="Auditoria",
        description="Name of the sheet for audit logs"
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
    timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used to decide what 'today' is"
    )

    # Time-to-live values
    pending_ttl_seconds: int = Field(
        default=900,
        ge=30,
        le=21600,
        description="How long an unconfirmed transaction waits for the user"
    )
    dedup_ttl_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Window in which a repeated inbound update is ignored"
    )

    # Ledger lock
    lock_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Maximum wait for the ledger lock before failing"
    )

    # Interpretation
    min_description_length: int = Field(
        default=3,
        ge=1,
        description="Shorter descriptions are replaced by the placeholder"
    )
    placeholder_description: str = Field(
        default="Lançamento",
        description="Description used when none can be derived from the message"
    )
    max_installments: int = Field(
        default=48,
        ge=1,
        le=420,
        description="Longest installment plan a message may ask for"
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
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
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

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
