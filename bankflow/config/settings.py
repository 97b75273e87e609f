"""
Configuration Management for BankFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Policy defaults (limits, minimum balance) live here too, so a deployment
can tighten limits without touching code.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PolicySettings(BaseSettings):
    """Default account policy applied to new and partially-configured ledgers."""

    model_config = SettingsConfigDict(
        env_prefix="BANKFLOW_POLICY_",
        extra="ignore"
    )

    daily_deposit_limit: float = Field(
        default=25000.0,
        gt=0,
        description="Aggregate deposit cap per calendar day"
    )
    daily_withdrawal_limit: float = Field(
        default=5000.0,
        gt=0,
        description="Aggregate withdrawal cap per calendar day"
    )
    min_balance: float = Field(
        default=10.0,
        ge=0,
        description="Balance that must remain after any withdrawal"
    )
    max_deposit_per_transaction: float = Field(
        default=10000.0,
        gt=0,
        description="Cap on a single deposit"
    )
    session_timeout: int = Field(
        default=1800,
        ge=0,
        description="Inactivity timeout in seconds (advisory, UI only)"
    )


class StorageSettings(BaseSettings):
    """Snapshot persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BANKFLOW_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(json|memory)$",
        description="Storage backend: 'json' (file per key) or 'memory'"
    )
    data_dir: str = Field(
        default=".bankflow",
        description="Directory holding the JSON snapshot files"
    )
    storage_key: str = Field(
        default="bankflow-data",
        min_length=1,
        description="Fixed key under which the ledger snapshot is stored"
    )
    audit_enabled: bool = Field(
        default=True,
        description="Persist audit events (JSON lines for 'json', in memory for 'memory')"
    )
    audit_file: str = Field(
        default="bankflow-audit.jsonl",
        pattern=r"^[A-Za-z0-9._-]+$",
        description="Audit log file name inside data_dir"
    )

    @property
    def data_path(self) -> Path:
        """Get the data directory as a Path."""
        return Path(self.data_dir).expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BANKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )
    timezone: Optional[str] = Field(
        default=None,
        description="IANA timezone defining the calendar day (system zone if unset)"
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject unknown timezone names at startup."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


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

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def policy(self) -> PolicySettings:
        return PolicySettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings groups.

    Returns a dict of {group_name: is_valid} plus "<group>_error" entries
    for the groups that failed. Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("app", "storage", "policy"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
