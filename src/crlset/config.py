"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables
  - Fall back to .env file
  - Validate types and constraints at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain
BaseModel classes populated via env_nested_delimiter="__", so OMAHA__APP_ID
maps to omaha.app_id and REFRESH__POLICY to refresh.policy.

The domain never reads settings; main and asgi build adapters from them.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crlset.domain.constants import (
    CRLSET_COMPONENT_ID,
    DEFAULT_PARTIAL_FETCH_BYTES,
    OMAHA_BASE_URL,
)
from crlset.domain.models import UpdatePolicy
from crlset.railway import ErrorCode, Result

# Project root .env (two levels above this file), independent of the working directory.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class OmahaSettings(BaseModel):
    """Where and how to ask for the current CRLSet CRX."""

    url: str = Field(default=OMAHA_BASE_URL, description="Omaha update-check endpoint")
    app_id: str = Field(default=CRLSET_COMPONENT_ID, description="Component id (32 letters a-p)")
    version: str = Field(default="", description="Installed version sent with the update check")
    update_check: bool = Field(default=True, description="Send the 'uc' flag")

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, value: str) -> str:
        """Component ids are 32 characters drawn from 'a'..'p'."""
        if len(value) != 32 or not set(value) <= set("abcdefghijklmnop"):
            raise ValueError(f"app_id must be 32 letters in a-p, got {value!r}")
        return value


class RefreshSettings(BaseModel):
    """
    Cache refresh behaviour.

    cron uses the standard 5 fields (minute hour dom month dow), e.g.
    "0 */6 * * *" for every 6 hours.
    """

    verify_signature: bool = Field(default=True)
    policy: UpdatePolicy = Field(default=UpdatePolicy.ON_EXPIRY)
    partial_fetch_bytes: int = Field(default=DEFAULT_PARTIAL_FETCH_BYTES, ge=4096)
    cron: str = Field(default="0 */6 * * *", description="Cron expression (5 fields)")

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        fields = value.strip().split()
        if len(fields) != 5:
            raise ValueError(
                f"Cron expression must have exactly 5 fields "
                f"(minute hour dom month dow), got {len(fields)}: {value!r}"
            )
        return value.strip()


class AppSettings(BaseSettings):
    """
    Root settings.

    Load order (highest priority first): environment, .env file, defaults.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    omaha: OmahaSettings = Field(default_factory=OmahaSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)

    http_timeout_seconds: int = Field(default=60, ge=1)
    run_on_startup: bool = Field(default=True)
    log_level: str = Field(default="INFO")


def load_settings() -> Result[AppSettings]:
    """Load AppSettings; any validation or .env error is a CONFIGURATION_ERROR failure."""
    return Result.from_computation(AppSettings, ErrorCode.CONFIGURATION_ERROR, "Configuration error")
