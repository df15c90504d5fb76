"""Configuration objects for the booking engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    vat_rate: float = Field(0.20, alias="MECHANIC_BOOKING_VAT_RATE")
    default_hourly_rate: float = Field(50.0, alias="MECHANIC_BOOKING_DEFAULT_HOURLY_RATE")
    default_job_duration_minutes: int = Field(60, alias="MECHANIC_BOOKING_DEFAULT_JOB_DURATION_MINUTES")
    temp_id_prefix: str = Field("temp-", alias="MECHANIC_BOOKING_TEMP_ID_PREFIX")
    api_base_url: str = Field("http://localhost:8080", alias="MECHANIC_BOOKING_API_BASE_URL")
    api_token: Optional[SecretStr] = Field(None, alias="MECHANIC_BOOKING_API_TOKEN")
    timeout_seconds: float = Field(30.0, alias="MECHANIC_BOOKING_TIMEOUT_SECONDS")
    retry_attempts: int = Field(3, alias="MECHANIC_BOOKING_RETRY_ATTEMPTS")
    log_level: str = Field("INFO", alias="MECHANIC_BOOKING_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("vat_rate")
    @classmethod
    def check_vat_rate(cls, value: float) -> float:
        """VAT is expressed as a fraction, not a percentage."""
        if value < 0 or value >= 1:
            raise ValueError("vat_rate must be a fraction between 0 and 1")
        return value

    @field_validator("temp_id_prefix")
    @classmethod
    def check_temp_prefix(cls, value: str) -> str:
        if not value:
            raise ValueError("temp_id_prefix must not be empty")
        return value

    @property
    def vat_multiplier(self) -> float:
        return 1.0 + self.vat_rate


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings instance used when callers do not pass one."""
    return Settings()
