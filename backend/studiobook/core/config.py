# backend/studiobook/core/config.py
import logging
import os
from datetime import time
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only outside CI and test runs
if not os.getenv("CI") and not is_running_tests():
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    # Studio calendar defaults
    default_timezone: str = Field(
        default="America/New_York",
        description="Fallback IANA zone for studios without a configured timezone",
    )
    default_slot_granularity_minutes: int = Field(
        default=30,
        gt=0,
        le=24 * 60,
        description="Step between candidate appointment start times",
    )

    # Shift registry
    regular_shift_horizon_weeks: int = Field(
        default=52,
        gt=0,
        description="How far a never-ending regular shift template is materialized",
    )
    default_shift_start: time = Field(
        default=time(9, 0),
        description="Start of the default weekday shift template",
    )
    default_shift_end: time = Field(
        default=time(17, 0),
        description="End of the default weekday shift template",
    )

    # Monitoring
    slow_operation_threshold_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Measured service operations slower than this are logged",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if cleaned not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return cleaned

    @model_validator(mode="after")
    def _check_default_shift(self) -> "Settings":
        if self.default_shift_end <= self.default_shift_start:
            raise ValueError("DEFAULT_SHIFT_END must be after DEFAULT_SHIFT_START")
        return self


settings = Settings()
