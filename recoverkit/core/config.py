# recoverkit/core/config.py
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Resilience defaults, loaded from environment variables and/or .env file.

    Components never read these directly; pass an instance to the
    `from_settings` factories (RetryPolicy, CircuitBreaker, Bulkhead, Safe).
    """

    # Environment settings
    APP_NAME: str = "recoverkit"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Retry defaults
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_BACKOFF_BASE_SECONDS: float = Field(default=0.2, ge=0.0)
    RETRY_BACKOFF_MULTIPLIER: float = Field(default=2.0, ge=1.0)
    RETRY_BACKOFF_MAX_SECONDS: Optional[float] = 5.0
    RETRY_USE_JITTER: bool = True

    # Circuit breaker defaults
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS: float = 60.0
    CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD: int = 3
    CIRCUIT_BREAKER_TIME_WINDOW_SECONDS: float = 60.0
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS: int = 1

    # Bulkhead defaults
    BULKHEAD_DEFAULT_MAX_CONCURRENCY: int = 10
    BULKHEAD_DEFAULT_TIMEOUT_SECONDS: float = 30.0

    # Safe executor / monitoring
    SAFE_DEFAULT_TIMEOUT_SECONDS: Optional[float] = None
    SLOW_CALL_THRESHOLD_SECONDS: Optional[float] = 1.0

    @field_validator(
        "CIRCUIT_BREAKER_FAILURE_THRESHOLD",
        "CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD",
        "CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS",
        "BULKHEAD_DEFAULT_MAX_CONCURRENCY",
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator(
        "CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS",
        "CIRCUIT_BREAKER_TIME_WINDOW_SECONDS",
        "BULKHEAD_DEFAULT_TIMEOUT_SECONDS",
    )
    @classmethod
    def _positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        """Accept lowercase level names from the environment."""
        return str(value).upper()

    @model_validator(mode="after")
    def _cap_covers_base(self) -> "Settings":
        """The retry cap must not be smaller than the first delay."""
        cap = self.RETRY_BACKOFF_MAX_SECONDS
        if cap is not None and cap < self.RETRY_BACKOFF_BASE_SECONDS:
            raise ValueError(
                "RETRY_BACKOFF_MAX_SECONDS must be >= RETRY_BACKOFF_BASE_SECONDS"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local", "test")

    model_config = SettingsConfigDict(
        env_prefix="RECOVERKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for applications wiring up components."""
    return Settings()
