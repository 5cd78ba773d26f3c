"""Configuration management using Pydantic Settings."""

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # NASA POWER provider
    nasa_power_url: str = Field(
        default="https://power.larc.nasa.gov/api/temporal/climatology/point",
        description="NASA POWER point endpoint",
    )
    community: str = Field(default="RE", description="NASA POWER user community code")
    request_timeout: float = Field(default=10.0, gt=0.0, le=120.0)
    fill_value: float = Field(
        default=-999.0,
        description="Fill code for missing days when the payload header omits one",
    )

    # Query window: reference date widened by +/- N years
    window_years: int = Field(default=1, ge=0, le=40)

    # Fan-out
    batch_parameters: bool = Field(
        default=True,
        description="Request all parameters in one call instead of one call per parameter",
    )
    max_workers: int = Field(default=4, ge=1, le=16)
    cancel_poll_interval: float = Field(
        default=0.1,
        gt=0.0,
        le=5.0,
        description="Seconds between checks of a query's cancel event",
    )

    # Retry (off by default, single attempt then fallback)
    max_retries: int = Field(default=0, ge=0, le=5)
    retry_backoff: float = Field(default=0.5, ge=0.0, le=10.0)
    retry_jitter: float = Field(default=0.25, ge=0.0, le=5.0)

    # Fallback data
    fallback_sample_size: int = Field(default=30, ge=1, le=1000)
    fallback_seed: Optional[int] = Field(
        default=None,
        ge=0,
        description="Fixed fallback seed; derived from the query when unset",
    )

    # Probability heuristic bounds
    probability_floor: float = Field(default=30.0, ge=0.0, le=100.0)
    probability_ceiling: float = Field(default=95.0, ge=0.0, le=100.0)
    neutral_probability: float = Field(default=50.0, ge=0.0, le=100.0)

    # Logging
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _check_probability_bounds(self) -> "Settings":
        if self.probability_floor > self.probability_ceiling:
            raise ValueError("probability_floor must not exceed probability_ceiling")
        if not self.probability_floor <= self.neutral_probability <= self.probability_ceiling:
            raise ValueError("neutral_probability must lie between floor and ceiling")
        return self


# Global settings instance
settings = Settings()
