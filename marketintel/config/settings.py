"""
Market Intelligence Engine Configuration

Engine settings loaded from the environment with pydantic-settings, and the
per-call options model accepted by the aggregator.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IntelligenceOptions(BaseModel):
    """
    Feature toggles and tuning knobs for one aggregation call.

    Every field has a default; an empty dict is a valid options object.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Feature groups: P0 = regime + smart money, P1 = rotation, P2 = active stocks
    include_p0: bool = Field(default=True, alias="includeP0")
    include_p1: bool = Field(default=True, alias="includeP1")
    include_p2: bool = Field(default=True, alias="includeP2")

    top_sectors_count: int = Field(default=5, ge=1, le=50, alias="topSectorsCount")
    bottom_sectors_count: int = Field(default=5, ge=1, le=50, alias="bottomSectorsCount")
    top_stocks_count: int = Field(default=10, ge=1, le=100, alias="topStocksCount")
    max_data_age_minutes: int = Field(default=60, ge=1, alias="maxDataAgeMinutes")
    percentile_cutoff: float = Field(default=30.0, gt=0, le=100, alias="percentileCutoff")
    max_stocks_per_category: int = Field(default=50, ge=1, le=500, alias="maxStocksPerCategory")


class IntelligenceSettings(BaseSettings):
    """
    Engine configuration settings.

    Values are read from MARKETINTEL_* environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MARKETINTEL_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON structured logs instead of console format.",
    )
    ENVIRONMENT: str = Field(default="development")

    # Reference data
    REFERENCE_DATA_PATH: Optional[str] = Field(
        default=None,
        description="YAML file with sector taxonomy and symbol mapping. "
        "Defaults to the packaged reference data.",
    )

    # Regime
    BASELINE_VOLUME: Optional[float] = Field(
        default=None,
        gt=0,
        description="Baseline traded volume for the liquidity ratio. "
        "When unset the ratio is 1.0.",
    )

    # Option defaults
    INCLUDE_P0: bool = True
    INCLUDE_P1: bool = True
    INCLUDE_P2: bool = True
    TOP_SECTORS_COUNT: int = Field(default=5, ge=1, le=50)
    BOTTOM_SECTORS_COUNT: int = Field(default=5, ge=1, le=50)
    TOP_STOCKS_COUNT: int = Field(default=10, ge=1, le=100)
    MAX_DATA_AGE_MINUTES: int = Field(default=60, ge=1)
    PERCENTILE_CUTOFF: float = Field(default=30.0, gt=0, le=100)
    MAX_STOCKS_PER_CATEGORY: int = Field(default=50, ge=1, le=500)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    def to_options(self) -> IntelligenceOptions:
        """Build the default per-call options from these settings."""
        return IntelligenceOptions(
            include_p0=self.INCLUDE_P0,
            include_p1=self.INCLUDE_P1,
            include_p2=self.INCLUDE_P2,
            top_sectors_count=self.TOP_SECTORS_COUNT,
            bottom_sectors_count=self.BOTTOM_SECTORS_COUNT,
            top_stocks_count=self.TOP_STOCKS_COUNT,
            max_data_age_minutes=self.MAX_DATA_AGE_MINUTES,
            percentile_cutoff=self.PERCENTILE_CUTOFF,
            max_stocks_per_category=self.MAX_STOCKS_PER_CATEGORY,
        )


@lru_cache()
def get_settings() -> IntelligenceSettings:
    """
    Get cached engine settings instance.

    Uses lru_cache so the environment is read once per process.
    """
    return IntelligenceSettings()
