"""
Application configuration settings.
Reads from environment variables and .env file.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from routerisk.services.algorithm_config import (
    MIN_RISK_SCORE,
    OBSTRUCTION_SEARCH_RADIUS_M,
)


class Settings(BaseSettings):
    """Runtime settings for provider I/O and analysis limits."""

    PROJECT_NAME: str = "RouteRisk"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Elevation provider (Open-Elevation compatible lookup endpoint)
    ELEVATION_API_URL: str = "https://api.open-elevation.com/api/v1/lookup"

    # OpenStreetMap Overpass API (buildings, road attributes)
    OVERPASS_API_URL: str = "https://overpass-api.de/api/interpreter"

    # Provider I/O limits
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    ELEVATION_BATCH_SIZE: int = Field(default=100, ge=1, le=100)
    PROVIDER_BATCH_DELAY_SECONDS: float = Field(default=0.1, ge=0)
    PROVIDER_CONCURRENCY: int = Field(default=4, ge=1)

    # Analysis
    OBSTRUCTION_SEARCH_RADIUS_M: float = Field(default=OBSTRUCTION_SEARCH_RADIUS_M, gt=0)
    ANALYSIS_TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)
    MIN_RISK_SCORE: float = Field(default=MIN_RISK_SCORE, ge=1.0, le=10.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


# Global settings instance
settings = Settings()
