from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
from typing import Optional


class Settings(BaseSettings):
    """
    Main configuration for the Cloud Carbon Footprint service.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """
    APP_NAME: str = "Cloud Carbon Footprint"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    TESTING: bool = False

    # Provider whose constants and emissions factors are used
    CLOUD_PROVIDER: str = "GCP"

    # GCP Billing Export (BigQuery)
    GCP_PROJECT_ID: Optional[str] = None
    GCP_BILLING_PROJECT_ID: Optional[str] = None
    GCP_BILLING_DATASET: Optional[str] = None
    GCP_BILLING_TABLE: Optional[str] = None
    GCP_SERVICE_ACCOUNT_JSON: Optional[str] = None

    # File Reader fallback when no billing export is configured
    USAGE_CSV_PATH: str = "google-carbon-data.csv"

    # Estimation defaults
    DEFAULT_GROUP_BY: str = "month"
    ESTIMATE_CACHE_TTL_SECONDS: int = 3600

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @model_validator(mode='after')
    def validate_billing_export_config(self) -> 'Settings':
        """Fail-closed: a billing dataset without a table (or vice versa) is a typo, not a fallback."""
        if self.TESTING:
            return self

        if bool(self.GCP_BILLING_DATASET) != bool(self.GCP_BILLING_TABLE):
            raise ValueError(
                "GCP_BILLING_DATASET and GCP_BILLING_TABLE must be configured together."
            )
        if self.DEFAULT_GROUP_BY not in ("day", "week", "month"):
            raise ValueError(f"DEFAULT_GROUP_BY must be day, week or month. Current: {self.DEFAULT_GROUP_BY}")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True
    )

    @property
    def use_billing_export(self) -> bool:
        return bool(self.GCP_PROJECT_ID and self.GCP_BILLING_DATASET and self.GCP_BILLING_TABLE)


@lru_cache
def get_settings():
    """Returns a singleton instance of the application settings."""
    return Settings()
