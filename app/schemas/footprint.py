"""
Footprint Schemas - Usage rows in, bucketed estimates out.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CloudProvider(str, Enum):
    GCP = "GCP"
    AWS = "AWS"


class GroupBy(str, Enum):
    """Time-truncation unit for bucketing estimates."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either snake_case or camelCase on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UsageRow(CamelModel):
    """One billing line item as produced by a Usage Data Source or File Reader."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, allow_inf_nan=False)

    timestamp: datetime
    account_name: str
    service_name: str
    region: str = "unknown"
    usage_type: str = ""
    usage_amount: float = 0.0
    usage_unit: str = ""
    cost: float = 0.0
    cloud_provider: CloudProvider = CloudProvider.GCP
    # Measured utilization (0..1) when a monitoring source supplies one
    cpu_utilization: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_to_utc(cls, value: Union[date, datetime, str]) -> datetime:
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return value

    @field_validator("region", mode="before")
    @classmethod
    def default_region(cls, value: Optional[str]) -> str:
        return value or "unknown"


class FootprintEstimate(CamelModel):
    """Energy and emissions estimate derived from one classifiable UsageRow."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    watt_hours: float
    co2e: float
    uses_average_cpu_constant: bool
    cloud_provider: CloudProvider
    account_name: str
    service_name: str
    cost: float
    region: str


class EstimationResult(CamelModel):
    """
    All estimates falling in one bucket.

    `group` holds the secondary grouping values keyed by dimension
    (e.g. {"service": "App Engine", "region": "us-east1"})
    and is None when no grouping was requested.
    """
    timestamp: date
    service_estimates: List[FootprintEstimate] = Field(default_factory=list)
    group: Optional[Dict[str, str]] = None


class EmissionRatioResult(CamelModel):
    region: str
    mt_per_kw_hour: float
