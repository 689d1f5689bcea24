"""
Emissions Factor Table

Static reference data, loaded once and passed explicitly to estimators:
1. Grid carbon intensity per region (metric tons CO2e per kWh)
2. Provider cloud constants (vCPU wattage range, PUE, average CPU utilization,
   storage media coefficients)

Methodology Sources:
- Cloud Carbon Footprint (CCF) open source project
- Electricity Maps, EPA eGRID and provider sustainability reports
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import structlog

from app.schemas.footprint import CloudProvider, EmissionRatioResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class CloudConstants:
    min_watts_per_vcpu: float
    max_watts_per_vcpu: float
    power_usage_effectiveness: float
    average_cpu_utilization: float
    ssd_coefficient: float  # Wh per TB-hour
    hdd_coefficient: float  # Wh per TB-hour


@dataclass(frozen=True)
class EmissionsFactor:
    region: str
    co2e_per_kilowatt_hour: float  # metric tons
    power_usage_effectiveness: float
    average_cpu_utilization: float


CLOUD_CONSTANTS: Mapping[CloudProvider, CloudConstants] = MappingProxyType({
    CloudProvider.GCP: CloudConstants(
        min_watts_per_vcpu=0.71,
        max_watts_per_vcpu=4.26,
        power_usage_effectiveness=1.1,
        average_cpu_utilization=0.5,
        ssd_coefficient=1.2,
        hdd_coefficient=0.65,
    ),
    CloudProvider.AWS: CloudConstants(
        min_watts_per_vcpu=0.74,
        max_watts_per_vcpu=3.5,
        power_usage_effectiveness=1.135,
        average_cpu_utilization=0.5,
        ssd_coefficient=1.2,
        hdd_coefficient=0.65,
    ),
})


# Carbon intensity by GCP region (metric tons CO2e per kWh).
# Carolina/Virginia and Oregon: EPA eGRID subregion output rates (lbs/MWh).
LBS_PER_MWH_TO_METRIC_TON_PER_KWH = 0.45359237e-6

GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH: Mapping[str, float] = MappingProxyType({
    "us-central1": 0.000479,
    "us-east1": 634.6 * LBS_PER_MWH_TO_METRIC_TON_PER_KWH,
    "us-east4": 0.000383,
    "us-west1": 314.2 * LBS_PER_MWH_TO_METRIC_TON_PER_KWH,
    "us-west2": 0.000248,
    "us-west3": 0.000561,
    "us-west4": 0.000491,
    "asia-east1": 0.000541,
    "asia-east2": 0.000626,
    "asia-northeast1": 0.000524,
    "asia-northeast2": 0.000524,
    "asia-northeast3": 0.00054,
    "asia-south1": 0.000723,
    "asia-southeast1": 0.000493,
    "asia-southeast2": 0.000772,
    "australia-southeast1": 0.000725,
    "europe-north1": 0.000211,
    "europe-west1": 0.000267,
    "europe-west2": 0.000231,
    "europe-west3": 0.000338,
    "europe-west4": 0.00041,
    "europe-west6": 0.000087,
    "northamerica-northeast1": 0.000027,
    "southamerica-east1": 0.000103,
})

# Published fallback for regions missing from the table (885.42025 lbs/MWh)
GCP_AVERAGE_EMISSIONS_FACTOR_METRIC_TON_PER_KWH = 885.42025 * LBS_PER_MWH_TO_METRIC_TON_PER_KWH

# Carbon intensity by AWS region (metric tons CO2e per kWh)
AWS_EMISSIONS_FACTORS_METRIC_TON_PER_KWH: Mapping[str, float] = MappingProxyType({
    "us-west-2": 0.000021,      # Oregon - hydro
    "eu-north-1": 0.000028,     # Stockholm - hydro/nuclear
    "ca-central-1": 0.000035,   # Montreal - hydro
    "eu-west-1": 0.000316,      # Ireland - wind/gas mix
    "us-west-1": 0.000218,      # N. California
    "eu-west-2": 0.000225,      # London
    "eu-central-1": 0.000338,   # Frankfurt
    "us-east-1": 0.000379,      # N. Virginia
    "us-east-2": 0.00044,       # Ohio
    "ap-southeast-1": 0.000408, # Singapore
    "ap-south-1": 0.000708,     # Mumbai
    "ap-northeast-1": 0.000506, # Tokyo
})

_REGION_TABLES: Mapping[CloudProvider, Mapping[str, float]] = MappingProxyType({
    CloudProvider.GCP: GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH,
    CloudProvider.AWS: AWS_EMISSIONS_FACTORS_METRIC_TON_PER_KWH,
})

# Providers without a published fallback use the mean of their region table
_PROVIDER_AVERAGES: Mapping[CloudProvider, float] = MappingProxyType({
    CloudProvider.GCP: GCP_AVERAGE_EMISSIONS_FACTOR_METRIC_TON_PER_KWH,
})


class EmissionsFactorTable:
    """
    Region -> EmissionsFactor lookup for one cloud provider.

    Unknown regions are not an error: production billing data routinely
    carries retired or mis-tagged region codes, so lookups fall back to the
    provider average (published fallback if given, else the mean of the
    region table; provider PUE either way).
    """

    def __init__(
        self,
        provider: CloudProvider,
        regions: Mapping[str, float],
        constants: CloudConstants,
        average: Optional[float] = None,
    ):
        if not regions:
            raise ValueError(f"Emissions factor table for {provider.value} is empty")
        self.provider = provider
        self.constants = constants
        self._factors: Dict[str, EmissionsFactor] = {
            region: self._factor(region, ratio) for region, ratio in regions.items()
        }
        if average is None:
            average = sum(regions.values()) / len(regions)
        self.average = self._factor("average", average)

    def _factor(self, region: str, co2e_per_kwh: float) -> EmissionsFactor:
        return EmissionsFactor(
            region=region,
            co2e_per_kilowatt_hour=co2e_per_kwh,
            power_usage_effectiveness=self.constants.power_usage_effectiveness,
            average_cpu_utilization=self.constants.average_cpu_utilization,
        )

    def lookup(self, region: str) -> EmissionsFactor:
        factor = self._factors.get(region)
        if factor is None:
            logger.debug("emissions_factor_region_unknown", provider=self.provider.value, region=region)
            return self.average
        return factor

    def emission_ratios(self) -> List[EmissionRatioResult]:
        return [
            EmissionRatioResult(region=region, mt_per_kw_hour=factor.co2e_per_kilowatt_hour)
            for region, factor in self._factors.items()
        ]


def load_emissions_factor_table(provider: CloudProvider) -> EmissionsFactorTable:
    """Build the immutable table for a provider. Call once at startup."""
    return EmissionsFactorTable(
        provider, _REGION_TABLES[provider], CLOUD_CONSTANTS[provider], _PROVIDER_AVERAGES.get(provider)
    )
