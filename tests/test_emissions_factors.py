"""
Tests for the Emissions Factor Table.

Tests cover:
- Known region lookups
- Provider average fallback for unknown regions
- Emission ratio listing
- CO2e figures for published grid factors
"""
import pytest
from app.schemas.footprint import CloudProvider
from app.services.carbon.energy import co2e_for
from app.services.carbon.emissions_factors import (
    AWS_EMISSIONS_FACTORS_METRIC_TON_PER_KWH,
    CLOUD_CONSTANTS,
    EmissionsFactorTable,
    GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH,
    load_emissions_factor_table,
)


class TestLookup:
    def test_known_region(self, gcp_factors):
        factor = gcp_factors.lookup("us-east1")

        assert factor.region == "us-east1"
        assert factor.co2e_per_kilowatt_hour == GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH["us-east1"]
        assert factor.power_usage_effectiveness == CLOUD_CONSTANTS[CloudProvider.GCP].power_usage_effectiveness
        assert factor.average_cpu_utilization == CLOUD_CONSTANTS[CloudProvider.GCP].average_cpu_utilization

    def test_unknown_region_falls_back_to_average(self, gcp_factors):
        """Retired or mis-tagged regions must not abort estimation."""
        factor = gcp_factors.lookup("mars-north1")

        assert factor is gcp_factors.average
        assert factor.co2e_per_kilowatt_hour == pytest.approx(0.0004016198698)
        assert factor.power_usage_effectiveness == 1.1

    def test_published_grid_factors(self, gcp_factors):
        assert gcp_factors.lookup("us-east1").co2e_per_kilowatt_hour == pytest.approx(0.000287849718)
        assert gcp_factors.lookup("us-west1").co2e_per_kilowatt_hour == pytest.approx(0.0001425187227)

    def test_aws_table(self):
        table = load_emissions_factor_table(CloudProvider.AWS)
        values = list(AWS_EMISSIONS_FACTORS_METRIC_TON_PER_KWH.values())
        assert table.lookup("us-west-2").co2e_per_kilowatt_hour == AWS_EMISSIONS_FACTORS_METRIC_TON_PER_KWH["us-west-2"]
        assert table.lookup("us-east-1").power_usage_effectiveness == 1.135
        assert table.lookup("unknown").co2e_per_kilowatt_hour == pytest.approx(sum(values) / len(values))

    def test_empty_table_rejected(self):
        with pytest.raises(ValueError, match="empty"):
            EmissionsFactorTable(CloudProvider.GCP, {}, CLOUD_CONSTANTS[CloudProvider.GCP])


def test_emission_ratios_lists_every_region(gcp_factors):
    ratios = gcp_factors.emission_ratios()

    assert len(ratios) == len(GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH)
    by_region = {r.region: r.mt_per_kw_hour for r in ratios}
    assert by_region["us-west1"] == GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH["us-west1"]
    assert ratios[0].model_dump(by_alias=True).keys() == {"region", "mtPerKwHour"}


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        GCP_EMISSIONS_FACTORS_METRIC_TON_PER_KWH["us-east1"] = 1.0


@pytest.mark.parametrize("region, watt_hours, expected_co2e", [
    ("us-east1", 40.7, 0.000011715483522600001),
    ("us-east1", 1467.9506421089175, 0.00042254917836897083),
    ("us-west1", 150.06866306066513, 0.000021387594176702666),
    ("unknown", 5.444798928995928, 0.000002186739436950524),
])
def test_co2e_matches_reference_figures(gcp_factors, region, watt_hours, expected_co2e):
    assert co2e_for(watt_hours, gcp_factors.lookup(region)) == pytest.approx(expected_co2e, rel=1e-9)
