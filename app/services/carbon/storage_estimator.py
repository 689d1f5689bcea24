from app.services.carbon.emissions_factors import EmissionsFactorTable
from app.services.carbon.energy import EnergyEstimate, co2e_for


class StorageEstimator:
    """
    Converts storage capacity over time into energy and emissions.

    One instance per media type: the coefficient is the Wh drawn per
    TB-hour (SSD and HDD differ), scaled by the region's PUE.
    """

    def __init__(self, coefficient: float, factors: EmissionsFactorTable):
        self.coefficient = coefficient
        self.factors = factors

    def estimate(self, terabyte_hours: float, region: str) -> EnergyEstimate:
        factor = self.factors.lookup(region)
        watt_hours = terabyte_hours * self.coefficient * factor.power_usage_effectiveness
        return EnergyEstimate(watt_hours=watt_hours, co2e=co2e_for(watt_hours, factor))

    @classmethod
    def ssd(cls, factors: EmissionsFactorTable) -> "StorageEstimator":
        return cls(factors.constants.ssd_coefficient, factors)

    @classmethod
    def hdd(cls, factors: EmissionsFactorTable) -> "StorageEstimator":
        return cls(factors.constants.hdd_coefficient, factors)
