"""
Compute Estimator

Converts vCPU time into energy and emissions:

    wattHours = vCpuHours * (minWatts + utilization * (maxWatts - minWatts)) * PUE
    co2e      = wattHours / 1000 * co2ePerKilowattHour(region)

When no measured utilization is available the provider's average CPU
utilization is substituted and the estimate is flagged with
`uses_average_cpu_constant`, which downstream consumers read as reduced
confidence. No rounding is applied here.
"""

from typing import Optional

from app.services.carbon.emissions_factors import EmissionsFactorTable
from app.services.carbon.energy import EnergyEstimate, co2e_for


class ComputeEstimator:
    def __init__(self, factors: EmissionsFactorTable):
        self.factors = factors

    def estimate(
        self,
        vcpu_hours: float,
        region: str,
        usage_ratio: Optional[float] = None,
    ) -> EnergyEstimate:
        constants = self.factors.constants
        factor = self.factors.lookup(region)

        uses_average = usage_ratio is None
        utilization = factor.average_cpu_utilization if uses_average else usage_ratio

        watts = constants.min_watts_per_vcpu + utilization * (
            constants.max_watts_per_vcpu - constants.min_watts_per_vcpu
        )
        watt_hours = vcpu_hours * watts * factor.power_usage_effectiveness

        return EnergyEstimate(
            watt_hours=watt_hours,
            co2e=co2e_for(watt_hours, factor),
            uses_average_cpu_constant=uses_average,
        )

    def estimate_seconds(
        self,
        processor_seconds: float,
        region: str,
        usage_ratio: Optional[float] = None,
    ) -> EnergyEstimate:
        """Same as estimate() for usage reported in vCPU-seconds."""
        return self.estimate(processor_seconds / 3600, region, usage_ratio)
