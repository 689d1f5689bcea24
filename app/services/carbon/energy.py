from dataclasses import dataclass

from app.services.carbon.emissions_factors import EmissionsFactor


@dataclass(frozen=True)
class EnergyEstimate:
    """Energy and emissions for one usage quantity, before row metadata is attached."""
    watt_hours: float
    co2e: float
    uses_average_cpu_constant: bool = False


def co2e_for(watt_hours: float, factor: EmissionsFactor) -> float:
    """Metric tons CO2e for an energy figure in a region."""
    return watt_hours / 1000 * factor.co2e_per_kilowatt_hour
