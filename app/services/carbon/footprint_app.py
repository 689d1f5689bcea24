import math
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from app.core.config import Settings, get_settings
from app.core.exceptions import PartialDataError
from app.schemas.footprint import (
    CloudProvider,
    EmissionRatioResult,
    EstimationResult,
    FootprintEstimate,
    GroupBy,
    UsageRow,
)
from app.services.adapters.base import UsageDataSource
from app.services.adapters.csv_reader import CsvUsageReader
from app.services.adapters.estimate_cache import EstimateCache, InMemoryCache
from app.services.adapters.gcp import BigQueryUsageDataSource
from app.services.carbon.accumulator import EstimateAccumulator, truncate
from app.services.carbon.billing_export import BillingExportTable
from app.services.carbon.compute_estimator import ComputeEstimator
from app.services.carbon.emissions_factors import EmissionsFactorTable, load_emissions_factor_table
from app.services.carbon.request import EstimationRequest
from app.services.carbon.storage_estimator import StorageEstimator

logger = structlog.get_logger()


def sort_by_timestamp(results: List[EstimationResult]) -> List[EstimationResult]:
    """Chronological copy of an accumulator's output. The accumulator itself never sorts."""
    return sorted(results, key=lambda result: result.timestamp)


def reduce_by_timestamp(results: List[EstimationResult]) -> List[EstimationResult]:
    """Collapse grouped results sharing a timestamp into one ungrouped result per timestamp."""
    merged: Dict[Any, EstimationResult] = {}
    for result in results:
        target = merged.get(result.timestamp)
        if target is None:
            merged[result.timestamp] = EstimationResult(
                timestamp=result.timestamp,
                service_estimates=list(result.service_estimates),
            )
        else:
            target.service_estimates.extend(result.service_estimates)
    return list(merged.values())


class FootprintApp:
    """
    Entry point used by the API layer.

    Uses the BigQuery billing export when it is configured, otherwise the
    File Reader, and caches serialized results per request window.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        data_source: Optional[UsageDataSource] = None,
        csv_reader: Optional[CsvUsageReader] = None,
        cache: Optional[EstimateCache] = None,
        factors: Optional[EmissionsFactorTable] = None,
    ):
        self.settings = settings or get_settings()
        self.factors = factors or load_emissions_factor_table(CloudProvider(self.settings.CLOUD_PROVIDER))
        if data_source is None and csv_reader is None and self.settings.use_billing_export:
            data_source = BigQueryUsageDataSource.from_settings(self.settings)
        self.data_source = data_source
        self.csv_reader = csv_reader or CsvUsageReader(self.settings.USAGE_CSV_PATH)
        self.cache = cache or EstimateCache(InMemoryCache(), self.settings.ESTIMATE_CACHE_TTL_SECONDS)
        self.billing_export_table = BillingExportTable(
            ComputeEstimator(self.factors),
            StorageEstimator.ssd(self.factors),
            StorageEstimator.hdd(self.factors),
            data_source=self.data_source,
            cloud_provider=self.factors.provider,
        )

    def _cache_group_key(self, request: EstimationRequest) -> str:
        return ",".join([request.group_by.value, *request.dimensions])

    async def get_cost_and_estimates(self, request: EstimationRequest) -> List[EstimationResult]:
        group_key = self._cache_group_key(request)
        if not request.ignore_cache:
            cached = await self.cache.get_estimates(request.start_date, request.end_date, group_key)
            if cached is not None:
                return [EstimationResult.model_validate(item) for item in cached]

        if self.data_source is not None:
            results = await self.billing_export_table.get_estimates(
                request.start_date, request.end_date, request.group_by, request.dimensions
            )
        else:
            results = self._estimates_from_file(request)

        await self.cache.set_estimates(
            request.start_date,
            request.end_date,
            group_key,
            [result.model_dump(mode="json", by_alias=True) for result in results],
        )
        return results

    def _estimates_from_file(self, request: EstimationRequest) -> List[EstimationResult]:
        records = self.csv_reader.read()
        in_range = [
            record for record in records
            if request.start_date <= record["timestamp"].date() <= request.end_date
        ]
        self._check_coverage(in_range, request)

        if "usageAmount" not in in_range[0]:
            return self._fold_precomputed(in_range, request.group_by, request.dimensions)
        return self.billing_export_table.fold_rows(in_range, request.group_by, request.dimensions)

    @staticmethod
    def _check_coverage(records, request: EstimationRequest) -> None:
        """The file must reach the first and last bucket of the requested range."""
        details = {"start": request.start_date.isoformat(), "end": request.end_date.isoformat()}
        if not records:
            raise PartialDataError("Usage file has no data for the requested range", details=details)

        dates = [record["timestamp"].date() for record in records]
        first, last = min(dates), max(dates)
        if (
            truncate(first, request.group_by) > truncate(request.start_date, request.group_by)
            or truncate(last, request.group_by) < truncate(request.end_date, request.group_by)
        ):
            raise PartialDataError(
                f"Usage file covers {first.isoformat()} to {last.isoformat()}, "
                f"less than the requested {request.start_date.isoformat()} to {request.end_date.isoformat()}",
                details={**details, "covered_start": first.isoformat(), "covered_end": last.isoformat()},
            )

    def _fold_precomputed(self, records, group_by: GroupBy, dimensions) -> List[EstimationResult]:
        """Rows that already carry co2e: back-derive energy from the region factor."""
        accumulator = EstimateAccumulator(group_by, dimensions)
        for record in records:
            try:
                row = UsageRow.model_validate({"cloudProvider": self.factors.provider, **record})
                co2e = float(record["co2e"])
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning("usage_file_skip_record", error=str(e))
                continue
            if not math.isfinite(co2e):
                logger.warning("usage_file_skip_record", error="co2e is not a finite number")
                continue

            factor = self.factors.lookup(row.region)
            estimate = FootprintEstimate(
                watt_hours=co2e / factor.co2e_per_kilowatt_hour * 1000,
                co2e=co2e,
                uses_average_cpu_constant=False,
                cloud_provider=row.cloud_provider,
                account_name=row.account_name,
                service_name=row.service_name,
                cost=row.cost,
                region=row.region,
            )
            accumulator.add(row, estimate)
        return accumulator.results

    def get_emissions_factors(self) -> List[EmissionRatioResult]:
        return self.factors.emission_ratios()
