"""
Billing Export Aggregator

Turns a date range of GCP billing export rows into bucketed footprint
estimates:

1. Submit one query job for the closed range [start, end]
2. Retrieve its rows
3. Classify -> estimate -> accumulate each row

Submission and retrieval failures surface as distinct error kinds with the
upstream reason/location/domain/message embedded. Unclassifiable rows are
dropped and counted, never raised.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from app.core.exceptions import (
    ConfigurationError,
    QueryJobSubmissionError,
    QueryResultRetrievalError,
    UsageDataSourceError,
)
from app.schemas.footprint import CloudProvider, EstimationResult, FootprintEstimate, GroupBy, UsageRow
from app.services.adapters.base import UsageDataSource
from app.services.carbon.accumulator import EstimateAccumulator
from app.services.carbon.compute_estimator import ComputeEstimator
from app.services.carbon.storage_estimator import StorageEstimator
from app.services.carbon.usage_classifier import (
    Classification,
    ComputeUsage,
    HddStorageUsage,
    SsdStorageUsage,
    Unclassified,
    classify,
)

logger = structlog.get_logger()

MALFORMED_ROW = "malformed_row"


@dataclass
class AggregationStats:
    """Diagnostics for one aggregation call."""
    rows_read: int = 0
    rows_estimated: int = 0
    rows_dropped: int = 0
    dropped_by_reason: Dict[str, int] = field(default_factory=dict)


class BillingExportTable:
    def __init__(
        self,
        compute_estimator: ComputeEstimator,
        ssd_storage_estimator: StorageEstimator,
        hdd_storage_estimator: StorageEstimator,
        data_source: Optional[UsageDataSource] = None,
        cloud_provider: CloudProvider = CloudProvider.GCP,
    ):
        self.compute_estimator = compute_estimator
        self.ssd_storage_estimator = ssd_storage_estimator
        self.hdd_storage_estimator = hdd_storage_estimator
        self.data_source = data_source
        self.cloud_provider = cloud_provider

    @staticmethod
    def build_query(table_path: str) -> str:
        return f"""
            SELECT
                TIMESTAMP_TRUNC(usage_start_time, DAY) AS timestamp,
                project.name AS accountName,
                IFNULL(location.region, location.location) AS region,
                service.description AS serviceName,
                sku.description AS usageType,
                usage.unit AS usageUnit,
                SUM(usage.amount) AS usageAmount,
                SUM(cost) AS cost
            FROM `{table_path}`
            WHERE cost_type != 'rounding_error'
              AND usage_start_time BETWEEN @start_date AND @end_date
            GROUP BY timestamp, accountName, region, serviceName, usageType, usageUnit
        """  # nosec: B608 - table path is validated by the data source

    @staticmethod
    def query_params(start_date: date, end_date: date) -> Dict[str, Any]:
        return {
            "start_date": datetime.combine(start_date, time.min, tzinfo=timezone.utc),
            "end_date": datetime.combine(end_date, time.max, tzinfo=timezone.utc),
        }

    async def get_estimates(
        self,
        start_date: date,
        end_date: date,
        granularity: Optional[GroupBy] = None,
        dimensions: Sequence[str] = (),
        stats: Optional[AggregationStats] = None,
    ) -> List[EstimationResult]:
        """Estimates for the closed range [start_date, end_date]. `stats`, when given, receives this call's row counts."""
        if self.data_source is None:
            raise ConfigurationError("No usage data source configured for the billing export")

        query = self.build_query(self.data_source.table_path)

        try:
            job = await self.data_source.create_query_job(query, self.query_params(start_date, end_date))
        except UsageDataSourceError as e:
            raise QueryJobSubmissionError(e.reason, e.location, e.message) from e

        try:
            rows = await job.get_results()
        except UsageDataSourceError as e:
            raise QueryResultRetrievalError(e.reason, e.domain, e.message) from e

        stats = stats if stats is not None else AggregationStats()
        results = self.fold_rows(rows, granularity, dimensions, stats)
        logger.info(
            "billing_export_estimated",
            start=start_date.isoformat(),
            end=end_date.isoformat(),
            buckets=len(results),
            rows_read=stats.rows_read,
            rows_dropped=stats.rows_dropped,
        )
        return results

    def fold_rows(
        self,
        rows: Iterable[Dict[str, Any]],
        granularity: Optional[GroupBy] = None,
        dimensions: Sequence[str] = (),
        stats: Optional[AggregationStats] = None,
    ) -> List[EstimationResult]:
        """Classify, estimate and accumulate raw rows. Never raises for unusable rows."""
        accumulator = EstimateAccumulator(granularity, dimensions)
        stats = stats if stats is not None else AggregationStats()
        dropped: Counter = Counter()

        for raw in rows:
            stats.rows_read += 1
            try:
                row = UsageRow.model_validate({"cloudProvider": self.cloud_provider, **raw})
            except ValidationError:
                dropped[MALFORMED_ROW] += 1
                continue

            classification = classify(row)
            estimate = self.estimate(row, classification)
            if estimate is None:
                dropped[classification.reason.value] += 1
                continue

            accumulator.add(row, estimate)
            stats.rows_estimated += 1

        stats.rows_dropped = sum(dropped.values())
        stats.dropped_by_reason = dict(dropped)

        if stats.rows_dropped:
            logger.info("usage_rows_dropped", count=stats.rows_dropped, by_reason=stats.dropped_by_reason)
        return accumulator.results

    def estimate(self, row: UsageRow, classification: Classification) -> Optional[FootprintEstimate]:
        if isinstance(classification, ComputeUsage):
            energy = self.compute_estimator.estimate(
                classification.vcpu_hours, row.region, classification.usage_ratio
            )
        elif isinstance(classification, SsdStorageUsage):
            energy = self.ssd_storage_estimator.estimate(classification.terabyte_hours, row.region)
        elif isinstance(classification, HddStorageUsage):
            energy = self.hdd_storage_estimator.estimate(classification.terabyte_hours, row.region)
        elif isinstance(classification, Unclassified):
            return None
        else:
            raise TypeError(f"Unhandled usage classification: {classification!r}")

        return FootprintEstimate(
            watt_hours=energy.watt_hours,
            co2e=energy.co2e,
            uses_average_cpu_constant=energy.uses_average_cpu_constant,
            cloud_provider=row.cloud_provider,
            account_name=row.account_name,
            service_name=row.service_name,
            cost=row.cost,
            region=row.region,
        )
