"""
Estimate Accumulator

Folds per-row FootprintEstimates into EstimationResults keyed by
(bucket start, grouping values...).

Order contract:
- results appear in discovery order of their bucket during the input scan,
  NOT chronologically; callers that need time order sort afterwards
  (see footprint_app.sort_by_timestamp)
- estimates inside a bucket keep arrival order and are appended, never
  summed, so the same (row, estimate) added twice yields two entries
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

from app.schemas.footprint import EstimationResult, FootprintEstimate, GroupBy, UsageRow

DEFAULT_GRANULARITY = GroupBy.MONTH

# Secondary grouping dimension -> UsageRow attribute
GROUPING_DIMENSIONS: Dict[str, str] = {
    "service": "service_name",
    "account": "account_name",
    "region": "region",
}

BucketKey = Tuple[date, Tuple[Tuple[str, str], ...]]


def truncate(moment: Union[date, datetime], granularity: Optional[GroupBy] = None) -> date:
    """Start of the UTC day/week/month containing `moment`. Weeks start on Sunday."""
    granularity = granularity or DEFAULT_GRANULARITY
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        moment = moment.date()

    if granularity == GroupBy.DAY:
        return moment
    if granularity == GroupBy.WEEK:
        # date.weekday(): Monday == 0 ... Sunday == 6
        return moment - timedelta(days=(moment.weekday() + 1) % 7)
    if granularity == GroupBy.MONTH:
        return moment.replace(day=1)
    raise ValueError(f"Unsupported granularity: {granularity}")


def validate_dimensions(dimensions: Sequence[str]) -> Tuple[str, ...]:
    unknown = [d for d in dimensions if d not in GROUPING_DIMENSIONS]
    if unknown:
        raise ValueError(f"Unsupported grouping dimension(s): {', '.join(unknown)}")
    return tuple(dimensions)


def _group_values(row: UsageRow, dimensions: Sequence[str]) -> Optional[Dict[str, str]]:
    if not dimensions:
        return None
    return {d: str(getattr(row, GROUPING_DIMENSIONS[d])) for d in dimensions}


def append_or_accumulate_estimates(
    results: List[EstimationResult],
    row: UsageRow,
    estimate: FootprintEstimate,
    granularity: Optional[GroupBy] = None,
    dimensions: Sequence[str] = (),
) -> List[EstimationResult]:
    """
    Fold one estimate into `results` in place and return it.

    Matching is by value: an existing result with the same bucket start and
    the same grouping values receives the estimate; otherwise a new result is
    appended at the end.
    """
    bucket_start = truncate(row.timestamp, granularity)
    group = _group_values(row, dimensions)

    for result in results:
        if result.timestamp == bucket_start and result.group == group:
            result.service_estimates.append(estimate)
            return results

    results.append(EstimationResult(timestamp=bucket_start, service_estimates=[estimate], group=group))
    return results


class EstimateAccumulator:
    """
    Accumulator owned by a single aggregation call.

    Same semantics as append_or_accumulate_estimates, with a key index so a
    large scan doesn't rescan the result list for every row.
    """

    def __init__(self, granularity: Optional[GroupBy] = None, dimensions: Sequence[str] = ()):
        self.granularity = granularity or DEFAULT_GRANULARITY
        self.dimensions = validate_dimensions(dimensions)
        self._results: List[EstimationResult] = []
        self._index: Dict[BucketKey, EstimationResult] = {}

    def key_for(self, row: UsageRow) -> BucketKey:
        bucket_start = truncate(row.timestamp, self.granularity)
        group = _group_values(row, self.dimensions) or {}
        return bucket_start, tuple(group.items())

    def add(self, row: UsageRow, estimate: FootprintEstimate) -> EstimationResult:
        key = self.key_for(row)
        result = self._index.get(key)
        if result is None:
            result = EstimationResult(
                timestamp=key[0],
                service_estimates=[],
                group=dict(key[1]) if self.dimensions else None,
            )
            self._index[key] = result
            self._results.append(result)
        result.service_estimates.append(estimate)
        return result

    def __len__(self) -> int:
        return len(self._results)

    @property
    def results(self) -> List[EstimationResult]:
        return list(self._results)
