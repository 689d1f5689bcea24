from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

import structlog

from app.core.exceptions import EstimationRequestValidationError
from app.schemas.footprint import GroupBy
from app.services.carbon.accumulator import GROUPING_DIMENSIONS

logger = structlog.get_logger()


@dataclass(frozen=True)
class FootprintEstimatesRawRequest:
    """Query parameters exactly as received."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    group_by: Optional[str] = None
    ignore_cache: Optional[str] = None
    dimensions: Optional[str] = None


@dataclass(frozen=True)
class EstimationRequest:
    start_date: date
    end_date: date
    group_by: GroupBy = GroupBy.MONTH
    ignore_cache: bool = False
    dimensions: Tuple[str, ...] = field(default_factory=tuple)


def _parse_date(value: Optional[str], name: str) -> date:
    if not value:
        raise EstimationRequestValidationError(f"{name} is required", details={"param": name})
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise EstimationRequestValidationError(
            f"{name} must be a date in the format YYYY-MM-DD", details={"param": name, "value": value}
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def _parse_bool(value: Optional[str], name: str) -> bool:
    if value is None or value == "":
        return False
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    raise EstimationRequestValidationError(f"{name} must be true or false", details={"param": name, "value": value})


def _parse_dimensions(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    dimensions: List[str] = [d.strip() for d in value.split(",") if d.strip()]
    unknown = [d for d in dimensions if d not in GROUPING_DIMENSIONS]
    if unknown:
        raise EstimationRequestValidationError(
            f"Unsupported dimension(s): {', '.join(unknown)}. Supported: {', '.join(GROUPING_DIMENSIONS)}"
        )
    return tuple(dict.fromkeys(dimensions))


def create_valid_footprint_request(
    raw: FootprintEstimatesRawRequest,
    default_group_by: GroupBy = GroupBy.MONTH,
    today: Optional[date] = None,
) -> EstimationRequest:
    """
    Validate raw query parameters.

    Dates are UTC calendar dates; start must not be after end and neither may
    lie in the future. A missing groupBy falls back to the default with a warning.
    """
    start_date = _parse_date(raw.start_date, "Start date")
    end_date = _parse_date(raw.end_date, "End date")
    today = today or datetime.now(timezone.utc).date()

    if start_date > end_date:
        raise EstimationRequestValidationError("Start date is not before end date")
    if start_date > today or end_date > today:
        raise EstimationRequestValidationError("Start date or end date is in the future")

    if raw.group_by:
        try:
            group_by = GroupBy(raw.group_by.strip().lower())
        except ValueError:
            raise EstimationRequestValidationError(
                f"Not a valid groupBy value: {raw.group_by}. Supported: {', '.join(g.value for g in GroupBy)}"
            )
    else:
        logger.warning("group_by_not_specified", default=default_group_by.value)
        group_by = default_group_by

    return EstimationRequest(
        start_date=start_date,
        end_date=end_date,
        group_by=group_by,
        ignore_cache=_parse_bool(raw.ignore_cache, "ignoreCache"),
        dimensions=_parse_dimensions(raw.dimensions),
    )
