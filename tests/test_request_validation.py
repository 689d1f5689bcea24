import pytest
from datetime import date
from app.core.exceptions import EstimationRequestValidationError
from app.schemas.footprint import GroupBy
from app.services.carbon.request import FootprintEstimatesRawRequest, create_valid_footprint_request

TODAY = date(2021, 1, 15)


def validate(**kwargs):
    return create_valid_footprint_request(FootprintEstimatesRawRequest(**kwargs), today=TODAY)


def test_valid_request():
    request = validate(start_date="2020-10-01", end_date="2020-11-03", group_by="day", ignore_cache="true")

    assert request.start_date == date(2020, 10, 1)
    assert request.end_date == date(2020, 11, 3)
    assert request.group_by == GroupBy.DAY
    assert request.ignore_cache is True
    assert request.dimensions == ()


def test_group_by_defaults_to_month():
    request = validate(start_date="2020-10-01", end_date="2020-11-03")
    assert request.group_by == GroupBy.MONTH
    assert request.ignore_cache is False


def test_group_by_default_is_configurable():
    request = create_valid_footprint_request(
        FootprintEstimatesRawRequest(start_date="2020-10-01", end_date="2020-11-03"),
        default_group_by=GroupBy.WEEK,
        today=TODAY,
    )
    assert request.group_by == GroupBy.WEEK


def test_iso_datetime_is_truncated_to_utc_date():
    request = validate(start_date="2020-10-01T23:30:00-05:00", end_date="2020-11-03T00:00:00Z")
    assert request.start_date == date(2020, 10, 2)
    assert request.end_date == date(2020, 11, 3)


@pytest.mark.parametrize("kwargs,match", [
    ({"end_date": "2020-11-03"}, "Start date is required"),
    ({"start_date": "2020-10-01"}, "End date is required"),
    ({"start_date": "yesterday", "end_date": "2020-11-03"}, "YYYY-MM-DD"),
    ({"start_date": "2020-11-04", "end_date": "2020-11-03"}, "not before end date"),
    ({"start_date": "2020-10-01", "end_date": "2021-02-01"}, "in the future"),
    ({"start_date": "2020-10-01", "end_date": "2020-11-03", "group_by": "fortnight"}, "groupBy"),
    ({"start_date": "2020-10-01", "end_date": "2020-11-03", "ignore_cache": "maybe"}, "ignoreCache"),
    ({"start_date": "2020-10-01", "end_date": "2020-11-03", "dimensions": "service,colour"}, "colour"),
])
def test_invalid_requests(kwargs, match):
    with pytest.raises(EstimationRequestValidationError, match=match) as exc_info:
        validate(**kwargs)
    assert exc_info.value.status_code == 400


def test_dimensions_are_deduplicated():
    request = validate(start_date="2020-10-01", end_date="2020-11-03", dimensions="service, region,service")
    assert request.dimensions == ("service", "region")
