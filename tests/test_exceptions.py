import pytest
from app.core.exceptions import (
    ConfigurationError,
    ErrorKind,
    EstimationRequestValidationError,
    FootprintException,
    PartialDataError,
    QueryJobSubmissionError,
    QueryResultRetrievalError,
    RESPONSE_STATUS_BY_KIND,
    response_for,
)


def test_every_kind_has_a_response_class():
    assert set(RESPONSE_STATUS_BY_KIND) == set(ErrorKind)


@pytest.mark.parametrize("exc,expected", [
    (EstimationRequestValidationError("Start date is required"), (400, "Start date is required")),
    (PartialDataError("Incomplete data"), (416, "Incomplete data")),
    (QueryJobSubmissionError("invalid", "query", "bad"), (500, "Internal Server Error")),
    (QueryResultRetrievalError("notFound", "global", "gone"), (500, "Internal Server Error")),
    (ConfigurationError("no table"), (500, "Internal Server Error")),
    (FootprintException("boom"), (500, "Internal Server Error")),
    (RuntimeError("boom"), (500, "Internal Server Error")),
])
def test_response_classes_stay_distinct(exc, expected):
    assert response_for(exc) == expected


def test_upstream_fields_are_kept():
    exc = QueryJobSubmissionError("Invalid Query", "query", "Test message")
    assert exc.reason == "Invalid Query"
    assert exc.location == "query"
    assert exc.upstream_message == "Test message"
    assert exc.code == "query_job_submission"


@pytest.mark.parametrize("exc", [
    EstimationRequestValidationError("bad"),
    PartialDataError("partial"),
    QueryJobSubmissionError("invalid", "query", "bad"),
    QueryResultRetrievalError("notFound", "global", "gone"),
    ConfigurationError("no table"),
    FootprintException("boom"),
])
def test_status_code_matches_response_class(exc):
    assert exc.status_code == response_for(exc)[0]
