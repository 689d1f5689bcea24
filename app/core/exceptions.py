from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(str, Enum):
    """Closed set of failure kinds the footprint engine can surface."""
    QUERY_JOB_SUBMISSION = "query_job_submission"
    QUERY_RESULT_RETRIEVAL = "query_result_retrieval"
    REQUEST_VALIDATION = "request_validation"
    PARTIAL_DATA = "partial_data"
    CONFIGURATION = "configuration"
    INTERNAL = "internal_error"


class FootprintException(Exception):
    """Base exception for all footprint estimation errors."""
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.kind.value
        self.status_code = status_code
        self.details = details or {}


class UsageDataSourceError(Exception):
    """
    Provider error raised by a Usage Data Source.

    Carries the upstream reason/location/domain/message so the engine can
    embed them verbatim in its own error kinds.
    """
    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        location: Optional[str] = None,
        domain: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.location = location
        self.domain = domain


class QueryJobSubmissionError(FootprintException):
    """Raised when the usage query job could not be created."""
    kind = ErrorKind.QUERY_JOB_SUBMISSION

    def __init__(self, reason: Optional[str], location: Optional[str], message: Optional[str]):
        self.reason = reason
        self.location = location
        self.upstream_message = message
        super().__init__(
            f"BigQuery create Query Job failed. Reason: {reason}, Location: {location}, Message: {message}",
            status_code=500,
            details={"reason": reason, "location": location, "message": message},
        )


class QueryResultRetrievalError(FootprintException):
    """Raised when the query job exists but fetching its results failed."""
    kind = ErrorKind.QUERY_RESULT_RETRIEVAL

    def __init__(self, reason: Optional[str], domain: Optional[str], message: Optional[str]):
        self.reason = reason
        self.domain = domain
        self.upstream_message = message
        super().__init__(
            f"BigQuery get Query Results failed. Reason: {reason}, Domain: {domain}, Message: {message}",
            status_code=500,
            details={"reason": reason, "domain": domain, "message": message},
        )


class EstimationRequestValidationError(FootprintException):
    """Raised when caller-supplied dates or parameters are malformed."""
    kind = ErrorKind.REQUEST_VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class PartialDataError(FootprintException):
    """Raised when the data source covers less than the requested range."""
    kind = ErrorKind.PARTIAL_DATA

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=416, details=details)


class ConfigurationError(FootprintException):
    """Raised when application configuration is invalid or missing."""
    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)


# Response class per error kind at the API boundary. Every ErrorKind must appear here.
RESPONSE_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.REQUEST_VALIDATION: 400,
    ErrorKind.PARTIAL_DATA: 416,
    ErrorKind.QUERY_JOB_SUBMISSION: 500,
    ErrorKind.QUERY_RESULT_RETRIEVAL: 500,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.INTERNAL: 500,
}


def response_for(exc: Exception) -> tuple[int, str]:
    """Map any failure to (status_code, body). Only client-facing kinds expose their message."""
    if not isinstance(exc, FootprintException):
        return 500, "Internal Server Error"

    status_code = RESPONSE_STATUS_BY_KIND[exc.kind]
    if exc.kind in (ErrorKind.REQUEST_VALIDATION, ErrorKind.PARTIAL_DATA):
        return status_code, exc.message
    return status_code, "Internal Server Error"
