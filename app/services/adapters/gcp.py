import asyncio
import json
import re
from datetime import date, datetime
from typing import List, Dict, Any, Optional
import structlog
from google.cloud import bigquery
from google.oauth2 import service_account
from google.api_core.exceptions import GoogleAPICallError

from app.core.exceptions import ConfigurationError, UsageDataSourceError
from app.services.adapters.base import QueryJob, UsageDataSource

logger = structlog.get_logger()

# GCP resource IDs: alphanumeric plus hyphens/underscores/dots
SAFE_TABLE_PART = re.compile(r"^[a-zA-Z0-9.\-_]+$")
PROJECT_ID_PATTERN = re.compile(r"^[a-z][a-z0-9\-]{4,28}[a-z0-9]$")


def validate_project_id(project_id: str) -> bool:
    """Validate GCP project ID format."""
    return bool(PROJECT_ID_PATTERN.match(project_id))


def to_data_source_error(exc: Exception) -> UsageDataSourceError:
    """
    Flatten a Google API error into the provider error the engine understands.

    The first entry of `errors` carries reason/location/domain/message; plain
    exceptions only contribute their message.
    """
    details: Dict[str, Any] = {}
    errors = getattr(exc, "errors", None) or []
    if errors and isinstance(errors[0], dict):
        details = errors[0]
    return UsageDataSourceError(
        details.get("message") or getattr(exc, "message", None) or str(exc),
        reason=details.get("reason"),
        location=details.get("location"),
        domain=details.get("domain"),
    )


def _query_parameter(name: str, value: Any) -> bigquery.ScalarQueryParameter:
    if isinstance(value, datetime):
        return bigquery.ScalarQueryParameter(name, "TIMESTAMP", value)
    if isinstance(value, date):
        return bigquery.ScalarQueryParameter(name, "DATE", value)
    return bigquery.ScalarQueryParameter(name, "STRING", str(value))


class BigQueryQueryJob(QueryJob):
    def __init__(self, job: bigquery.QueryJob):
        self.job = job

    async def get_results(self) -> List[Dict[str, Any]]:
        try:
            rows = await asyncio.to_thread(self.job.result)
            return [dict(row.items()) for row in rows]
        except GoogleAPICallError as e:
            logger.error("gcp_bq_results_failed", job_id=getattr(self.job, "job_id", None), error=str(e))
            raise to_data_source_error(e) from e


class BigQueryUsageDataSource(UsageDataSource):
    """
    Usage Data Source backed by the GCP Billing Export in BigQuery.

    Blocking client calls run in a worker thread. No retries: a failed
    submission or retrieval is reported to the caller immediately.
    """

    def __init__(
        self,
        project_id: str,
        billing_dataset: str,
        billing_table: str,
        billing_project_id: Optional[str] = None,
        service_account_json: Optional[str] = None,
        client: Optional[bigquery.Client] = None,
    ):
        if not validate_project_id(project_id):
            logger.error("gcp_invalid_project_id", project_id=project_id)
            raise ConfigurationError(
                f"Invalid GCP project ID format: '{project_id}'. Must be 6-30 lowercase letters, digits, or hyphens."
            )

        billing_project = billing_project_id or project_id
        if not all(SAFE_TABLE_PART.match(s) for s in [billing_project, billing_dataset, billing_table]):
            logger.error("gcp_bq_invalid_table_path",
                         project=billing_project, dataset=billing_dataset, table=billing_table)
            raise ConfigurationError(
                f"Invalid BigQuery table path: '{billing_project}.{billing_dataset}.{billing_table}'"
            )

        self.project_id = project_id
        self.service_account_json = service_account_json
        self._table_path = f"{billing_project}.{billing_dataset}.{billing_table}"
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "BigQueryUsageDataSource":
        return cls(
            project_id=settings.GCP_PROJECT_ID,
            billing_dataset=settings.GCP_BILLING_DATASET,
            billing_table=settings.GCP_BILLING_TABLE,
            billing_project_id=settings.GCP_BILLING_PROJECT_ID,
            service_account_json=settings.GCP_SERVICE_ACCOUNT_JSON,
        )

    @property
    def table_path(self) -> str:
        return self._table_path

    def _get_credentials(self):
        """Service account credentials from JSON, or None for application default credentials."""
        if not self.service_account_json:
            return None
        try:
            info = json.loads(self.service_account_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError("GCP service account JSON is not valid JSON") from e
        return service_account.Credentials.from_service_account_info(info)

    def _get_bq_client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client(project=self.project_id, credentials=self._get_credentials())
        return self._client

    async def create_query_job(self, query: str, params: Dict[str, Any]) -> QueryJob:
        client = self._get_bq_client()
        job_config = bigquery.QueryJobConfig(
            query_parameters=[_query_parameter(name, value) for name, value in params.items()]
        )
        try:
            job = await asyncio.to_thread(client.query, query, job_config=job_config)
        except GoogleAPICallError as e:
            logger.error("gcp_bq_query_job_failed", table=self._table_path, error=str(e))
            raise to_data_source_error(e) from e

        logger.info("gcp_bq_query_job_created", table=self._table_path, job_id=getattr(job, "job_id", None))
        return BigQueryQueryJob(job)
