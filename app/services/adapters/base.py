from abc import ABC, abstractmethod
from typing import List, Dict, Any


class QueryJob(ABC):
    """Handle on a submitted usage query."""

    @abstractmethod
    async def get_results(self) -> List[Dict[str, Any]]:
        """
        Fetch the UsageRow-shaped records produced by the job.
        Raises UsageDataSourceError on provider failure.
        """
        pass


class UsageDataSource(ABC):
    """
    Abstract Base Class for billing-usage query services.

    Submission and retrieval are separate calls because they fail
    independently and are reported as different error kinds.
    """

    @abstractmethod
    async def create_query_job(self, query: str, params: Dict[str, Any]) -> QueryJob:
        """
        Submit a query job.
        Raises UsageDataSourceError on provider failure.
        """
        pass

    @property
    @abstractmethod
    def table_path(self) -> str:
        """Fully qualified table the queries run against."""
        pass
