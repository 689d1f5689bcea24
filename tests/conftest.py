import os
# Disable production config validation for all tests BEFORE any app imports
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "True"

import pytest
from datetime import datetime, timezone
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport

from app.schemas.footprint import CloudProvider
from app.services.carbon.billing_export import BillingExportTable
from app.services.carbon.compute_estimator import ComputeEstimator
from app.services.carbon.emissions_factors import load_emissions_factor_table
from app.services.carbon.storage_estimator import StorageEstimator


@pytest.fixture
def gcp_factors():
    return load_emissions_factor_table(CloudProvider.GCP)


@pytest.fixture
def compute_estimator(gcp_factors):
    return ComputeEstimator(gcp_factors)


@pytest.fixture
def ssd_estimator(gcp_factors):
    return StorageEstimator.ssd(gcp_factors)


@pytest.fixture
def hdd_estimator(gcp_factors):
    return StorageEstimator.hdd(gcp_factors)


@pytest.fixture
def billing_export_table(compute_estimator, ssd_estimator, hdd_estimator):
    """Aggregator without a data source, for fold_rows() tests."""
    return BillingExportTable(compute_estimator, ssd_estimator, hdd_estimator)


@pytest.fixture
def make_row():
    """Raw billing export record with sensible defaults."""
    def _make_row(**overrides):
        row = {
            "timestamp": datetime(2020, 11, 2, tzinfo=timezone.utc),
            "accountName": "test-account",
            "serviceName": "Compute Engine",
            "region": "us-east1",
            "usageType": "N1 Predefined Instance Core running in Americas",
            "usageAmount": 36000.0,
            "usageUnit": "seconds",
            "cost": 7.0,
        }
        row.update(overrides)
        return row
    return _make_row


@pytest.fixture
async def ac() -> AsyncGenerator[AsyncClient, None]:
    """Async client fixture for testing API endpoints."""
    from app.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
