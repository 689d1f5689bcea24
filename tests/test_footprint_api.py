import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient
from app.api.v1.footprint import get_footprint_app
from app.core.config import Settings
from app.core.exceptions import QueryJobSubmissionError, PartialDataError
from app.services.adapters.csv_reader import CsvUsageReader
from app.services.carbon.footprint_app import FootprintApp

USAGE_CSV = """timestamp,accountName,serviceName,region,usageType,usageAmount,usageUnit,cost
2020-10-28,test-account,Compute Engine,us-east1,N1 Predefined Instance Core,36000,seconds,7
2020-10-28,test-account,Cloud SQL,us-east1,Cloud SQL for MySQL: Zonal - RAM,36000,seconds,2
2020-11-02,test-account,App Engine,us-west1,SSD backed PD Capacity,3958241859993600,byte-seconds,15
"""


@pytest.fixture
def footprint_app(tmp_path):
    path = tmp_path / "usage.csv"
    path.write_text(USAGE_CSV)
    return FootprintApp(Settings(TESTING=True), csv_reader=CsvUsageReader(path))


@pytest.fixture
def override_app(footprint_app):
    from app.main import app
    app.dependency_overrides[get_footprint_app] = lambda: footprint_app
    yield footprint_app
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_footprint_returns_camel_case_results(ac: AsyncClient, override_app):
    response = await ac.get("/api/footprint", params={"start": "2020-10-28", "end": "2020-11-02", "groupBy": "day"})

    assert response.status_code == 200
    data = response.json()
    assert [item["timestamp"] for item in data] == ["2020-10-28", "2020-11-02"]
    estimate = data[0]["serviceEstimates"][0]
    assert set(estimate) == {
        "wattHours", "co2e", "usesAverageCpuConstant", "cloudProvider",
        "accountName", "serviceName", "cost", "region",
    }
    assert estimate["usesAverageCpuConstant"] is True
    assert estimate["cloudProvider"] == "GCP"
    assert "group" not in data[0]


@pytest.mark.asyncio
async def test_footprint_defaults_to_month(ac: AsyncClient, override_app):
    response = await ac.get("/api/footprint", params={"start": "2020-10-01", "end": "2020-11-30"})

    assert response.status_code == 200
    assert [item["timestamp"] for item in response.json()] == ["2020-10-01", "2020-11-01"]


@pytest.mark.asyncio
async def test_footprint_grouped_by_service(ac: AsyncClient, override_app):
    response = await ac.get(
        "/api/footprint", params={"start": "2020-10-01", "end": "2020-11-30", "dimensions": "service"}
    )

    assert [item["group"] for item in response.json()] == [{"service": "Compute Engine"}, {"service": "App Engine"}]


@pytest.mark.asyncio
async def test_blank_usage_amount_does_not_break_response(ac: AsyncClient, override_app):
    override_app.csv_reader.path.write_text(
        USAGE_CSV + "2020-11-03,test-account,Compute Engine,us-east1,N1 Predefined Instance Core,,seconds,7\n"
    )

    response = await ac.get("/api/footprint", params={"start": "2020-10-01", "end": "2020-11-30"})

    assert response.status_code == 200
    november = response.json()[1]["serviceEstimates"]
    assert [e["serviceName"] for e in november] == ["App Engine"]


@pytest.mark.asyncio
async def test_validation_error_is_400(ac: AsyncClient, override_app):
    response = await ac.get("/api/footprint", params={"end": "2020-11-30"})

    assert response.status_code == 400
    assert response.text == "Start date is required"


@pytest.mark.asyncio
async def test_partial_data_is_416(ac: AsyncClient, override_app):
    response = await ac.get("/api/footprint", params={"start": "2019-01-01", "end": "2019-01-31"})

    assert response.status_code == 416


@pytest.mark.asyncio
async def test_data_source_failure_is_500(ac: AsyncClient, override_app):
    override_app.get_cost_and_estimates = AsyncMock(side_effect=QueryJobSubmissionError("r", "l", "m"))

    response = await ac.get("/api/footprint", params={"start": "2020-10-01", "end": "2020-11-30"})

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


@pytest.mark.asyncio
async def test_unexpected_failure_is_500(ac: AsyncClient, override_app):
    override_app.get_cost_and_estimates = AsyncMock(side_effect=KeyError("boom"))

    response = await ac.get("/api/footprint", params={"start": "2020-10-01", "end": "2020-11-30"})

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_emissions_factors(ac: AsyncClient, override_app):
    response = await ac.get("/api/regions/emissions-factors")

    assert response.status_code == 200
    by_region = {item["region"]: item["mtPerKwHour"] for item in response.json()}
    assert by_region["us-east1"] == pytest.approx(0.000287849718)


@pytest.mark.asyncio
async def test_emissions_factors_failure(ac: AsyncClient, override_app):
    override_app.get_emissions_factors = MagicMock(side_effect=RuntimeError("boom"))

    response = await ac.get("/api/regions/emissions-factors")

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_healthz(ac: AsyncClient):
    response = await ac.get("/api/healthz")

    assert response.status_code == 200
    assert response.text == "OK"


@pytest.mark.asyncio
async def test_exception_handler_maps_kinds(ac: AsyncClient):
    from app.main import footprint_exception_handler

    request = MagicMock()
    request.url.path = "/api/footprint"
    response = await footprint_exception_handler(request, PartialDataError("Incomplete"))

    assert response.status_code == 416
    assert response.body == b"Incomplete"
