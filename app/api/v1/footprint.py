from functools import lru_cache
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.config import get_settings
from app.core.exceptions import response_for
from app.schemas.footprint import GroupBy
from app.services.carbon.footprint_app import FootprintApp
from app.services.carbon.request import FootprintEstimatesRawRequest, create_valid_footprint_request

router = APIRouter(tags=["Footprint"])
logger = structlog.get_logger()


@lru_cache
def get_footprint_app() -> FootprintApp:
  """One app per process: emissions factors load once, the cache is shared."""
  return FootprintApp(get_settings())


@router.get("/footprint")
async def get_footprint(
  app: Annotated[FootprintApp, Depends(get_footprint_app)],
  start: Optional[str] = Query(default=None, description="UTC start date, YYYY-MM-DD"),
  end: Optional[str] = Query(default=None, description="UTC end date, YYYY-MM-DD"),
  group_by: Optional[str] = Query(default=None, alias="groupBy"),
  ignore_cache: Optional[str] = Query(default=None, alias="ignoreCache"),
  dimensions: Optional[str] = Query(default=None, description="Comma separated: service, account, region"),
):
  """Returns footprint estimates bucketed by day, week or month."""
  raw_request = FootprintEstimatesRawRequest(
    start_date=start,
    end_date=end,
    group_by=group_by,
    ignore_cache=ignore_cache,
    dimensions=dimensions,
  )
  logger.info("footprint_request_started", start=start, end=end, group_by=group_by)

  try:
    request = create_valid_footprint_request(raw_request, GroupBy(app.settings.DEFAULT_GROUP_BY))
    results = await app.get_cost_and_estimates(request)
  except Exception as e:
    logger.error("footprint_request_failed", error=str(e), error_type=type(e).__name__)
    status_code, body = response_for(e)
    return PlainTextResponse(body, status_code=status_code)

  return JSONResponse([result.model_dump(mode="json", by_alias=True, exclude_none=True) for result in results])


@router.get("/regions/emissions-factors")
async def get_emissions_factors(app: Annotated[FootprintApp, Depends(get_footprint_app)]):
  """Lists the CO2e-per-kWh factor for every known region of the configured provider."""
  logger.info("emissions_factors_request_started")
  try:
    ratios = app.get_emissions_factors()
  except Exception as e:
    logger.error("emissions_factors_request_failed", error=str(e))
    return PlainTextResponse("Internal Server Error", status_code=500)
  return [ratio.model_dump(by_alias=True) for ratio in ratios]


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz():
  return "OK"
