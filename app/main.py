from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from app.api.v1.footprint import router as footprint_router
from app.core.config import get_settings
from app.core.exceptions import FootprintException, response_for
from app.core.logging import setup_logging

# Configure logging
setup_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
  settings = get_settings()
  logger.info(
    "app_starting",
    app=settings.APP_NAME,
    provider=settings.CLOUD_PROVIDER,
    data_source="billing_export" if settings.use_billing_export else "file",
  )
  yield
  logger.info("app_stopping", app=settings.APP_NAME)


settings = get_settings()

app = FastAPI(
  title=settings.APP_NAME,
  version=settings.VERSION,
  lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.exception_handler(FootprintException)
async def footprint_exception_handler(request: Request, exc: FootprintException):
  status_code, body = response_for(exc)
  logger.error("unhandled_footprint_error", path=request.url.path, kind=exc.kind.value, error=exc.message)
  return PlainTextResponse(body, status_code=status_code)


app.include_router(footprint_router, prefix="/api")
