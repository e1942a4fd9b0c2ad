from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from fundgate.api.v1.router import api_router
from fundgate.config import APP_VERSION, settings
from fundgate.core.logging_config import configure_logging
from fundgate.core.metrics import app_info
from fundgate.core.transfer import HttpSettlementClient, get_transfer_port
from fundgate.database import engine
from fundgate.middleware.prometheus import PrometheusMiddleware
from fundgate.models import Base
from fundgate.services.errors import FundingError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)
    app_info.info({"version": APP_VERSION, "environment": settings.ENVIRONMENT})

    async with engine.begin() as conn:
        if settings.RESET_DB:
            logger.warning("RESET_DB set, dropping all ledger tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    port = get_transfer_port()
    if isinstance(port, HttpSettlementClient):
        logger.info("Settling transfers through %s", port.base_url)
    else:
        logger.warning("SETTLEMENT_URL not set, payouts are only recorded in-process")

    yield

    if isinstance(port, HttpSettlementClient):
        await port.close()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url=None,
    openapi_url="/api/openapi.json" if settings.ENVIRONMENT == "development" else None,
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Caller-Id"],
)


async def funding_error_handler(request: Request, exc: FundingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


app.add_exception_handler(FundingError, funding_error_handler)
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
