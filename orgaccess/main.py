from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orgaccess.api.codes import router as codes_router
from orgaccess.api.health import router as health_router
from orgaccess.api.licenses import router as licenses_router
from orgaccess.api.metrics_endpoint import router as metrics_router
from orgaccess.api.orgs import router as orgs_router
from orgaccess.core.config import SETTINGS
from orgaccess.core.logging import setup_logging
from orgaccess.db.engine import lifespan_db
from orgaccess.middleware.metrics import MetricsMiddleware
from orgaccess.middleware.request_context import RequestContextMiddleware
from orgaccess.services.errors import OrgAccessError

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        yield


app = FastAPI(
    title="orgaccess",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last-added runs first: RequestContext (outermost) → Metrics → route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(OrgAccessError)
async def _org_access_error(_request: Request, exc: OrgAccessError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(orgs_router)
app.include_router(codes_router)
app.include_router(licenses_router)

logger.info(
    "orgaccess started  env=%s log_level=%s port=%d store=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "postgres" if SETTINGS.database_url else "memory",
    "on" if SETTINGS.is_dev else "off",
)
