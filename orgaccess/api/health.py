"""Health and readiness endpoints.

  /health (liveness): is the process alive?  Always 200; the body says
    which backing store is in use and whether the database answers.
  /ready (readiness): can this instance take traffic?  503 when a
    configured database is unreachable.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from orgaccess.db import engine as db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    database = await _database_status()
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
