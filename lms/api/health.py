"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200 while the process can respond;
    the ``status`` field reports degraded dependencies.

  /ready (readiness):
    "Can this instance handle traffic right now?"  503 when the
    configured database is unreachable, so the load balancer stops
    routing here without the container being restarted.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lms.db import engine as db_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed: %s", exc)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status.

    Returns 200 even when degraded; a 503 here would get the container
    restarted for a partial outage.
    """
    checks = {"database": await _check_database()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    """Readiness probe: 503 if the configured database is down."""
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
