"""
Digital Ledger Backend: Health Check Route
===========================================

What:  Liveness/readiness endpoint for load balancers and uptime monitors.
How:   Runs SELECT 1 against the database and reports uptime.
When:  Polled every few seconds, which is why /health and /api/health are
       skipped by the general rate limiter and the access log.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ledger import __version__
from ledger.schemas.auth import HealthResponse
from ledger.security.sanitizer import SanitizedRoute

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"], route_class=SanitizedRoute)

_start_time = time.time()


async def check_database() -> str:
    from ledger.database import engine

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Health check: database unreachable: %s", e)
        return "disconnected"
    return "connected"


@router.get("/health", response_model=HealthResponse, summary="Service health check")
@router.get("/api/health", response_model=HealthResponse, include_in_schema=False)
async def health_check(response: Response) -> HealthResponse:
    database = await check_database()
    healthy = database == "connected"
    if not healthy:
        response.status_code = 503

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=__version__,
        database=database,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
