"""Liveness and readiness probes.

  /health   the process answers; always 200, with per-dependency status
  /ready    can take traffic; 503 while a configured database is unreachable

Without DATABASE_URL the service runs on in-memory repositories, so the
database check reports "not_configured" and readiness passes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from studytrack.db.engine import database_configured, ping_database
from studytrack.services.query_cache import cache_sizes

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if not database_configured():
        return "not_configured"
    try:
        await ping_database()
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    database = await _database_status()
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
        "caches": cache_sizes(),
    }


@router.get("/ready")
async def ready() -> JSONResponse:
    database = await _database_status()
    if database == "degraded":
        return JSONResponse({"ready": False, "checks": {"database": database}}, status_code=503)
    return JSONResponse({"ready": True, "checks": {"database": database}})
