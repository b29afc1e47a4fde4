"""Liveness and dependency probe.

Learn: Postgres down means requests fail, Redis down only means no cache
and a fail-open message limiter. Both show up here as "degraded" so a
load balancer can still route traffic while an operator investigates.
"""

from fastapi import APIRouter
from sqlalchemy import text

from tnkr import __version__
from tnkr.cache.client import get_redis
from tnkr.db.engine import engine

router = APIRouter()


async def _probe_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return f"error: {e}"
    return "ok"


async def _probe_redis() -> str:
    try:
        await get_redis().ping()
    except Exception as e:
        return f"error: {e}"
    return "ok"


@router.get("/health")
async def health_check():
    database = await _probe_database()
    redis = await _probe_redis()
    healthy = database == "ok" and redis == "ok"
    return {
        "status": "healthy" if healthy else "degraded",
        "server": "ok",
        "version": __version__,
        "database": database,
        "redis": redis,
    }
