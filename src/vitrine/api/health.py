"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running, Postgres
is reachable, and reports the in-memory state of the realtime hub and
query cache.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from vitrine import __version__
from vitrine.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    status = "healthy" if checks["postgres"] == "ok" else "degraded"

    cache = request.app.state.cache
    return {
        "status": status,
        **checks,
        "realtime_connections": request.app.state.hub.connection_count,
        "cache_entries": len(cache) if cache is not None else None,
    }
