"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app handle requests?)
- /metrics - Session counts for monitoring
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from game import GamePhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_store = None
_registry = None


def set_health_dependencies(store=None, registry=None):
    """Set dependencies for health checks."""
    global _store, _registry
    _store = store
    _registry = registry


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Pings Redis when the session store is Redis-backed.
    Returns 503 if the store is unavailable.
    """
    checks = {}
    overall_healthy = True

    ping = getattr(_store, "ping", None)
    if _store is None:
        checks["session_store"] = {"status": "not_configured"}
        overall_healthy = False
    elif ping is None:
        checks["session_store"] = {"status": "ok", "backend": "memory"}
    else:
        try:
            await ping()
            checks["session_store"] = {"status": "ok", "backend": "redis"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["session_store"] = {"status": "error", "message": str(e)}
            overall_healthy = False

    status_code = 200 if overall_healthy else 503
    return Response(
        content=json.dumps({
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Room counts from the live registry and saved sessions from the store."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _registry is not None:
        rooms = _registry.rooms
        metrics_data.update({
            "active_rooms": len(rooms),
            "total_players": sum(len(r.players) for r in rooms.values()),
            "games_in_progress": sum(
                1 for r in rooms.values() if r.game.state.phase == GamePhase.PLAYING
            ),
        })

    if _store is not None:
        try:
            metrics_data["saved_sessions"] = len(await _store.active_codes())
        except Exception as e:
            logger.warning(f"Could not count saved sessions: {e}")

    return metrics_data
