"""
Health check endpoints for BranchGuard.
Provides liveness and readiness probes for container orchestration.
"""
import time
from typing import Dict, Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from .. import storage as storage_manager
from branchguard import __version__ as BG_VERSION

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])

# Application startup time for health checks
_startup_time = time.time()

@router.get("/healthz", summary="Liveness probe")
async def liveness_probe() -> Dict[str, Any]:
    """
    Liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {
        "status": "ok",
        "timestamp": time.time(),
        "uptime_seconds": int(time.time() - _startup_time),
        "service": "branchguard",
        "version": BG_VERSION,
    }

@router.get("/readyz", summary="Readiness probe")
def readiness_probe():
    """
    Readiness probe endpoint.

    Returns 200 when the rule store answers a trivial query, 503 otherwise.
    """
    checks = {}
    overall_status = "ok"

    try:
        storage_manager.get_storage().ping()
        checks["storage"] = {"status": "ok", "backend": "sqlite"}
    except Exception as e:
        logger.error("Readiness check failed", error=str(e))
        checks["storage"] = {"status": "error", "error": str(e), "backend": "sqlite"}
        overall_status = "error"

    response_data = {
        "status": overall_status,
        "timestamp": time.time(),
        "checks": checks,
        "service": "branchguard",
        "version": BG_VERSION,
    }

    if overall_status == "error":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response_data
        )

    return response_data
