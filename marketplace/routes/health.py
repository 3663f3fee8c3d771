"""Health and readiness check routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="API health check")
async def health() -> dict:
    """Lightweight liveness check, no external calls."""
    return {
        "success": True,
        "message": "Marketplace API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


@router.get("/ready", summary="Cache and job counters")
async def ready(request: Request) -> dict:
    state = request.app.state
    return {
        "success": True,
        "data": {
            "modsKnown": len(state.mod_ids),
            "modsCached": len(state.cache.get_all()),
            "activeJobs": state.jobs.active_jobs,
        },
    }
