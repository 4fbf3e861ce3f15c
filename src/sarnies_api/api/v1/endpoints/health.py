from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from sarnies_api import __version__
from sarnies_api.core.settings import settings


APP_VERSION = __version__

router = APIRouter()


@router.get("/healthz", summary="Service health check", tags=["Health"])
async def service_health(request: Request) -> dict[str, Any]:
    scheduler = getattr(request.app.state, "loyalty_job_scheduler", None)
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": APP_VERSION,
        "scheduler": scheduler.health() if scheduler is not None else {"running": False},
    }
