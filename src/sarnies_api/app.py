from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from sarnies_api import __version__
from sarnies_api.core.settings import settings
from sarnies_api.db.session import async_session
from .api.routes import api_router
from .api.v1.endpoints import health
from .core.logging import configure_logging
from .scheduling import LoyaltyJobScheduler
from .services.loyalty import LoyaltyOperationError


APP_VERSION = __version__


def _session_factory():
    return async_session()


def _resolve_schedule_path() -> Path:
    schedule_path = Path(settings.loyalty_job_schedule_path)
    if not schedule_path.is_absolute():
        schedule_path = Path(__file__).resolve().parent.parent.parent / schedule_path
    return schedule_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    schedule_path = _resolve_schedule_path()
    job_scheduler = LoyaltyJobScheduler(session_factory=_session_factory, config_path=schedule_path)
    app.state.loyalty_job_scheduler = job_scheduler

    scheduler_enabled = settings.loyalty_job_scheduler_enabled
    if scheduler_enabled:
        try:
            job_scheduler.start()
        except FileNotFoundError as exc:
            logger.exception("Loyalty job scheduler failed to start", error=str(exc))
        else:
            logger.info("Loyalty job scheduler enabled", schedule_path=str(schedule_path))
    else:
        logger.info(
            "Loyalty job scheduler disabled",
            reason="loyalty_job_scheduler_enabled is false",
        )

    try:
        yield
    finally:
        if job_scheduler.is_running:
            await job_scheduler.stop()


async def _loyalty_error_handler(request: Request, exc: LoyaltyOperationError) -> JSONResponse:
    logger.info(
        "Loyalty operation rejected",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def create_app() -> FastAPI:
    """Application factory for the Sarnies loyalty API."""
    configure_logging(
        service_name="sarnies-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Sarnies Loyalty API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_exception_handler(LoyaltyOperationError, _loyalty_error_handler)
    app.include_router(health.router)
    app.include_router(api_router)

    return app
