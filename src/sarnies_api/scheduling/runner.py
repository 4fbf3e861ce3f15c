"""APScheduler runtime for recurring loyalty jobs."""

from __future__ import annotations

import asyncio
import inspect
import time
from importlib import import_module
from pathlib import Path
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from sarnies_api.observability.scheduler import get_job_scheduler_store

from .config import JobDefinition, ScheduleConfig, load_job_definitions

SessionFactory = Callable[[], Awaitable[Any]] | Callable[[], Any]
JobCallable = Callable[..., Awaitable[Any]]


def resolve_task(task: str) -> JobCallable:
    """Import ``package.module.function`` and check it is a coroutine function."""

    module_name, _, attr = task.rpartition(".")
    if not module_name:
        raise ValueError(f"Invalid task path: {task}")
    func = getattr(import_module(module_name), attr, None)
    if func is None:
        raise AttributeError(f"Task {task} not found")
    if not inspect.iscoroutinefunction(func):
        raise TypeError(f"Task {task} must be an async function")
    return func


def backoff_delay(job: JobDefinition, attempt: int) -> float:
    delay = job.base_backoff_seconds * (job.backoff_multiplier ** (attempt - 1))
    if job.max_backoff_seconds:
        delay = min(delay, job.max_backoff_seconds)
    return max(delay, 0.0)


class LoyaltyJobScheduler:
    """Register cron jobs from the schedule file and run them with retries.

    Jobs are added with ``max_instances=1`` and ``coalesce=True`` so a slow
    run is never overlapped by the next firing within this process.
    """

    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        config_path: Path,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._config_path = config_path
        self._sleep = sleep
        self._config: ScheduleConfig | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._observability = get_job_scheduler_store()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        config = load_job_definitions(self._config_path)
        timezone = ZoneInfo(config.timezone)
        scheduler = AsyncIOScheduler(timezone=timezone)

        for job in config.jobs:
            runner = self.build_runner(job, resolve_task(job.task))
            scheduler.add_job(
                runner,
                trigger=CronTrigger.from_crontab(job.cron, timezone=timezone),
                id=job.id,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info("Registered loyalty job", job_id=job.id, task=job.task, cron=job.cron)

        scheduler.start()
        self._config = config
        self._scheduler = scheduler
        logger.info("Loyalty job scheduler started", jobs=len(config.jobs), timezone=config.timezone)

    async def stop(self) -> None:
        if not self._scheduler:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        logger.info("Loyalty job scheduler stopped")

    def build_runner(self, job: JobDefinition, func: JobCallable) -> Callable[[], Awaitable[Any]]:
        """Wrap ``func`` with retry, backoff and metrics recording.

        A run that exhausts its attempts is logged and recorded; it never
        escapes into the scheduler event loop.
        """

        async def _runner() -> Any:
            self._observability.record_dispatch(job.id, job.task)
            started_at = time.perf_counter()

            for attempt in range(1, job.max_attempts + 1):
                try:
                    result = await func(session_factory=self._session_factory, **job.kwargs)
                except Exception as exc:
                    if attempt >= job.max_attempts:
                        self._observability.record_failure(
                            job.id,
                            job.task,
                            runtime_seconds=time.perf_counter() - started_at,
                            attempts=attempt,
                            error=str(exc),
                        )
                        logger.exception("Scheduled job failed after retries", job_id=job.id, attempts=attempt)
                        return None

                    delay = backoff_delay(job, attempt)
                    self._observability.record_retry(job.id, job.task, attempts=attempt, error=str(exc))
                    logger.warning(
                        "Scheduled job retrying",
                        job_id=job.id,
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error=str(exc),
                    )
                    if delay:
                        await self._sleep(delay)
                    continue

                runtime_seconds = time.perf_counter() - started_at
                self._observability.record_success(
                    job.id,
                    job.task,
                    runtime_seconds=runtime_seconds,
                    attempts=attempt,
                    summary=result if isinstance(result, dict) else None,
                )
                logger.bind(summary=result).info(
                    "Scheduled job completed",
                    job_id=job.id,
                    attempts=attempt,
                    runtime_seconds=runtime_seconds,
                )
                return result
            return None

        return _runner

    def health(self) -> dict[str, object]:
        snapshot = self._observability.snapshot()
        configured = self._config.jobs if self._config else []
        return {
            "running": self.is_running,
            "configured_jobs": len(configured),
            "totals": snapshot.totals,
            "jobs": [
                {
                    "id": job.id,
                    "task": job.task,
                    "cron": job.cron,
                    "max_attempts": job.max_attempts,
                    "metrics": snapshot.jobs[job.id].as_dict() if job.id in snapshot.jobs else None,
                }
                for job in configured
            ],
        }


__all__ = ["LoyaltyJobScheduler", "backoff_delay", "resolve_task"]
