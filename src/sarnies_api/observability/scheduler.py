"""In-process metrics for scheduled loyalty jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Dict

from sarnies_api.core.clock import utcnow


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class JobRunState:
    """Counters and last-run details for one scheduled job."""

    job_id: str
    task: str
    runs: int = 0
    successes: int = 0
    failures: int = 0
    retries: int = 0
    consecutive_failures: int = 0
    total_runtime_seconds: float = 0.0
    last_started_at: datetime | None = None
    last_success_at: datetime | None = None
    last_error_at: datetime | None = None
    last_error: str | None = None
    last_attempts: int = 0
    last_summary: Dict[str, Any] | None = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "job_id": self.job_id,
            "task": self.task,
            "totals": {
                "runs": self.runs,
                "success": self.successes,
                "run_failures": self.failures,
                "retries": self.retries,
                "consecutive_failures": self.consecutive_failures,
            },
            "total_runtime_seconds": self.total_runtime_seconds,
            "last_started_at": _iso(self.last_started_at),
            "last_success_at": _iso(self.last_success_at),
            "last_error_at": _iso(self.last_error_at),
            "last_error": self.last_error,
            "last_attempts": self.last_attempts,
            "last_summary": self.last_summary,
        }


@dataclass
class SchedulerSnapshot:
    totals: Dict[str, int]
    jobs: Dict[str, JobRunState] = field(default_factory=dict)


class JobSchedulerObservabilityStore:
    """Thread-safe record of dispatches, retries and outcomes per job."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, JobRunState] = {}

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _state(self, job_id: str, task: str) -> JobRunState:
        state = self._jobs.get(job_id)
        if state is None:
            state = self._jobs[job_id] = JobRunState(job_id=job_id, task=task)
        return state

    def record_dispatch(self, job_id: str, task: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.runs += 1
            state.last_started_at = utcnow()
            state.last_attempts = 0

    def record_retry(self, job_id: str, task: str, *, attempts: int, error: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.retries += 1
            state.last_attempts = attempts
            state.last_error = error
            state.last_error_at = utcnow()

    def record_success(
        self,
        job_id: str,
        task: str,
        *,
        runtime_seconds: float,
        attempts: int,
        summary: Dict[str, Any] | None = None,
    ) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.successes += 1
            state.consecutive_failures = 0
            state.total_runtime_seconds += runtime_seconds
            state.last_success_at = utcnow()
            state.last_attempts = attempts
            state.last_summary = summary
            state.last_error = None
            state.last_error_at = None

    def record_failure(self, job_id: str, task: str, *, runtime_seconds: float, attempts: int, error: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.failures += 1
            state.consecutive_failures += 1
            state.total_runtime_seconds += runtime_seconds
            state.last_attempts = attempts
            state.last_error = error
            state.last_error_at = utcnow()

    def snapshot(self) -> SchedulerSnapshot:
        with self._lock:
            jobs = {job_id: JobRunState(**vars(state)) for job_id, state in self._jobs.items()}
        totals = {
            "runs": sum(state.runs for state in jobs.values()),
            "success": sum(state.successes for state in jobs.values()),
            "run_failures": sum(state.failures for state in jobs.values()),
            "retries": sum(state.retries for state in jobs.values()),
        }
        return SchedulerSnapshot(totals=totals, jobs=jobs)


_STORE = JobSchedulerObservabilityStore()


def get_job_scheduler_store() -> JobSchedulerObservabilityStore:
    return _STORE


__all__ = [
    "JobRunState",
    "JobSchedulerObservabilityStore",
    "SchedulerSnapshot",
    "get_job_scheduler_store",
]
