"""Scheduling utilities for recurring loyalty jobs."""

from .config import JobDefinition, ScheduleConfig, load_job_definitions
from .runner import LoyaltyJobScheduler

__all__ = ["JobDefinition", "LoyaltyJobScheduler", "ScheduleConfig", "load_job_definitions"]
