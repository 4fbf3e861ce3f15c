"""Loyalty background jobs."""

from .points_expiration import expire_inactive_points, run_points_expiration_job, send_expiration_warnings

__all__ = ["expire_inactive_points", "run_points_expiration_job", "send_expiration_warnings"]
