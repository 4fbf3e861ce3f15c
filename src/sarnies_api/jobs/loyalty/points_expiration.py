"""Warn about and expire points of customers inactive for too long.

Designed to run daily (see ``config/schedules.toml``) or manually::

    sarnies-points-expiration

Activity means earning points or redeeming a voucher; both paths stamp
``users.last_activity_date``. A customer's full balance expires; the sweep
commits or rolls back as one unit.
"""

# meta: job: points-expiration

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Sequence

from loguru import logger
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sarnies_api.core.clock import add_months, as_utc, utcnow
from sarnies_api.core.settings import Settings, get_settings
from sarnies_api.models.notification import NotificationQueueEntry, NotificationQueueStatus
from sarnies_api.models.transaction import PointsTransaction, TransactionType
from sarnies_api.models.user import User

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]

WARNING_NOTIFICATION_TYPE = "points_expiring_warning"
EXPIRED_NOTIFICATION_TYPE = "points_expired"
NOTIFICATION_CATEGORY = "points_rewards"
EXPIRATION_OUTLET = "System"

tracer = trace.get_tracer(__name__)


async def _open_session(session_factory: SessionFactory) -> AsyncSession:
    maybe_session = session_factory()
    if isinstance(maybe_session, AsyncSession):
        return maybe_session
    return await maybe_session


def _queue_entry(
    user: User,
    *,
    notification_type: str,
    title: str,
    body: str,
    data: dict[str, Any],
    now: datetime,
) -> NotificationQueueEntry:
    return NotificationQueueEntry(
        user_id=user.id,
        notification_type=notification_type,
        title=title,
        body=body,
        data=data,
        category=NOTIFICATION_CATEGORY,
        status=NotificationQueueStatus.PENDING,
        scheduled_for=now,
        created_at=now,
    )


async def send_expiration_warnings(
    *,
    session_factory: SessionFactory,
    reference_time: datetime | None = None,
    settings: Settings | None = None,
) -> Dict[str, int]:
    """Queue one warning per customer entering the final month before expiry."""

    config = settings or get_settings()
    now = reference_time or utcnow()
    expiry_cutoff = add_months(now, -config.points_expiry_months)
    warning_cutoff = add_months(now, -config.points_warning_months)
    guard_since = now - timedelta(days=config.points_warning_guard_days)

    recently_warned = (
        select(NotificationQueueEntry.id)
        .where(
            NotificationQueueEntry.user_id == User.id,
            NotificationQueueEntry.notification_type == WARNING_NOTIFICATION_TYPE,
            NotificationQueueEntry.created_at > guard_since,
        )
        .exists()
    )
    stmt = select(User).where(
        User.points_balance > 0,
        User.last_activity_date.is_not(None),
        User.last_activity_date > expiry_cutoff,
        User.last_activity_date <= warning_cutoff,
        ~recently_warned,
    )

    session = await _open_session(session_factory)
    async with session as managed_session:
        users = (await managed_session.execute(stmt)).scalars().all()
        logger.info("Found customers needing expiration warnings", candidates=len(users))

        queued = 0
        skipped = 0
        for user in users:
            if not user.wants_points_notifications():
                skipped += 1
                logger.info("Skipping expiration warning; notifications disabled", user_id=user.id)
                continue

            last_activity = as_utc(user.last_activity_date)
            expiry_date = add_months(last_activity, config.points_expiry_months)
            managed_session.add(
                _queue_entry(
                    user,
                    notification_type=WARNING_NOTIFICATION_TYPE,
                    title="Your Points Are About to Expire",
                    body=(
                        f"Your {user.points_balance} points will expire on {expiry_date:%d %b %Y}. "
                        "Visit any Sarnies location to earn or redeem points!"
                    ),
                    data={
                        "points_balance": user.points_balance,
                        "expiry_date": expiry_date.isoformat(),
                        "last_activity": last_activity.isoformat(),
                    },
                    now=now,
                )
            )
            queued += 1
            logger.info("Queued expiration warning", user_id=user.id, points_balance=user.points_balance)

        await managed_session.commit()

    summary = {"candidates": len(users), "warnings_queued": queued, "skipped_by_preference": skipped}
    logger.bind(summary=summary).info("Expiration warning sweep completed")
    return summary


async def _zero_balance(session: AsyncSession, user: User) -> int:
    points = int(user.points_balance or 0)
    user.points_balance = 0
    await session.flush()
    return points


async def _record_expiration(session: AsyncSession, user: User, points: int, *, now: datetime) -> None:
    session.add(
        PointsTransaction(
            user_id=user.id,
            type=TransactionType.EXPIRE,
            points_delta=-points,
            outlet=EXPIRATION_OUTLET,
            created_at=now,
        )
    )
    await session.flush()


async def expire_inactive_points(
    *,
    session_factory: SessionFactory,
    reference_time: datetime | None = None,
    settings: Settings | None = None,
) -> Dict[str, int]:
    """Zero every balance idle past the expiry window in a single transaction.

    A failure for any customer rolls back the whole sweep and propagates.
    """

    config = settings or get_settings()
    now = reference_time or utcnow()
    expiry_cutoff = add_months(now, -config.points_expiry_months)
    stmt = (
        select(User)
        .where(
            User.points_balance > 0,
            User.last_activity_date.is_not(None),
            User.last_activity_date < expiry_cutoff,
        )
        .with_for_update()
    )

    session = await _open_session(session_factory)
    async with session as managed_session:
        try:
            users = (await managed_session.execute(stmt)).scalars().all()
            logger.info("Found customers with points to expire", candidates=len(users))

            total_points = 0
            for user in users:
                points = await _zero_balance(managed_session, user)
                await _record_expiration(managed_session, user, points, now=now)
                total_points += points

                if user.wants_points_notifications():
                    managed_session.add(
                        _queue_entry(
                            user,
                            notification_type=EXPIRED_NOTIFICATION_TYPE,
                            title="Points Expired",
                            body=(
                                f"Your {points} points have expired due to {config.points_expiry_months} "
                                "months of inactivity. Visit Sarnies to start earning again!"
                            ),
                            data={
                                "points_expired": points,
                                "expired_at": now.isoformat(),
                                "last_activity": as_utc(user.last_activity_date).isoformat(),
                            },
                            now=now,
                        )
                    )
                logger.info("Expired customer points", user_id=user.id, points=points)

            await managed_session.commit()
        except Exception:
            await managed_session.rollback()
            logger.exception("Points expiration sweep failed; rolled back")
            raise

    summary = {"users_affected": len(users), "total_points_expired": total_points}
    logger.bind(summary=summary).info("Points expiration sweep completed")
    return summary


async def run_points_expiration_job(
    *,
    session_factory: SessionFactory,
    reference_time: datetime | None = None,
    settings: Settings | None = None,
) -> Dict[str, Any]:
    """Run the warning sweep, then the expiration sweep.

    The sweeps are independent: a warning failure is logged and reported in
    the summary, while an expiration failure propagates to the scheduler.
    """

    now = reference_time or utcnow()
    with tracer.start_as_current_span("loyalty.points_expiration") as span:
        warnings_queued = 0
        warning_failed = False
        try:
            warnings = await send_expiration_warnings(
                session_factory=session_factory, reference_time=now, settings=settings
            )
            warnings_queued = warnings["warnings_queued"]
        except Exception:
            warning_failed = True
            logger.exception("Expiration warning sweep failed; continuing with expiration sweep")

        expiration = await expire_inactive_points(
            session_factory=session_factory, reference_time=now, settings=settings
        )
        span.set_attribute("loyalty.users_affected", expiration["users_affected"])
        span.set_attribute("loyalty.total_points_expired", expiration["total_points_expired"])

    return {
        **expiration,
        "warnings_queued": warnings_queued,
        "warning_sweep_failed": warning_failed,
    }


def main(argv: Sequence[str] | None = None) -> int:
    """Console entry point; returns the process exit code."""

    parser = argparse.ArgumentParser(description="Warn about and expire inactive loyalty points")
    parser.add_argument(
        "--reference-time",
        type=datetime.fromisoformat,
        default=None,
        help="ISO-8601 timestamp to evaluate inactivity against (defaults to now).",
    )
    args = parser.parse_args(argv)

    from sarnies_api import __version__
    from sarnies_api.core.logging import configure_logging
    from sarnies_api.db.session import async_session

    config = get_settings()
    configure_logging(service_name="sarnies-points-expiration", environment=config.environment, version=__version__)
    reference_time = as_utc(args.reference_time) if args.reference_time else None

    try:
        summary = asyncio.run(
            run_points_expiration_job(session_factory=async_session, reference_time=reference_time)
        )
    except Exception:
        logger.exception("Points expiration job failed")
        return 1

    logger.bind(summary=summary).info("Points expiration job complete")
    return 0


__all__ = [
    "expire_inactive_points",
    "main",
    "run_points_expiration_job",
    "send_expiration_warnings",
]


if __name__ == "__main__":  # pragma: no cover - manual execution
    raise SystemExit(main())
