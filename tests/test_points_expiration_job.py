"""Tests for the points expiration and warning sweeps."""

import datetime as dt

import pytest
from sqlalchemy import func, select

from sarnies_api.core.clock import add_months, as_utc
from sarnies_api.jobs.loyalty import points_expiration
from sarnies_api.jobs.loyalty.points_expiration import (
    expire_inactive_points,
    run_points_expiration_job,
    send_expiration_warnings,
)
from sarnies_api.models import NotificationQueueEntry, PointsTransaction, TransactionType, User

NOW = dt.datetime(2026, 10, 18, 2, 0, tzinfo=dt.timezone.utc)


async def _add_users(session_factory, *users: User) -> list[int]:
    async with session_factory() as session:
        session.add_all(users)
        await session.commit()
        return [user.id for user in users]


async def _notifications(session_factory, notification_type: str) -> list[NotificationQueueEntry]:
    async with session_factory() as session:
        stmt = select(NotificationQueueEntry).where(NotificationQueueEntry.notification_type == notification_type)
        return list((await session.execute(stmt)).scalars().all())


def _user(phone: str, *, balance: int, last_activity: dt.datetime | None, prefs=None) -> User:
    return User(
        name="Test",
        surname=phone,
        phone=phone,
        points_balance=balance,
        last_activity_date=last_activity,
        notification_prefs=prefs if prefs is not None else {"points_rewards": True},
    )


@pytest.mark.asyncio
async def test_warning_is_queued_once_inside_final_month(session_factory) -> None:
    last_activity = add_months(NOW, -11) - dt.timedelta(days=1)
    (user_id,) = await _add_users(session_factory, _user("0801", balance=250, last_activity=last_activity))

    summary = await send_expiration_warnings(session_factory=session_factory, reference_time=NOW)

    assert summary == {"candidates": 1, "warnings_queued": 1, "skipped_by_preference": 0}
    (warning,) = await _notifications(session_factory, "points_expiring_warning")
    assert warning.user_id == user_id
    assert warning.title == "Your Points Are About to Expire"
    assert "250 points" in warning.body
    assert warning.category == "points_rewards"
    assert warning.data["points_balance"] == 250
    assert dt.datetime.fromisoformat(warning.data["expiry_date"]) == add_months(last_activity, 12)
    assert as_utc(warning.scheduled_for) == NOW

    repeat = await send_expiration_warnings(
        session_factory=session_factory, reference_time=NOW + dt.timedelta(days=1)
    )

    assert repeat["warnings_queued"] == 0
    assert len(await _notifications(session_factory, "points_expiring_warning")) == 1


@pytest.mark.asyncio
async def test_warning_window_excludes_recent_and_expired_activity(session_factory) -> None:
    await _add_users(
        session_factory,
        _user("0811", balance=10, last_activity=add_months(NOW, -10)),
        _user("0812", balance=10, last_activity=add_months(NOW, -13)),
        _user("0813", balance=10, last_activity=add_months(NOW, -12)),
        _user("0814", balance=0, last_activity=add_months(NOW, -11) - dt.timedelta(days=2)),
        _user("0815", balance=10, last_activity=None),
    )

    summary = await send_expiration_warnings(session_factory=session_factory, reference_time=NOW)

    assert summary["candidates"] == 0
    assert await _notifications(session_factory, "points_expiring_warning") == []


@pytest.mark.asyncio
async def test_warning_respects_notification_preferences(session_factory) -> None:
    last_activity = add_months(NOW, -11) - dt.timedelta(days=3)
    await _add_users(
        session_factory,
        _user("0821", balance=40, last_activity=last_activity, prefs={"points_rewards": False}),
        _user("0822", balance=40, last_activity=last_activity, prefs={}),
    )

    summary = await send_expiration_warnings(session_factory=session_factory, reference_time=NOW)

    assert summary == {"candidates": 2, "warnings_queued": 1, "skipped_by_preference": 1}


@pytest.mark.asyncio
async def test_inactive_balance_expires_with_ledger_and_notification(session_factory) -> None:
    last_activity = add_months(NOW, -12) - dt.timedelta(days=1)
    (user_id,) = await _add_users(session_factory, _user("0831", balance=300, last_activity=last_activity))

    summary = await expire_inactive_points(session_factory=session_factory, reference_time=NOW)

    assert summary == {"users_affected": 1, "total_points_expired": 300}
    async with session_factory() as session:
        user = await session.get(User, user_id)
        assert user.points_balance == 0
        ledger = (await session.execute(select(PointsTransaction))).scalars().all()
    assert len(ledger) == 1
    assert ledger[0].type == TransactionType.EXPIRE
    assert ledger[0].points_delta == -300
    assert ledger[0].outlet == "System"

    (notification,) = await _notifications(session_factory, "points_expired")
    assert notification.title == "Points Expired"
    assert notification.data["points_expired"] == 300

    again = await expire_inactive_points(session_factory=session_factory, reference_time=NOW)
    assert again == {"users_affected": 0, "total_points_expired": 0}


@pytest.mark.asyncio
async def test_activity_exactly_at_cutoff_is_not_expired(session_factory) -> None:
    await _add_users(session_factory, _user("0841", balance=90, last_activity=add_months(NOW, -12)))

    summary = await expire_inactive_points(session_factory=session_factory, reference_time=NOW)

    assert summary["users_affected"] == 0


@pytest.mark.asyncio
async def test_expiration_skips_notification_when_opted_out(session_factory) -> None:
    await _add_users(
        session_factory,
        _user("0851", balance=70, last_activity=add_months(NOW, -14), prefs={"points_rewards": False}),
    )

    summary = await expire_inactive_points(session_factory=session_factory, reference_time=NOW)

    assert summary["total_points_expired"] == 70
    assert await _notifications(session_factory, "points_expired") == []


@pytest.mark.asyncio
async def test_expiration_failure_rolls_back_every_customer(session_factory, monkeypatch) -> None:
    stale = add_months(NOW, -13)
    ids = await _add_users(
        session_factory,
        _user("0861", balance=100, last_activity=stale),
        _user("0862", balance=200, last_activity=stale),
    )

    original = points_expiration._record_expiration
    calls = 0

    async def fail_on_second(session, user, points, *, now):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise RuntimeError("ledger write failed")
        await original(session, user, points, now=now)

    monkeypatch.setattr(points_expiration, "_record_expiration", fail_on_second)

    with pytest.raises(RuntimeError, match="ledger write failed"):
        await expire_inactive_points(session_factory=session_factory, reference_time=NOW)

    async with session_factory() as session:
        balances = sorted([(await session.get(User, user_id)).points_balance for user_id in ids])
        ledger_rows = await session.scalar(select(func.count()).select_from(PointsTransaction))
    assert balances == [100, 200]
    assert ledger_rows == 0
    assert await _notifications(session_factory, "points_expired") == []


@pytest.mark.asyncio
async def test_job_continues_when_warning_sweep_fails(session_factory, monkeypatch) -> None:
    await _add_users(session_factory, _user("0871", balance=55, last_activity=add_months(NOW, -13)))

    async def broken_warnings(**kwargs):
        raise RuntimeError("notification table unavailable")

    monkeypatch.setattr(points_expiration, "send_expiration_warnings", broken_warnings)

    summary = await run_points_expiration_job(session_factory=session_factory, reference_time=NOW)

    assert summary == {
        "users_affected": 1,
        "total_points_expired": 55,
        "warnings_queued": 0,
        "warning_sweep_failed": True,
    }


@pytest.mark.asyncio
async def test_job_runs_both_sweeps(session_factory) -> None:
    await _add_users(
        session_factory,
        _user("0881", balance=20, last_activity=add_months(NOW, -11) - dt.timedelta(days=5)),
        _user("0882", balance=30, last_activity=add_months(NOW, -15)),
    )

    summary = await run_points_expiration_job(session_factory=session_factory, reference_time=NOW)

    assert summary == {
        "users_affected": 1,
        "total_points_expired": 30,
        "warnings_queued": 1,
        "warning_sweep_failed": False,
    }


def test_cli_exit_codes(monkeypatch) -> None:
    captured = {}

    async def fake_job(*, session_factory, reference_time=None):
        captured["reference_time"] = reference_time
        return {"users_affected": 0, "total_points_expired": 0, "warnings_queued": 0, "warning_sweep_failed": False}

    monkeypatch.setattr(points_expiration, "run_points_expiration_job", fake_job)
    assert points_expiration.main(["--reference-time", "2026-10-18T02:00:00"]) == 0
    assert captured["reference_time"] == NOW

    async def failing_job(*, session_factory, reference_time=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(points_expiration, "run_points_expiration_job", failing_job)
    assert points_expiration.main([]) == 1
