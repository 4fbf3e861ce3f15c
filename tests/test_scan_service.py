"""Staff scan flows: points award and voucher redemption."""

import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy import select

from sarnies_api.core.clock import as_utc
from sarnies_api.models import (
    PointsTransaction,
    TransactionType,
    User,
    Voucher,
    VoucherInstance,
    VoucherInstanceStatus,
)
from sarnies_api.services.loyalty import (
    InvalidVoucherTransitionError,
    LoyaltyOperationError,
    LoyaltyQRService,
    ScanService,
    transition_instance,
)


async def _seed(session_factory, *, instance_status=VoucherInstanceStatus.ACTIVE, expires_at=None):
    async with session_factory() as session:
        owner = User(name="Ava", surname="Lim", phone="0899", points_balance=10, notification_prefs={})
        other = User(name="Ben", surname="Ng", phone="0898", points_balance=0, notification_prefs={})
        voucher = Voucher(title="Free Flat White", description="Any size", cash_value=Decimal("120.00"))
        session.add_all([owner, other, voucher])
        await session.flush()
        instance = VoucherInstance(
            user_id=owner.id,
            voucher_id=voucher.id,
            status=instance_status,
            expires_at=expires_at,
        )
        session.add(instance)
        await session.commit()
        return owner.id, other.id, instance.uuid


async def _redemption_token(session_factory, toolkit, customer_id: int, instance_uuid: str) -> str:
    async with session_factory() as session:
        credential = await LoyaltyQRService(session, toolkit).issue_redemption(customer_id, instance_uuid)
    return credential.token


@pytest.mark.asyncio
async def test_identity_scan_awards_points_and_records_ledger(session_factory, toolkit, clock) -> None:
    owner_id, _, _ = await _seed(session_factory)
    token = toolkit.identity_issuer.issue(owner_id).token

    async with session_factory() as session:
        outcome = await ScanService(session, toolkit, points_per_100=1).scan(
            token, outlet="Thonglor", staff_id=7, amount=Decimal("450")
        )

    assert outcome.kind == "points_awarded"
    assert outcome.points_awarded == 4
    assert outcome.new_balance == 14
    assert outcome.customer["name"] == "Ava"

    async with session_factory() as session:
        user = await session.get(User, owner_id)
        ledger = (await session.execute(select(PointsTransaction))).scalars().all()
    assert user.total_purchases_count == 1
    assert Decimal(user.total_spend) == Decimal("450")
    assert as_utc(user.last_activity_date) == clock()
    assert [(row.type, row.points_delta, row.outlet, row.staff_id) for row in ledger] == [
        (TransactionType.EARN, 4, "Thonglor", 7)
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [None, 0, -50])
async def test_identity_scan_requires_positive_amount(session_factory, toolkit, amount) -> None:
    owner_id, _, _ = await _seed(session_factory)
    token = toolkit.identity_issuer.issue(owner_id).token

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Thonglor", staff_id=7, amount=amount)

    assert excinfo.value.code == "invalid_amount"
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_identity_scan_for_unknown_customer(session_factory, toolkit) -> None:
    token = toolkit.identity_issuer.issue(4242).token

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Ari", staff_id=1, amount=100)

    assert excinfo.value.code == "customer_not_found"
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_invalid_and_expired_tokens_are_rejected(session_factory, toolkit, clock) -> None:
    owner_id, _, instance_uuid = await _seed(session_factory)
    token = await _redemption_token(session_factory, toolkit, owner_id, instance_uuid)
    clock.advance(121)

    async with session_factory() as session:
        service = ScanService(session, toolkit)
        with pytest.raises(LoyaltyOperationError) as expired:
            await service.scan(token, outlet="Ari", staff_id=1)
        with pytest.raises(LoyaltyOperationError) as garbage:
            await service.scan("not-a-qr", outlet="Ari", staff_id=1)

    assert expired.value.code == "qr_expired"
    assert expired.value.message == "This QR code has expired. Please generate a new one."
    assert garbage.value.code == "qr_invalid"


@pytest.mark.asyncio
async def test_redemption_scan_consumes_voucher(session_factory, toolkit, clock) -> None:
    owner_id, _, instance_uuid = await _seed(session_factory)
    token = await _redemption_token(session_factory, toolkit, owner_id, instance_uuid)
    clock.advance(30)

    async with session_factory() as session:
        outcome = await ScanService(session, toolkit).scan(token, outlet="Ekkamai", staff_id=3)

    assert outcome.kind == "voucher_used"
    assert outcome.voucher["title"] == "Free Flat White"
    assert outcome.value == Decimal("120.00")

    async with session_factory() as session:
        instance = (
            await session.execute(select(VoucherInstance).where(VoucherInstance.uuid == instance_uuid))
        ).scalar_one()
        owner = await session.get(User, owner_id)
        (ledger,) = (await session.execute(select(PointsTransaction))).scalars().all()
    assert instance.status == VoucherInstanceStatus.USED
    assert instance.used_by_staff_id == 3
    assert instance.used_at_outlet == "Ekkamai"
    assert as_utc(instance.used_at) == clock()
    assert as_utc(owner.last_activity_date) == clock()
    assert ledger.type == TransactionType.USE
    assert ledger.points_delta == 0
    assert Decimal(ledger.amount_value) == Decimal("120.00")


@pytest.mark.asyncio
async def test_second_scan_of_same_redemption_qr_is_rejected(session_factory, toolkit) -> None:
    owner_id, _, instance_uuid = await _seed(session_factory)
    token = await _redemption_token(session_factory, toolkit, owner_id, instance_uuid)

    async with session_factory() as session:
        await ScanService(session, toolkit).scan(token, outlet="Ekkamai", staff_id=3)

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Ekkamai", staff_id=4)

    assert excinfo.value.code == "voucher_already_used"
    async with session_factory() as session:
        ledger = (await session.execute(select(PointsTransaction))).scalars().all()
    assert len(ledger) == 1


@pytest.mark.asyncio
async def test_past_due_instance_is_marked_expired(session_factory, toolkit, clock) -> None:
    owner_id, _, instance_uuid = await _seed(session_factory, expires_at=clock() + dt.timedelta(seconds=60))
    token = await _redemption_token(session_factory, toolkit, owner_id, instance_uuid)
    clock.advance(90)

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Ari", staff_id=1)

    assert excinfo.value.code == "voucher_expired"
    async with session_factory() as session:
        instance = (
            await session.execute(select(VoucherInstance).where(VoucherInstance.uuid == instance_uuid))
        ).scalar_one()
    assert instance.status == VoucherInstanceStatus.EXPIRED


@pytest.mark.asyncio
async def test_redemption_qr_for_another_customer_is_invalid(session_factory, toolkit) -> None:
    _, other_id, instance_uuid = await _seed(session_factory)
    token = toolkit.redemption_issuer.issue(
        {"customer_id": f"{other_id:06d}", "voucher_instance_id": instance_uuid}
    ).token

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Ari", staff_id=1)

    assert excinfo.value.code == "qr_invalid"


@pytest.mark.asyncio
async def test_redemption_for_unknown_instance(session_factory, toolkit) -> None:
    token = toolkit.redemption_issuer.issue({"voucher_instance_id": "does-not-exist"}).token

    async with session_factory() as session:
        with pytest.raises(LoyaltyOperationError) as excinfo:
            await ScanService(session, toolkit).scan(token, outlet="Ari", staff_id=1)

    assert excinfo.value.code == "voucher_not_found"


def test_terminal_voucher_states_cannot_transition() -> None:
    instance = VoucherInstance(uuid="vi-1", status=VoucherInstanceStatus.USED)
    now = dt.datetime(2026, 10, 18, tzinfo=dt.timezone.utc)

    with pytest.raises(InvalidVoucherTransitionError):
        transition_instance(instance, VoucherInstanceStatus.ACTIVE, at=now)
    with pytest.raises(InvalidVoucherTransitionError):
        transition_instance(instance, VoucherInstanceStatus.EXPIRED, at=now)


def test_active_voucher_transitions_to_used_with_audit_fields() -> None:
    instance = VoucherInstance(uuid="vi-2", status=VoucherInstanceStatus.ACTIVE)
    now = dt.datetime(2026, 10, 18, tzinfo=dt.timezone.utc)

    transition_instance(instance, VoucherInstanceStatus.USED, at=now, staff_id=9, outlet="Ari")

    assert instance.status is VoucherInstanceStatus.USED
    assert (instance.used_at, instance.used_by_staff_id, instance.used_at_outlet) == (now, 9, "Ari")
