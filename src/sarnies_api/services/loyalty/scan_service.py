"""Staff-side handling of scanned identity and voucher redemption QR codes."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sarnies_api.core.clock import as_utc
from sarnies_api.models.transaction import PointsTransaction, TransactionType
from sarnies_api.models.user import User
from sarnies_api.models.voucher import Voucher, VoucherInstance, VoucherInstanceStatus
from sarnies_api.services.qr import TokenClass, VerificationError, VerificationResult
from sarnies_api.services.qr.toolkit import QRToolkit

from .errors import LoyaltyOperationError
from .voucher_state import transition_instance


@dataclass
class ScanOutcome:
    kind: str
    customer: dict[str, Any]
    points_awarded: int | None = None
    new_balance: int | None = None
    amount_spent: Decimal | None = None
    voucher: dict[str, Any] | None = None
    value: Decimal | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def _customer_card(user: User) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "surname": user.surname, "phone": user.phone}


def _same_customer(token_customer: object, user_id: int) -> bool:
    try:
        return int(str(token_customer)) == user_id
    except ValueError:
        return False


class ScanService:
    """Route a scanned token to points award or voucher consumption.

    Each scan is one database transaction. Rows are read ``FOR UPDATE`` so two
    concurrent scans of the same still-valid redemption QR cannot both consume
    the voucher instance.
    """

    def __init__(self, session: AsyncSession, toolkit: QRToolkit, *, points_per_100: int = 1) -> None:
        self._db = session
        self._toolkit = toolkit
        self._points_per_100 = points_per_100

    async def scan(
        self,
        token: str,
        *,
        outlet: str,
        staff_id: int,
        amount: Decimal | float | int | None = None,
    ) -> ScanOutcome:
        verification = self._toolkit.verifier.verify_scan(token)
        if not verification.valid:
            code = "qr_expired" if verification.error is VerificationError.EXPIRED else "qr_invalid"
            raise LoyaltyOperationError(code, status_code=400)

        if verification.token_class is TokenClass.IDENTITY:
            return await self._award_points(verification, amount=amount, outlet=outlet, staff_id=staff_id)
        return await self._redeem_voucher(verification, outlet=outlet, staff_id=staff_id)

    async def _award_points(
        self,
        verification: VerificationResult,
        *,
        amount: Decimal | float | int | None,
        outlet: str,
        staff_id: int,
    ) -> ScanOutcome:
        spend = Decimal(str(amount)) if amount is not None else Decimal("0")
        if spend <= 0:
            raise LoyaltyOperationError("invalid_amount")
        try:
            customer_id = int(verification.customer_id or "")
        except ValueError as exc:
            raise LoyaltyOperationError("qr_invalid") from exc

        now = self._toolkit.codec.now()
        try:
            stmt = select(User).where(User.id == customer_id).with_for_update()
            user = (await self._db.execute(stmt)).scalar_one_or_none()
            if user is None:
                raise LoyaltyOperationError("customer_not_found")

            points = int(spend // 100) * self._points_per_100
            user.points_balance = (user.points_balance or 0) + points
            user.total_spend = Decimal(user.total_spend or 0) + spend
            user.total_purchases_count = (user.total_purchases_count or 0) + 1
            user.last_activity_date = now
            self._db.add(
                PointsTransaction(
                    user_id=user.id,
                    type=TransactionType.EARN,
                    points_delta=points,
                    amount_value=spend,
                    outlet=outlet,
                    staff_id=staff_id,
                    created_at=now,
                )
            )
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise

        logger.info(
            "Awarded loyalty points from identity scan",
            customer_id=user.id,
            points=points,
            outlet=outlet,
            staff_id=staff_id,
        )
        return ScanOutcome(
            kind="points_awarded",
            customer=_customer_card(user),
            points_awarded=points,
            new_balance=user.points_balance,
            amount_spent=spend,
        )

    async def _redeem_voucher(
        self,
        verification: VerificationResult,
        *,
        outlet: str,
        staff_id: int,
    ) -> ScanOutcome:
        now = self._toolkit.codec.now()
        try:
            stmt = (
                select(VoucherInstance)
                .where(VoucherInstance.uuid == verification.voucher_instance_id)
                .with_for_update()
            )
            instance = (await self._db.execute(stmt)).scalar_one_or_none()
            if instance is None:
                raise LoyaltyOperationError("voucher_not_found")

            token_customer = verification.claims.get("customer_id")
            if token_customer is not None and not _same_customer(token_customer, instance.user_id):
                logger.warning(
                    "Redemption QR customer does not own voucher instance",
                    voucher_instance=instance.uuid,
                    token_customer=str(token_customer),
                )
                raise LoyaltyOperationError("qr_invalid")

            status = VoucherInstanceStatus(instance.status)
            if status is VoucherInstanceStatus.USED:
                raise LoyaltyOperationError("voucher_already_used")
            if status is VoucherInstanceStatus.EXPIRED:
                raise LoyaltyOperationError("voucher_expired")
            if instance.expires_at is not None and as_utc(instance.expires_at) < now:
                transition_instance(instance, VoucherInstanceStatus.EXPIRED, at=now)
                await self._db.commit()
                raise LoyaltyOperationError("voucher_expired")

            user = await self._db.get(User, instance.user_id)
            voucher = await self._db.get(Voucher, instance.voucher_id)
            if user is None:
                raise LoyaltyOperationError("customer_not_found")
            if voucher is None:
                raise LoyaltyOperationError("voucher_not_found")

            transition_instance(instance, VoucherInstanceStatus.USED, at=now, staff_id=staff_id, outlet=outlet)
            user.last_activity_date = now
            self._db.add(
                PointsTransaction(
                    user_id=user.id,
                    type=TransactionType.USE,
                    points_delta=0,
                    amount_value=voucher.cash_value,
                    voucher_id=voucher.id,
                    outlet=outlet,
                    staff_id=staff_id,
                    created_at=now,
                )
            )
            await self._db.commit()
        except LoyaltyOperationError:
            if self._db.in_transaction():
                await self._db.rollback()
            raise
        except Exception:
            await self._db.rollback()
            raise

        logger.info(
            "Voucher redeemed from QR scan",
            customer_id=user.id,
            voucher_id=voucher.id,
            voucher_instance=instance.uuid,
            outlet=outlet,
            staff_id=staff_id,
        )
        return ScanOutcome(
            kind="voucher_used",
            customer=_customer_card(user),
            voucher={
                "id": voucher.id,
                "title": voucher.title,
                "description": voucher.description,
                "voucherType": voucher.voucher_type,
            },
            value=voucher.cash_value,
        )


__all__ = ["ScanOutcome", "ScanService"]
