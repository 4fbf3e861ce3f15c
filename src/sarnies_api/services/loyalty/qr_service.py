"""Persisted issuance of customer identity and voucher redemption QR codes."""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sarnies_api.core.clock import as_utc
from sarnies_api.models.user import User
from sarnies_api.models.voucher import VoucherInstance, VoucherInstanceStatus
from sarnies_api.services.qr import IdentityCredential, RedemptionCredential
from sarnies_api.services.qr.identity import format_customer_id
from sarnies_api.services.qr.toolkit import QRToolkit

from .errors import LoyaltyOperationError


class LoyaltyQRService:
    """Issue QR credentials and keep the customer's current identity QR on file."""

    def __init__(self, session: AsyncSession, toolkit: QRToolkit) -> None:
        self._db = session
        self._toolkit = toolkit

    async def get_or_issue_identity(self, customer_id: int) -> IdentityCredential:
        user = await self._get_user(customer_id)
        if user.static_qr_token and user.static_qr_image and user.static_qr_created_at:
            return IdentityCredential(
                token=user.static_qr_token,
                image_data_uri=user.static_qr_image,
                created_at=as_utc(user.static_qr_created_at),
            )
        return await self._store_identity(user)

    async def reissue_identity(self, customer_id: int) -> IdentityCredential:
        """Replace the stored identity QR; earlier tokens are not revoked."""

        user = await self._get_user(customer_id)
        return await self._store_identity(user)

    async def issue_redemption(
        self,
        customer_id: int,
        voucher_instance_uuid: str,
        *,
        ttl_seconds: int | None = None,
    ) -> RedemptionCredential:
        stmt = select(VoucherInstance).where(VoucherInstance.uuid == voucher_instance_uuid)
        instance = (await self._db.execute(stmt)).scalar_one_or_none()
        if instance is None or instance.user_id != customer_id:
            raise LoyaltyOperationError("voucher_not_found")

        status = VoucherInstanceStatus(instance.status)
        if status is VoucherInstanceStatus.USED:
            raise LoyaltyOperationError("voucher_already_used")
        now = self._toolkit.codec.now()
        if status is VoucherInstanceStatus.EXPIRED or (
            instance.expires_at is not None and as_utc(instance.expires_at) < now
        ):
            raise LoyaltyOperationError("voucher_expired")

        credential = self._toolkit.redemption_issuer.issue(
            {
                "customer_id": format_customer_id(customer_id),
                "voucher_id": instance.voucher_id,
                "voucher_instance_id": instance.uuid,
            },
            ttl_seconds=ttl_seconds,
        )
        logger.info(
            "Issued voucher redemption QR",
            customer_id=customer_id,
            voucher_instance=instance.uuid,
            expires_in=credential.expires_in,
        )
        return credential

    async def _store_identity(self, user: User) -> IdentityCredential:
        credential = self._toolkit.identity_issuer.issue(user.id)
        user.static_qr_token = credential.token
        user.static_qr_image = credential.image_data_uri
        user.static_qr_created_at = credential.created_at
        await self._db.commit()
        logger.info("Issued static identity QR", customer_id=user.id)
        return credential

    async def _get_user(self, customer_id: int) -> User:
        user = await self._db.get(User, customer_id)
        if user is None:
            raise LoyaltyOperationError("customer_not_found")
        return user


__all__ = ["LoyaltyQRService"]
