"""Customer-facing QR issuance and a staff-side verification probe."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sarnies_api.api.dependencies.qr import get_qr_toolkit
from sarnies_api.core.settings import settings
from sarnies_api.db.session import get_session
from sarnies_api.services.loyalty import LoyaltyQRService
from sarnies_api.services.qr import IdentityCredential, render_qr_data_uri
from sarnies_api.services.qr.toolkit import QRToolkit


router = APIRouter(prefix="/qr", tags=["QR"])


class IdentityQRResponse(BaseModel):
    customerId: int
    token: str
    qrCode: str
    createdAt: datetime


class RedemptionQRRequest(BaseModel):
    customerId: int = Field(..., ge=0)
    voucherInstanceId: str = Field(..., min_length=1)
    ttlSeconds: int | None = Field(None, gt=0, le=3600, description="Override the default 120 second lifetime")


class RedemptionQRResponse(BaseModel):
    token: str
    qrCode: str
    expiresIn: int
    expiresAt: datetime


class VerifyRequest(BaseModel):
    token: str


class VerifyResponse(BaseModel):
    valid: bool
    tokenClass: str | None = None
    customerId: str | None = None
    voucherInstanceId: str | None = None
    error: str | None = None
    message: str | None = None


def _identity_response(customer_id: int, credential: IdentityCredential) -> IdentityQRResponse:
    return IdentityQRResponse(
        customerId=customer_id,
        token=credential.token,
        qrCode=credential.image_data_uri,
        createdAt=credential.created_at,
    )


@router.get("/identity/{customer_id}", response_model=IdentityQRResponse)
async def get_identity_qr(
    customer_id: int,
    session: AsyncSession = Depends(get_session),
    toolkit: QRToolkit = Depends(get_qr_toolkit),
) -> IdentityQRResponse:
    credential = await LoyaltyQRService(session, toolkit).get_or_issue_identity(customer_id)
    return _identity_response(customer_id, credential)


@router.post("/identity/{customer_id}/reissue", response_model=IdentityQRResponse)
async def reissue_identity_qr(
    customer_id: int,
    session: AsyncSession = Depends(get_session),
    toolkit: QRToolkit = Depends(get_qr_toolkit),
) -> IdentityQRResponse:
    credential = await LoyaltyQRService(session, toolkit).reissue_identity(customer_id)
    return _identity_response(customer_id, credential)


@router.post("/redemption", response_model=RedemptionQRResponse)
async def create_redemption_qr(
    payload: RedemptionQRRequest,
    session: AsyncSession = Depends(get_session),
    toolkit: QRToolkit = Depends(get_qr_toolkit),
) -> RedemptionQRResponse:
    credential = await LoyaltyQRService(session, toolkit).issue_redemption(
        payload.customerId,
        payload.voucherInstanceId,
        ttl_seconds=payload.ttlSeconds,
    )
    return RedemptionQRResponse(
        token=credential.token,
        qrCode=render_qr_data_uri(
            credential.token,
            size=settings.qr_image_size,
            margin=settings.qr_image_margin,
        ),
        expiresIn=credential.expires_in,
        expiresAt=credential.expires_at,
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify_qr(payload: VerifyRequest, toolkit: QRToolkit = Depends(get_qr_toolkit)) -> VerifyResponse:
    """Report whether a scanned token is usable; rejections are still HTTP 200."""

    result = toolkit.verifier.verify_scan(payload.token)
    return VerifyResponse(**result.as_dict())
