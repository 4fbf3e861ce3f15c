"""Staff point-of-sale scanning."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sarnies_api.api.dependencies.qr import get_qr_toolkit
from sarnies_api.core.settings import settings
from sarnies_api.db.session import get_session
from sarnies_api.services.loyalty import ScanService
from sarnies_api.services.qr.toolkit import QRToolkit


router = APIRouter(prefix="/pos", tags=["POS"])


class ScanRequest(BaseModel):
    qrToken: str = Field(..., min_length=1)
    outlet: str = Field(..., min_length=1)
    staffId: int
    amount: Decimal | None = Field(None, description="Bill total; required for identity scans")


class CustomerCard(BaseModel):
    id: int
    name: str | None
    surname: str | None
    phone: str | None


class ScanResponse(BaseModel):
    success: bool = True
    type: Literal["points_awarded", "voucher_used"]
    customer: CustomerCard
    pointsAwarded: int | None = None
    newBalance: int | None = None
    amountSpent: float | None = None
    voucher: dict[str, Any] | None = None
    value: float | None = None


@router.post("/scan-qr", response_model=ScanResponse, response_model_exclude_none=True)
async def scan_qr(
    payload: ScanRequest,
    session: AsyncSession = Depends(get_session),
    toolkit: QRToolkit = Depends(get_qr_toolkit),
) -> ScanResponse:
    service = ScanService(session, toolkit, points_per_100=settings.points_per_100)
    outcome = await service.scan(
        payload.qrToken,
        outlet=payload.outlet,
        staff_id=payload.staffId,
        amount=payload.amount,
    )
    return ScanResponse(
        type=outcome.kind,
        customer=CustomerCard(**outcome.customer),
        pointsAwarded=outcome.points_awarded,
        newBalance=outcome.new_balance,
        amountSpent=float(outcome.amount_spent) if outcome.amount_spent is not None else None,
        voucher=outcome.voucher,
        value=float(outcome.value) if outcome.value is not None else None,
    )
