"""Voucher catalogue and per-customer voucher instances."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func, true
from sqlalchemy.orm import relationship

from sarnies_api.db.base import Base, value_enum


class VoucherInstanceStatus(str, Enum):
    """Lifecycle of a voucher held by a customer."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    voucher_type = Column(String(32), nullable=False, default="free_item", server_default="free_item")
    points_required = Column(Integer, nullable=False, default=0, server_default="0")
    cash_value = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    instances = relationship("VoucherInstance", back_populates="voucher")


class VoucherInstance(Base):
    """A single redeemable copy of a voucher.

    The ``status`` column is the authority on single use: a redemption QR only
    bounds the time window in which a scan is accepted.
    """

    __tablename__ = "voucher_instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), nullable=False, unique=True, index=True, default=lambda: str(uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        value_enum(VoucherInstanceStatus, "voucher_instance_status"),
        nullable=False,
        default=VoucherInstanceStatus.ACTIVE,
        server_default=VoucherInstanceStatus.ACTIVE.value,
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by_staff_id = Column(Integer, nullable=True)
    used_at_outlet = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="voucher_instances")
    voucher = relationship("Voucher", back_populates="instances")
