from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func

from sarnies_api.db.base import Base, value_enum


class TransactionType(str, Enum):
    """Ledger entry kinds affecting (or recording) a points balance."""

    EARN = "earn"
    REDEEM = "redeem"
    USE = "use"
    EXPIRE = "expire"
    ADJUST = "adjust"


class PointsTransaction(Base):
    """Row in the ``transactions`` ledger."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(value_enum(TransactionType, "transaction_type"), nullable=False)
    points_delta = Column(Integer, nullable=False, default=0)
    amount_value = Column(Numeric(12, 2), nullable=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True)
    outlet = Column(String, nullable=True)
    staff_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
