from sqlalchemy import CheckConstraint, Column, DateTime, Integer, JSON, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from sarnies_api.db.base import Base


def _default_notification_prefs() -> dict[str, bool]:
    return {"points_rewards": True}


class User(Base):
    """Loyalty customer; the primary key doubles as the printed member number."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=True)
    surname = Column(String(120), nullable=True)
    phone = Column(String(32), nullable=True, unique=True)
    email = Column(String, nullable=True, unique=True)
    points_balance = Column(Integer, nullable=False, default=0, server_default="0")
    total_spend = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    total_purchases_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date = Column(DateTime(timezone=True), nullable=True, index=True)
    notification_prefs = Column(JSON, nullable=True, default=_default_notification_prefs)
    static_qr_token = Column(Text, nullable=True)
    static_qr_image = Column(Text, nullable=True)
    static_qr_created_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    voucher_instances = relationship("VoucherInstance", back_populates="user")

    def wants_points_notifications(self) -> bool:
        prefs = self.notification_prefs or {}
        return bool(prefs.get("points_rewards", True))
