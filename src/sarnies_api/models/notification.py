from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text, func

from sarnies_api.db.base import Base, value_enum


class NotificationQueueStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationQueueEntry(Base):
    """Outbound notification awaiting the delivery worker."""

    __tablename__ = "notification_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type = Column(String(64), nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    category = Column(String(64), nullable=True)
    status = Column(
        value_enum(NotificationQueueStatus, "notification_queue_status"),
        nullable=False,
        default=NotificationQueueStatus.PENDING,
        server_default=NotificationQueueStatus.PENDING.value,
    )
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
