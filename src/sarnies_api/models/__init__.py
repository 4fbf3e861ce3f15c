"""SQLAlchemy models package."""

from .notification import NotificationQueueEntry, NotificationQueueStatus  # noqa: F401
from .transaction import PointsTransaction, TransactionType  # noqa: F401
from .user import User  # noqa: F401
from .voucher import Voucher, VoucherInstance, VoucherInstanceStatus  # noqa: F401

__all__ = [
    "NotificationQueueEntry",
    "NotificationQueueStatus",
    "PointsTransaction",
    "TransactionType",
    "User",
    "Voucher",
    "VoucherInstance",
    "VoucherInstanceStatus",
]
