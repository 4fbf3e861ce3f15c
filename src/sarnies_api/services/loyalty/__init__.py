"""Loyalty services: QR issuance, staff scans and voucher lifecycle."""

from .errors import LoyaltyOperationError, USER_FRIENDLY_MESSAGES
from .qr_service import LoyaltyQRService
from .scan_service import ScanOutcome, ScanService
from .voucher_state import InvalidVoucherTransitionError, transition_instance

__all__ = [
    "InvalidVoucherTransitionError",
    "LoyaltyOperationError",
    "LoyaltyQRService",
    "ScanOutcome",
    "ScanService",
    "USER_FRIENDLY_MESSAGES",
    "transition_instance",
]
