"""Loyalty operation failures surfaced to staff and customer clients."""

from __future__ import annotations

USER_FRIENDLY_MESSAGES: dict[str, str] = {
    "customer_not_found": "Customer not found. Please verify the phone number or member ID.",
    "voucher_not_found": "This voucher could not be found. It may have been removed.",
    "voucher_expired": "This voucher has expired and can no longer be used.",
    "voucher_already_used": "This voucher has already been redeemed.",
    "invalid_amount": "Please enter the purchase amount to award loyalty points.",
    "qr_invalid": "This QR code is invalid or corrupted. Please try scanning again.",
    "qr_expired": "This QR code has expired. Please generate a new one.",
}

_STATUS_CODES: dict[str, int] = {
    "customer_not_found": 404,
    "voucher_not_found": 404,
}


class LoyaltyOperationError(RuntimeError):
    """Expected business-rule failure carrying a stable error code."""

    def __init__(self, code: str, message: str | None = None, *, status_code: int | None = None) -> None:
        self.code = code
        self.message = message or USER_FRIENDLY_MESSAGES.get(code, "We could not process your request. Please try again.")
        self.status_code = status_code or _STATUS_CODES.get(code, 400)
        super().__init__(self.message)

    def as_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


__all__ = ["LoyaltyOperationError", "USER_FRIENDLY_MESSAGES"]
