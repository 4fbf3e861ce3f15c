"""Voucher instance state machine."""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from sarnies_api.models.voucher import VoucherInstance, VoucherInstanceStatus


class InvalidVoucherTransitionError(RuntimeError):
    """Raised when a voucher instance transition is not allowed."""

    def __init__(self, current: VoucherInstanceStatus, requested: VoucherInstanceStatus) -> None:
        super().__init__(f"Cannot transition voucher instance from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


_ALLOWED_TRANSITIONS: dict[VoucherInstanceStatus, set[VoucherInstanceStatus]] = {
    VoucherInstanceStatus.ACTIVE: {VoucherInstanceStatus.USED, VoucherInstanceStatus.EXPIRED},
    VoucherInstanceStatus.USED: set(),
    VoucherInstanceStatus.EXPIRED: set(),
}


def transition_instance(
    instance: VoucherInstance,
    target: VoucherInstanceStatus,
    *,
    at: datetime,
    staff_id: int | None = None,
    outlet: str | None = None,
) -> None:
    """Apply ``target`` to ``instance`` in memory; the caller owns the transaction."""

    current = VoucherInstanceStatus(instance.status)
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidVoucherTransitionError(current, target)

    instance.status = target
    if target is VoucherInstanceStatus.USED:
        instance.used_at = at
        instance.used_by_staff_id = staff_id
        instance.used_at_outlet = outlet

    logger.info(
        "Voucher instance transitioned",
        voucher_instance=instance.uuid,
        from_status=current.value,
        to_status=target.value,
    )


__all__ = ["InvalidVoucherTransitionError", "transition_instance"]
