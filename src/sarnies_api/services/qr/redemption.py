"""Short-lived voucher redemption QR tokens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from .codec import TokenCodec
from .identity import DEFAULT_ISSUER

REDEMPTION_TOKEN_TYPE = "voucher_redemption"
REDEMPTION_TOKEN_VERSION = 1
DEFAULT_REDEMPTION_TTL_SECONDS = 120


@dataclass(frozen=True, slots=True)
class RedemptionCredential:
    token: str
    expires_at: datetime
    expires_in: int


class RedemptionTokenIssuer:
    """Sign one redemption event's context with a bounded lifetime.

    The token only limits how long a captured QR stays usable. Whether the
    voucher instance was already consumed is decided by its row status.
    """

    def __init__(
        self,
        codec: TokenCodec,
        *,
        issuer: str = DEFAULT_ISSUER,
        default_ttl_seconds: int = DEFAULT_REDEMPTION_TTL_SECONDS,
    ) -> None:
        self._codec = codec
        self._issuer = issuer
        self._default_ttl_seconds = default_ttl_seconds

    def issue(self, payload: Mapping[str, Any], ttl_seconds: int | None = None) -> RedemptionCredential:
        ttl = self._default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise ValueError(f"ttl_seconds must be a positive integer, got {ttl_seconds!r}")
        if not payload.get("voucher_instance_id"):
            raise ValueError("Redemption payload requires a voucher_instance_id")
        declared_type = payload.get("type")
        if declared_type is not None and declared_type != REDEMPTION_TOKEN_TYPE:
            raise ValueError(f"Redemption payload cannot carry type {declared_type!r}")

        issued_at = self._codec.now()
        expires_at = issued_at + timedelta(seconds=ttl)
        claims = {
            **payload,
            "type": REDEMPTION_TOKEN_TYPE,
            "version": REDEMPTION_TOKEN_VERSION,
            "issuer": self._issuer,
            "iat": int(issued_at.timestamp()),
            "expires_at": expires_at.isoformat(),
        }
        token = self._codec.sign(claims, expires_in=ttl)
        return RedemptionCredential(token=token, expires_at=expires_at, expires_in=ttl)


__all__ = [
    "DEFAULT_REDEMPTION_TTL_SECONDS",
    "REDEMPTION_TOKEN_TYPE",
    "RedemptionCredential",
    "RedemptionTokenIssuer",
]
