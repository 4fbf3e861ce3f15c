"""Turn scanned QR strings into typed verification results for staff tooling."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger
from opentelemetry import trace

from .codec import DecodeStatus, TokenCodec
from .identity import DEFAULT_ISSUER, IDENTITY_TOKEN_TYPE
from .redemption import REDEMPTION_TOKEN_TYPE

tracer = trace.get_tracer(__name__)


class TokenClass(str, Enum):
    IDENTITY = "identity"
    REDEMPTION = "redemption"


class VerificationError(str, Enum):
    EXPIRED = "expired"
    INVALID_TOKEN = "invalid_token"
    INVALID_TYPE = "invalid_type"
    MISSING_IDENTIFIER = "missing_identifier"
    UNSUPPORTED_VERSION = "unsupported_version"
    INVALID_ISSUER = "invalid_issuer"
    VERIFICATION_FAILED = "verification_failed"


VERIFICATION_MESSAGES: dict[VerificationError, str] = {
    VerificationError.EXPIRED: "QR code expired",
    VerificationError.INVALID_TOKEN: "Invalid QR code",
    VerificationError.INVALID_TYPE: "Invalid QR code type",
    VerificationError.MISSING_IDENTIFIER: "Missing customer ID",
    VerificationError.UNSUPPORTED_VERSION: "QR code version not supported",
    VerificationError.INVALID_ISSUER: "Invalid QR code issuer",
    VerificationError.VERIFICATION_FAILED: "QR verification failed",
}

_EXPECTED_TYPES = {
    TokenClass.IDENTITY: IDENTITY_TOKEN_TYPE,
    TokenClass.REDEMPTION: REDEMPTION_TOKEN_TYPE,
}
_IDENTIFIER_FIELDS = {
    TokenClass.IDENTITY: "customer_id",
    TokenClass.REDEMPTION: "voucher_instance_id",
}


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    token_class: TokenClass | None = None
    customer_id: str | None = None
    voucher_instance_id: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)
    error: VerificationError | None = None

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        if self.error is VerificationError.MISSING_IDENTIFIER and self.token_class is TokenClass.REDEMPTION:
            return "Missing voucher instance ID"
        return VERIFICATION_MESSAGES[self.error]

    def as_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "tokenClass": self.token_class.value if self.token_class else None,
            "customerId": self.customer_id,
            "voucherInstanceId": self.voucher_instance_id,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


def _rejected(error: VerificationError, token_class: TokenClass | None = None) -> VerificationResult:
    return VerificationResult(valid=False, token_class=token_class, error=error)


class VerificationService:
    """Pure decision function over a scanned string; performs no I/O."""

    def __init__(self, codec: TokenCodec, *, issuer: str = DEFAULT_ISSUER, max_version: int = 1) -> None:
        self._codec = codec
        self._issuer = issuer
        self._max_version = max_version

    def verify_identity(self, token: object) -> VerificationResult:
        return self._guarded(token, TokenClass.IDENTITY)

    def verify_redemption(self, token: object) -> VerificationResult:
        return self._guarded(token, TokenClass.REDEMPTION)

    def verify_scan(self, token: object) -> VerificationResult:
        """Verify a token of either class, picking the class from its ``type`` claim."""

        return self._guarded(token, None)

    def _guarded(self, token: object, expected: TokenClass | None) -> VerificationResult:
        with tracer.start_as_current_span("qr.verify") as span:
            span.set_attribute("qr.expected_class", expected.value if expected else "any")
            try:
                result = self._verify(token, expected)
            except Exception:
                logger.exception("Unexpected QR verification failure", expected_class=str(expected))
                result = _rejected(VerificationError.VERIFICATION_FAILED, expected)
            span.set_attribute("qr.valid", result.valid)
            if result.error is not None:
                span.set_attribute("qr.error", result.error.value)
            return result

    def _verify(self, token: object, expected: TokenClass | None) -> VerificationResult:
        decoded = self._codec.verify(token)
        if decoded.status is DecodeStatus.EXPIRED:
            return _rejected(VerificationError.EXPIRED, expected)
        if not decoded.ok or decoded.claims is None:
            logger.info("Rejected undecodable QR token", status=decoded.status.value, detail=decoded.detail)
            return _rejected(VerificationError.INVALID_TOKEN, expected)

        claims = decoded.claims
        token_class = expected or self._classify(claims.get("type"))
        if token_class is None or claims.get("type") != _EXPECTED_TYPES[token_class]:
            return _rejected(VerificationError.INVALID_TYPE, expected)

        identifier = claims.get(_IDENTIFIER_FIELDS[token_class])
        if identifier is None or identifier == "":
            return _rejected(VerificationError.MISSING_IDENTIFIER, token_class)

        version = claims.get("version")
        if version is not None and (
            isinstance(version, bool) or not isinstance(version, int) or version > self._max_version
        ):
            return _rejected(VerificationError.UNSUPPORTED_VERSION, token_class)

        issuer = claims.get("issuer")
        if issuer is not None and issuer != self._issuer:
            return _rejected(VerificationError.INVALID_ISSUER, token_class)

        customer_id = claims.get("customer_id")
        voucher_instance_id = claims.get("voucher_instance_id")
        return VerificationResult(
            valid=True,
            token_class=token_class,
            customer_id=str(customer_id) if customer_id is not None else None,
            voucher_instance_id=str(voucher_instance_id) if voucher_instance_id is not None else None,
            claims=claims,
        )

    @staticmethod
    def _classify(token_type: object) -> TokenClass | None:
        for token_class, expected_type in _EXPECTED_TYPES.items():
            if token_type == expected_type:
                return token_class
        return None


__all__ = [
    "TokenClass",
    "VERIFICATION_MESSAGES",
    "VerificationError",
    "VerificationResult",
    "VerificationService",
]
