"""QR token issuance and verification."""

from .codec import (
    ConfigurationError,
    DecodeResult,
    DecodeStatus,
    InvalidOrExpiredTokenError,
    TokenCodec,
    TokenCodecConfig,
    parse_duration,
)
from .identity import IdentityCredential, StaticIdentityIssuer, render_qr_data_uri
from .redemption import RedemptionCredential, RedemptionTokenIssuer
from .verification import TokenClass, VerificationError, VerificationResult, VerificationService

__all__ = [
    "ConfigurationError",
    "DecodeResult",
    "DecodeStatus",
    "IdentityCredential",
    "InvalidOrExpiredTokenError",
    "RedemptionCredential",
    "RedemptionTokenIssuer",
    "StaticIdentityIssuer",
    "TokenClass",
    "TokenCodec",
    "TokenCodecConfig",
    "VerificationError",
    "VerificationResult",
    "VerificationService",
    "parse_duration",
    "render_qr_data_uri",
]
