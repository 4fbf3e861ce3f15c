from __future__ import annotations

from dataclasses import dataclass

from sarnies_api.core.settings import Settings

from .codec import TokenCodec, TokenCodecConfig
from .identity import StaticIdentityIssuer
from .redemption import RedemptionTokenIssuer
from .verification import VerificationService


@dataclass(frozen=True, slots=True)
class QRToolkit:
    """Issuers and verifier sharing one codec."""

    codec: TokenCodec
    identity_issuer: StaticIdentityIssuer
    redemption_issuer: RedemptionTokenIssuer
    verifier: VerificationService


def build_qr_toolkit(settings: Settings, codec: TokenCodec | None = None) -> QRToolkit:
    codec = codec or TokenCodec(TokenCodecConfig.from_settings(settings))
    return QRToolkit(
        codec=codec,
        identity_issuer=StaticIdentityIssuer(
            codec,
            issuer=settings.qr_issuer,
            version=settings.qr_identity_version,
            image_size=settings.qr_image_size,
            image_margin=settings.qr_image_margin,
        ),
        redemption_issuer=RedemptionTokenIssuer(
            codec,
            issuer=settings.qr_issuer,
            default_ttl_seconds=settings.qr_token_expiry_seconds,
        ),
        verifier=VerificationService(
            codec,
            issuer=settings.qr_issuer,
            max_version=settings.qr_identity_version,
        ),
    )


__all__ = ["QRToolkit", "build_qr_toolkit"]
