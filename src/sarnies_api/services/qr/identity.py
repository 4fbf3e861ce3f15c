"""Permanent per-customer identity QR codes."""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from .codec import TokenCodec

IDENTITY_TOKEN_TYPE = "loyalty_id"
DEFAULT_ISSUER = "sarnies_loyalty"
IDENTITY_TOKEN_VERSION = 1


@dataclass(frozen=True, slots=True)
class IdentityCredential:
    token: str
    image_data_uri: str
    created_at: datetime


def format_customer_id(customer_id: int) -> str:
    if isinstance(customer_id, bool) or not isinstance(customer_id, int) or customer_id < 0:
        raise ValueError(f"customer_id must be a non-negative integer, got {customer_id!r}")
    return str(customer_id).zfill(6)


def render_qr_data_uri(data: str, *, size: int = 400, margin: int = 2) -> str:
    """Render ``data`` as a square black-on-white PNG data URI."""

    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=margin)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").get_image()
    image = image.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class StaticIdentityIssuer:
    """Issue non-expiring identity tokens plus their QR rendering.

    Every call draws a fresh nonce, so re-issuing yields a new token while
    previously issued ones keep verifying.
    """

    def __init__(
        self,
        codec: TokenCodec,
        *,
        issuer: str = DEFAULT_ISSUER,
        version: int = IDENTITY_TOKEN_VERSION,
        image_size: int = 400,
        image_margin: int = 2,
    ) -> None:
        self._codec = codec
        self._issuer = issuer
        self._version = version
        self._image_size = image_size
        self._image_margin = image_margin

    def build_payload(self, customer_id: int, *, issued_at: datetime) -> dict[str, object]:
        return {
            "version": self._version,
            "type": IDENTITY_TOKEN_TYPE,
            "customer_id": format_customer_id(customer_id),
            "issuer": self._issuer,
            "nonce": secrets.token_hex(8),
            "iat": int(issued_at.timestamp()),
        }

    def issue(self, customer_id: int) -> IdentityCredential:
        created_at = self._codec.now()
        token = self._codec.sign(self.build_payload(customer_id, issued_at=created_at))
        image = render_qr_data_uri(token, size=self._image_size, margin=self._image_margin)
        return IdentityCredential(token=token, image_data_uri=image, created_at=created_at)


__all__ = [
    "DEFAULT_ISSUER",
    "IDENTITY_TOKEN_TYPE",
    "IdentityCredential",
    "StaticIdentityIssuer",
    "format_customer_id",
    "render_qr_data_uri",
]
