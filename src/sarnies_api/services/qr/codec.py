"""Signed-claims token codec shared by identity and redemption QR codes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Mapping

import jwt
from loguru import logger

from sarnies_api.core.clock import utcnow
from sarnies_api.core.settings import Settings

DEV_FALLBACK_SECRET = "dev-only-insecure-secret-do-not-use-in-production"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}

Duration = int | timedelta | str


class ConfigurationError(RuntimeError):
    """Raised when the process configuration cannot support token signing."""


class DecodeStatus(str, Enum):
    OK = "ok"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of :meth:`TokenCodec.verify`.

    ``claims`` is populated for ``OK`` and, for diagnostics only, ``EXPIRED``.
    """

    status: DecodeStatus
    claims: dict[str, Any] | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.OK

    @property
    def expired(self) -> bool:
        return self.status is DecodeStatus.EXPIRED


class InvalidOrExpiredTokenError(RuntimeError):
    """Umbrella codec failure; inspect ``result.status`` for the cause."""

    def __init__(self, result: DecodeResult) -> None:
        super().__init__(result.detail or result.status.value)
        self.result = result

    @property
    def expired(self) -> bool:
        return self.result.expired


@dataclass(frozen=True, slots=True)
class TokenCodecConfig:
    secret: str
    algorithm: str = "HS256"
    clock: Callable[[], datetime] = field(default=utcnow)

    @classmethod
    def from_settings(cls, settings: Settings, *, clock: Callable[[], datetime] = utcnow) -> "TokenCodecConfig":
        secret = settings.jwt_secret
        if not secret:
            if settings.environment == "production":
                raise ConfigurationError("JWT_SECRET must be set in production environment")
            logger.warning(
                "JWT_SECRET not set; using insecure development secret",
                environment=settings.environment,
            )
            secret = DEV_FALLBACK_SECRET
        return cls(secret=secret, algorithm=settings.qr_token_algorithm, clock=clock)


def parse_duration(value: Duration) -> int:
    """Convert ``120``, ``timedelta(minutes=2)``, ``"120s"``, ``"7d"`` to seconds."""

    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds())
    elif isinstance(value, int):
        seconds = value
    elif isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        seconds = int(amount) * _DURATION_UNITS[unit]
    else:
        raise ValueError(f"Invalid duration: {value!r}")
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


class TokenCodec:
    """HMAC-signed JWT encode/decode bound to one secret and clock."""

    def __init__(self, config: TokenCodecConfig) -> None:
        self._config = config

    def now(self) -> datetime:
        return self._config.clock()

    def sign(self, payload: Mapping[str, Any], *, expires_in: Duration | None = None) -> str:
        claims = dict(payload)
        if expires_in is not None:
            claims["exp"] = int(self.now().timestamp()) + parse_duration(expires_in)
        return jwt.encode(claims, self._config.secret, algorithm=self._config.algorithm)

    def verify(self, token: object) -> DecodeResult:
        if not isinstance(token, str) or not token.strip():
            return DecodeResult(DecodeStatus.MALFORMED, detail="Token must be a non-empty string")

        try:
            claims = jwt.decode(
                token.strip(),
                self._config.secret,
                algorithms=[self._config.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_aud": False,
                    "verify_iss": False,
                    "verify_sub": False,
                    "verify_jti": False,
                },
            )
        except jwt.InvalidSignatureError as exc:
            return DecodeResult(DecodeStatus.SIGNATURE_MISMATCH, detail=str(exc))
        except jwt.InvalidTokenError as exc:
            return DecodeResult(DecodeStatus.MALFORMED, detail=str(exc))

        if not isinstance(claims, dict):
            return DecodeResult(DecodeStatus.MALFORMED, detail="Token payload is not an object")

        exp = claims.get("exp")
        if exp is not None:
            if isinstance(exp, bool) or not isinstance(exp, (int, float)):
                return DecodeResult(DecodeStatus.MALFORMED, detail="Expiration claim must be numeric")
            if self.now().timestamp() >= exp:
                return DecodeResult(DecodeStatus.EXPIRED, claims=claims, detail="Signature has expired")

        return DecodeResult(DecodeStatus.OK, claims=claims)

    def decode(self, token: object) -> dict[str, Any]:
        result = self.verify(token)
        if not result.ok or result.claims is None:
            raise InvalidOrExpiredTokenError(result)
        return result.claims


__all__ = [
    "ConfigurationError",
    "DEV_FALLBACK_SECRET",
    "DecodeResult",
    "DecodeStatus",
    "InvalidOrExpiredTokenError",
    "TokenCodec",
    "TokenCodecConfig",
    "parse_duration",
]
