from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./sarnies.db"

    # QR token signing
    jwt_secret: str | None = None
    qr_token_algorithm: str = "HS256"
    qr_token_expiry_seconds: int = Field(default=120, gt=0)
    qr_issuer: str = "sarnies_loyalty"
    qr_identity_version: int = 1

    # Static QR rendering
    qr_image_size: int = 400
    qr_image_margin: int = 2

    # Points lifecycle
    points_expiry_months: int = 12
    points_warning_months: int = 11
    points_warning_guard_days: int = 30
    points_per_100: int = 1

    # Staff tooling security
    staff_api_key: str = ""

    # Loyalty job scheduler
    loyalty_job_scheduler_enabled: bool = False
    loyalty_job_schedule_path: str = "config/schedules.toml"

    @field_validator("jwt_secret", mode="before")
    @classmethod
    def _blank_secret_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("points_warning_months")
    @classmethod
    def _warning_precedes_expiry(cls, value: int, info) -> int:
        expiry = info.data.get("points_expiry_months")
        if expiry is not None and value >= expiry:
            raise ValueError("points_warning_months must be lower than points_expiry_months")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
