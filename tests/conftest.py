import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sarnies_api import models  # noqa: E402,F401
from sarnies_api.api.dependencies.qr import get_qr_toolkit  # noqa: E402
from sarnies_api.app import create_app  # noqa: E402
from sarnies_api.core.settings import Settings  # noqa: E402
from sarnies_api.db.base import Base  # noqa: E402
from sarnies_api.db.session import get_session  # noqa: E402
from sarnies_api.services.qr import TokenCodec, TokenCodecConfig  # noqa: E402
from sarnies_api.services.qr.toolkit import build_qr_toolkit  # noqa: E402


TEST_SECRET = "test-secret-key-with-at-least-32-bytes!"
FROZEN_AT = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


class FrozenClock:
    """Manually advanced UTC clock for token expiry tests."""

    def __init__(self, start: datetime = FROZEN_AT) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def token_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(TokenCodecConfig(secret=TEST_SECRET, clock=clock))


@pytest.fixture
def toolkit(codec):
    return build_qr_toolkit(Settings(jwt_secret=TEST_SECRET), codec=codec)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory, toolkit):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_qr_toolkit] = lambda: toolkit

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
