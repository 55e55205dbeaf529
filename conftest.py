"""Shared fixtures. The environment is pinned before any application module is imported."""

import hashlib
import hmac
import os
import tempfile
import time
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

_TEST_DIR = Path(tempfile.mkdtemp(prefix="headshot-tests-"))

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'app.db'}"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_headshot"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_headshot"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["APP_ORIGIN"] = "http://localhost:5173"
os.environ.pop("JWT_AUDIENCE", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from headshot_common.core.config_service import config_service  # noqa: E402
from headshot_common.core.jwt_utils import create_access_token  # noqa: E402
from headshot_common.ids import UserId  # noqa: E402
from headshot_db.crud.reservation import CreditReservationDAO  # noqa: E402
from headshot_db.crud.user import UserDAO  # noqa: E402
from headshot_db.db import create_engine_for_url, create_session_factory  # noqa: E402
from headshot_db.db.init_db import init_db  # noqa: E402
from headshot_db.schemas.auth import AuthIdentity  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    test_engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    assert await init_db(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_dao() -> UserDAO:
    return UserDAO()


@pytest.fixture
def reservation_dao() -> CreditReservationDAO:
    return CreditReservationDAO()


@pytest.fixture
def sign_stripe_payload() -> Callable[[bytes], str]:
    """Builds a ``Stripe-Signature`` header (``t=<ts>,v1=<hmac-sha256>``) for the test webhook secret."""

    def sign(payload: bytes, secret: str = os.environ["STRIPE_WEBHOOK_SECRET"]) -> str:
        timestamp = int(time.time())
        signed_payload = f"{timestamp}.{payload.decode('utf-8')}".encode()
        signature = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return sign


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def build(user_id: str, email: str, display_name: str | None = None) -> dict[str, str]:
        identity = AuthIdentity(user_id=UserId(user_id), email=email, display_name=display_name)
        return {"Authorization": f"Bearer {create_access_token(identity, config_service.auth)}"}

    return build


@pytest_asyncio.fixture
async def api_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[httpx.AsyncClient]:
    from headshot_api.dependencies import get_db
    from headshot_api.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
