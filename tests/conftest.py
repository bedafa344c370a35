import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="promptbuilder-tests-")

os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}",
    "SUPABASE_JWT_SECRET": "test-jwt-secret",
    "API_KEY_ENCRYPTION_SECRET": "test-encryption-secret",
    "STRIPE_MODE": "test",
    "STRIPE_TEST_SECRET_KEY": "sk_test_123",
    "STRIPE_TEST_PUBLISHABLE_KEY": "pk_test_123",
    "STRIPE_TEST_WEBHOOK_SECRET": "whsec_test_secret",
    "OPENAI_API_KEY": "sk-managed-openai",
    "ANTHROPIC_API_KEY": "",
    "GOOGLE_API_KEY": "",
})

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from promptbuilder.core.database import Base, async_session, engine  # noqa: E402
from promptbuilder.core.security import create_access_token  # noqa: E402
from promptbuilder.main import app  # noqa: E402

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def anyio_backend():
    return "asyncio"


async def _create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _drop_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _add_all(*objects):
    async with async_session() as session:
        session.add_all(objects)
        await session.commit()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(_drop_tables)


@pytest.fixture
def seed(client):
    """Insert ORM objects through the app's own event loop."""
    def _seed(*objects):
        client.portal.call(_add_all, *objects)
    return _seed


@pytest.fixture
async def db(anyio_backend):
    await _create_tables()
    async with async_session() as session:
        yield session
    await _drop_tables()


def auth_headers(user_id: str = USER_ID, email: str = "user@example.com") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, email)}"}


@pytest.fixture
def headers():
    return auth_headers()
