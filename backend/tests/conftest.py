import pytest
from httpx import ASGITransport, AsyncClient

from main import create_app
from shared.config import Settings
from shared.infrastructure.database import init_schema
from users.application import services
from users.infrastructure.user_repository import DbUserRepository


def user_payload(suffix: str = "", **overrides) -> dict:
    payload = {
        "email": f"alice{suffix}@example.com",
        "username": f"alice{suffix}",
        "password": "secret123",
        "first_name": "Alice",
        "last_name": "Smith",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(services, "PASSWORD_HASH_ROUNDS", 4)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'users_test.db'}",
        AUTO_CREATE_SCHEMA=False,
        REQUEST_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await init_schema(app.state.engine)
    yield app
    app.dependency_overrides.clear()
    await app.state.engine.dispose()


@pytest.fixture
async def db(app):
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
def repo(db):
    return DbUserRepository(db)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
