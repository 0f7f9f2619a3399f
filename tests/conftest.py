import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from storefront.auth.passwords import PasswordHasher
from storefront.auth.sessions import SessionIssuer
from storefront.auth.tokens import JWTTokenCodec
from storefront.cli import create_admin
from storefront.config import Settings
from storefront.db.kv import InMemoryStore
from storefront.db.repository import Repository
from storefront.main import create_app
from storefront.services import get_services

TEST_SECRET = "test-secret-key"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float | None = None) -> None:
        self.now = start if start is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="test",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        database_path=tmp_path / "storefront.db",
        kv_backend="memory",
    )


@pytest.fixture
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
async def repo(tmp_path: Path):
    repository = Repository(tmp_path / "repo.db")
    await repository.connect()
    yield repository
    await repository.close()


@pytest.fixture
def codec() -> JWTTokenCodec:
    return JWTTokenCodec(TEST_SECRET, lifetime_seconds=3600)


@pytest.fixture
def sessions(repo: Repository, codec: JWTTokenCodec) -> SessionIssuer:
    return SessionIssuer(repo, codec, PasswordHasher(rounds=4))


@pytest.fixture
def client(settings: Settings, store: InMemoryStore):
    app = create_app(settings, store=store)
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, email: str, password: str = "secret123", admin: bool = False) -> dict:
    path = "/api/auth/register-admin" if admin else "/api/auth/register"
    res = client.post(path, json={"email": email, "password": password, "name": email.split("@")[0]})
    assert res.status_code == 201, res.text
    return res.json()


def make_approved_admin(client: TestClient, email: str = "admin@shop.com", password: str = "adminpass") -> str:
    """Create an approved admin inside the running app and return its token.

    Goes through the operator command rather than HTTP, so it does not
    count against the credential rate limit.
    """

    async def create() -> str:
        services = get_services()
        user_id = await create_admin(services.repository, services.hasher, email, password, "Admin")
        user = await services.repository.get_user(user_id)
        return services.codec.issue(user)

    return client.portal.call(create)
