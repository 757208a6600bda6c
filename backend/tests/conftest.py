"""pytest configuration and fixtures.

Provides an SQLite in-memory database per test, the auth collaborators
(token issuer, TOTP verifier, in-memory reset tickets, a recording mailer)
and an HTTP client wired to the same database session.
"""

import os

# Settings are read at import time, so the test environment must be in
# place before any bhamail module is imported.
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from email.mime.multipart import MIMEMultipart  # noqa: E402
from typing import Any, cast  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.types import ASGIApp  # noqa: E402

from bhamail.api.deps import get_token_issuer, get_totp_verifier  # noqa: E402
from bhamail.core.jwt import TokenIssuer  # noqa: E402
from bhamail.core.security import hash_password  # noqa: E402
from bhamail.core.totp import TotpVerifier  # noqa: E402
from bhamail.db.session import get_db  # noqa: E402
from bhamail.main import app  # noqa: E402
from bhamail.models import Base, User  # noqa: E402
from bhamail.services.auth_service import AuthService  # noqa: E402
from bhamail.services.credential_store import CredentialStore  # noqa: E402
from bhamail.services.notifications import Mailer, get_mailer  # noqa: E402
from bhamail.services.reset_tickets import (  # noqa: E402
    ResetTicketStore,
    get_reset_ticket_store,
)

TEST_PASSWORD = "Abcd123!"

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as HTTP integration tests",
    )


# =============================================================================
# DATABASE FIXTURES (SQLite In-Memory)
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async SQLite in-memory engine with all tables.

    StaticPool keeps the single in-memory connection alive for the whole
    test so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_session_maker(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    async_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Provide a database session on a fresh in-memory database."""
    async with async_session_maker() as session:
        yield session


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================


class RecordingMailer(Mailer):
    """Mailer that keeps messages in memory instead of talking SMTP.

    Set ``fail`` to make every send raise ``ConnectionRefusedError``.
    """

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[MIMEMultipart] = []
        self.fail = False

    async def send(self, msg: MIMEMultipart) -> None:
        if self.fail:
            raise ConnectionRefusedError("SMTP relay unreachable")
        self.sent.append(msg)

    def messages_to(self, address: str) -> list[MIMEMultipart]:
        return [msg for msg in self.sent if msg["To"] == address]


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer("test-access-secret", "test-refresh-secret")


@pytest.fixture
def totp_verifier() -> TotpVerifier:
    return TotpVerifier(issuer="BhaMail", window=2)


@pytest.fixture
def reset_tickets() -> ResetTicketStore:
    return ResetTicketStore()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def store(db_session: AsyncSession) -> CredentialStore:
    return CredentialStore(db_session)


@pytest.fixture
def auth_service(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    totp_verifier: TotpVerifier,
    reset_tickets: ResetTicketStore,
    mailer: RecordingMailer,
) -> AuthService:
    return AuthService(db_session, token_issuer, totp_verifier, reset_tickets, mailer)


@pytest.fixture
def user_factory(store: CredentialStore) -> Callable[..., Awaitable[User]]:
    """Create users directly through the credential store.

    Example:
        user = await user_factory(email="a@bhamail.com", role="admin")
    """
    counter = {"n": 0}

    async def _create(
        email: str | None = None,
        password: str = TEST_PASSWORD,
        **fields: Any,
    ) -> User:
        counter["n"] += 1
        email = email or f"user{counter['n']}@bhamail.com"
        fields.setdefault("first_name", "Test")
        fields.setdefault("last_name", f"User{counter['n']}")
        first_name = fields.pop("first_name")
        last_name = fields.pop("last_name")
        return await store.create_user(
            email, hash_password(password), first_name, last_name, **fields
        )

    return _create


# =============================================================================
# HTTP CLIENT FIXTURES
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    token_issuer: TokenIssuer,
    totp_verifier: TotpVerifier,
    reset_tickets: ResetTicketStore,
    mailer: RecordingMailer,
) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for the FastAPI app.

    Database, token issuer, TOTP verifier, reset tickets and mailer are
    replaced with the test fixtures above.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_totp_verifier] = lambda: totp_verifier
    app.dependency_overrides[get_reset_ticket_store] = lambda: reset_tickets
    app.dependency_overrides[get_mailer] = lambda: mailer

    try:
        transport = ASGITransport(app=cast("ASGIApp", app))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(async_client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Log in over HTTP and return the response body plus auth headers."""

    async def _login(email: str, password: str = TEST_PASSWORD) -> dict[str, Any]:
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        body = response.json()
        body["headers"] = {"Authorization": f"Bearer {body['token']}"}
        return body

    return _login
