"""Pytest configuration and fixtures."""

import hashlib
import hmac
import os
import time
from datetime import UTC, datetime, timedelta

# Use test database - PostgreSQL when TEST_DATABASE_URL is set, SQLite locally
SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("DATABASE_URL", SQLALCHEMY_DATABASE_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from armory.api.dependencies import (  # noqa: E402
    get_billing_service,
    get_email_service,
    get_session_cache,
)
from armory.config import Settings  # noqa: E402
from armory.database import Base, get_db  # noqa: E402
from armory.errors import EmailDeliveryError  # noqa: E402
from armory.main import app  # noqa: E402
from armory.services.account_service import AccountService  # noqa: E402
from armory.services.password_recovery import PasswordRecoveryService  # noqa: E402
from armory.services.session_cache import SessionCache  # noqa: E402
from armory.services.subscription_service import SubscriptionService  # noqa: E402

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "Sup3r-secret!"


class RecordingEmailService:
    """Email service double that keeps every message in memory."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def send_verification(self, email: str, token: str) -> None:
        self.sent.append(("verification", email, token))

    def send_email_change_verification(self, email: str, token: str) -> None:
        self.sent.append(("email_change", email, token))

    def send_password_reset(self, email: str, token: str) -> None:
        self.sent.append(("password_reset", email, token))

    def last(self, kind: str) -> tuple[str, str, str]:
        return [message for message in self.sent if message[0] == kind][-1]


class FailingEmailService(RecordingEmailService):
    """Email service double whose deliveries always fail."""

    def send_verification(self, email: str, token: str) -> None:
        raise EmailDeliveryError("smtp down")

    def send_email_change_verification(self, email: str, token: str) -> None:
        raise EmailDeliveryError("smtp down")

    def send_password_reset(self, email: str, token: str) -> None:
        raise EmailDeliveryError("smtp down")


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield
    # Don't drop database - just leave it for next run (each test cleans up after itself)


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    return Settings(database_url=SQLALCHEMY_DATABASE_URL)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notifier():
    return RecordingEmailService()


@pytest.fixture
def sessions(clock):
    return SessionCache(capacity=100, ttl=timedelta(hours=24), clock=clock)


@pytest.fixture
def account_service(db, notifier, sessions, settings, clock):
    return AccountService(db, notifier, sessions, settings=settings, clock=clock)


@pytest.fixture
def recovery_service(db, notifier, settings, clock):
    return PasswordRecoveryService(db, notifier, settings=settings, clock=clock)


@pytest.fixture
def subscription_service(db, clock):
    return SubscriptionService(db, billing=None, clock=clock)


@pytest.fixture
def api_notifier():
    return RecordingEmailService()


@pytest.fixture(scope="function")
def client(db, api_notifier):
    """Create a test client with database, email and session overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    session_cache = SessionCache()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: api_notifier
    app.dependency_overrides[get_session_cache] = lambda: session_cache
    app.dependency_overrides[get_billing_service] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def registered(client, api_notifier):
    """Register an account through the API and return its email."""
    email = "owner@example.com"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": TEST_PASSWORD, "password_confirm": TEST_PASSWORD},
    )
    assert response.status_code == 201
    return email


@pytest.fixture
def logged_in(client, registered):
    """Log the registered account in; the client keeps the session cookie."""
    response = client.post(
        "/api/v1/auth/login", json={"email": registered, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    return registered
