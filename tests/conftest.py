"""Global test fixtures and shared test infrastructure.

Provides:
- Environment variable defaults (must be set before any app import)
- An in-memory SQLite engine per test, with the schema created from the models
- FakeEmailService recording outgoing mail instead of calling the provider
- Local document storage rooted in the test's tmp_path
- Factories for users, admins, session headers and loan application payloads
- An HTTP client bound to the app with all of the above wired in
"""

from __future__ import annotations

import os
import tempfile

# Environment defaults: must be set before importing the app, which triggers
# pydantic Settings validation on import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-boot")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("OTP_SECRET", "test-otp-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("STORAGE_PROVIDER", "local")
os.environ.setdefault("LOCAL_UPLOAD_DIR", tempfile.mkdtemp(prefix="litefi-uploads-"))
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from typing import Any, Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.api.v1.routers import auth as auth_router
from app.core.limiter import limiter
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models import User
from app.schemas.loan import loan_application_create_adapter
from app.services.auth_flow import issue_session_token
from app.services.loan_applications import submit_application
from app.services.storage.adapter import LocalFileSystemAdapter

DEFAULT_PASSWORD = "Str0ng!Passw0rd"


# ---------------------------------------------------------------------------
# FakeEmailService: mimics app.services.email.EmailService
# ---------------------------------------------------------------------------


class FakeEmailService:
    """Records every message; ``deliver=False`` simulates a provider outage."""

    def __init__(self, *, deliver: bool = True, explode: bool = False) -> None:
        self.deliver = deliver
        self.explode = explode
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, kind: str, email: str, **payload: Any) -> bool:
        self.sent.append((kind, email, payload))
        if self.explode:
            raise RuntimeError("mail provider exploded")
        return self.deliver

    async def send_verification_email(self, email: str, code: str) -> bool:
        return self._record("verification", email, code=code)

    async def send_password_reset_email(self, email: str, code: str) -> bool:
        return self._record("password_reset", email, code=code)

    async def send_welcome_email(self, email: str, first_name: str) -> bool:
        return self._record("welcome", email, first_name=first_name)

    async def send_password_changed_email(self, email: str) -> bool:
        return self._record("password_changed", email)

    async def send_loan_application_notification(
        self, email: str, name: str, details: dict[str, Any]
    ) -> bool:
        return self._record("loan_application", email, name=name, **details)

    async def send_loan_approval_email(
        self, email: str, name: str, details: dict[str, Any]
    ) -> bool:
        return self._record("loan_approval", email, name=name, **details)

    async def send_loan_rejection_email(
        self, email: str, name: str, details: dict[str, Any]
    ) -> bool:
        return self._record("loan_rejection", email, name=name, **details)

    async def aclose(self) -> None:
        return None

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]

    def last(self, kind: str) -> dict[str, Any]:
        for sent_kind, _, payload in reversed(self.sent):
            if sent_kind == kind:
                return payload
        raise AssertionError(f"no {kind} email was sent")


# ---------------------------------------------------------------------------
# Payload factory
# ---------------------------------------------------------------------------


def make_loan_payload(loan_type: str = "SALARY_CASH", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "loanType": loan_type,
        "loanAmount": 500000,
        "tenure": 12,
        "phoneNumber": "08012345678",
        "bvn": "12345678901",
        "nin": "10987654321",
        "addressNumber": "12",
        "streetName": "Allen Avenue",
        "nearestBusStop": "Allen Junction",
        "state": "Lagos",
        "localGovernment": "Ikeja",
        "homeOwnership": "RENTED",
        "yearsInAddress": 3,
        "maritalStatus": "SINGLE",
        "educationLevel": "BSc",
        "nokFirstName": "Chidi",
        "nokLastName": "Okafor",
        "nokRelationship": "Brother",
        "nokPhone": "08087654321",
        "bankName": "First Bank",
        "accountName": "Ada Obi",
        "accountNumber": "0123456789",
    }
    if loan_type.startswith("SALARY"):
        payload.update(
            {
                "employerName": "Acme Ltd",
                "employerAddress": "1 Marina, Lagos",
                "jobTitle": "Analyst",
                "workEmail": "ada@acme.example.com",
                "employmentStartDate": "2020-01-15",
                "salaryPaymentDate": 25,
                "netSalary": 350000,
            }
        )
    else:
        payload.update(
            {
                "businessName": "Obi Stores",
                "businessDescription": "Retail of household goods",
                "industry": "Retail",
                "businessAddress": "5 Broad Street, Lagos",
            }
        )
    if loan_type.endswith("CAR"):
        payload.update(
            {
                "vehicleMake": "Toyota",
                "vehicleModel": "Corolla",
                "vehicleYear": 2018,
                "vehicleAmount": 4500000,
            }
        )
    payload.update(overrides)
    return payload


@pytest.fixture
def loan_payload() -> Callable[..., dict[str, Any]]:
    return make_loan_payload


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def mailer() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def storage(tmp_path) -> LocalFileSystemAdapter:
    return LocalFileSystemAdapter(base_path=str(tmp_path / "uploads"), base_url="http://testserver")


@pytest.fixture(autouse=True)
def _disable_rate_limits(monkeypatch):
    """Keep slowapi and the Redis-backed login guards out of the way."""

    async def _allow(*args, **kwargs) -> None:
        return None

    monkeypatch.setattr(limiter, "enabled", False)
    monkeypatch.setattr(auth_router, "enforce_login_limits", _allow)
    monkeypatch.setattr(auth_router, "record_login_attempt", _allow)
    yield


@pytest.fixture
async def client(session_factory, mailer, storage):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[deps.get_email_service] = lambda: mailer
    app.dependency_overrides[deps.get_document_storage] = lambda: storage
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    async def _make(
        email: str = "ada@example.com",
        *,
        password: str = DEFAULT_PASSWORD,
        role: str = "USER",
        verified: bool = True,
        first_name: str = "Ada",
        last_name: str = "Obi",
    ) -> User:
        user = User(
            email=email.lower(),
            hashed_password=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            email_verified=verified,
            token_version=0,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
async def user(make_user) -> User:
    return await make_user()


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(
        "admin@litefi.example.com", role="ADMIN", first_name="Grace", last_name="Admin"
    )


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token(user)}"}


@pytest.fixture
def submit(db_session, mailer):
    """Submit an application for a user straight through the service layer."""

    async def _submit(
        owner: User, loan_type: str = "SALARY_CASH", *, per_product: bool = False, **overrides
    ):
        payload = loan_application_create_adapter.validate_python(
            make_loan_payload(loan_type, **overrides)
        )
        return await submit_application(db_session, mailer, owner, payload, per_product=per_product)

    return _submit
