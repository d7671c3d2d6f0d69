"""
Test configuration and fixtures for the payments portal backend.
"""
import os

# Set test environment BEFORE any imports
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URI"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-for-testing-only-0123456789")
os.environ.pop("REDIS_URI", None)

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from payportal.database import get_db
from payportal.main import app
from payportal.models import Base, Customer, Employee, Role, Transaction, TransactionStatus
from payportal.services.actor import Actor, SUBMIT_TO_SWIFT, VERIFY_TRANSACTIONS
from payportal.services.password_service import hash_password
from payportal.services.token_service import create_access_token
from payportal.services.transaction_lifecycle import generate_reference_number
from payportal.utils import utcnow

PASSWORD = "Str0ng!Passw0rd"

_hash_cache: Dict[str, str] = {}


def fast_hash(password: str) -> str:
    """bcrypt with minimum rounds; verification reads the cost from the hash."""
    if password not in _hash_cache:
        _hash_cache[password] = hash_password(password, rounds=4)
    return _hash_cache[password]


@pytest.fixture
async def engine(tmp_path):
    """A file-backed SQLite database per test.

    A single pooled connection keeps SQLite writers strictly serialized;
    concurrent sessions queue for the connection instead of hitting lock errors.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """A session for service-level tests. Do not hold it open across HTTP calls."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_redis():
    """Mock Redis client backed by a dict so revocations are visible to later reads."""
    store: Dict[str, Any] = {}
    mock_client = AsyncMock()

    async def setex(key, ttl, value):
        store[key] = value
        return True

    async def get(key):
        return store.get(key)

    mock_client.setex.side_effect = setex
    mock_client.get.side_effect = get
    mock_client.ping.return_value = True
    mock_client.store = store
    return mock_client


@pytest.fixture(autouse=True)
def mock_external_services(monkeypatch, mock_redis):
    """Mock external services for all tests."""
    monkeypatch.setattr("payportal.database.redis_client", mock_redis)


@pytest.fixture
async def seed(session_factory):
    """Roles, employees and customers used across tests."""
    async with session_factory() as session:
        supervisor_role = Role(role_name="supervisor", permissions=[VERIFY_TRANSACTIONS, SUBMIT_TO_SWIFT])
        verifier_role = Role(role_name="verifier", permissions=[VERIFY_TRANSACTIONS])
        clerk_role = Role(role_name="clerk", permissions=[])
        session.add_all([supervisor_role, verifier_role, clerk_role])
        await session.flush()

        supervisor = Employee(
            employee_id="EMP001", employee_name="Sam Supervisor", username="supervisor",
            password_hash=fast_hash(PASSWORD), role=supervisor_role, department="Payments",
        )
        verifier = Employee(
            employee_id="EMP002", employee_name="Vera Verifier", username="verifier",
            password_hash=fast_hash(PASSWORD), role=verifier_role, department="Payments",
        )
        verifier_two = Employee(
            employee_id="EMP003", employee_name="Vic Verifier", username="verifier2",
            password_hash=fast_hash(PASSWORD), role=verifier_role, department="Payments",
        )
        clerk = Employee(
            employee_id="EMP004", employee_name="Cal Clerk", username="clerk",
            password_hash=fast_hash(PASSWORD), role=clerk_role, department="Front Office",
        )
        inactive = Employee(
            employee_id="EMP005", employee_name="Ina Active", username="inactive",
            password_hash=fast_hash(PASSWORD), role=verifier_role, is_active=False,
        )
        alice = Customer(
            full_name="Alice Adams", id_number="9001015009087", account_number="1234567890",
            username="alice", password_hash=fast_hash(PASSWORD),
        )
        bob = Customer(
            full_name="Bob Brown", id_number="8505055009081", account_number="9876543210",
            username="bob", password_hash=fast_hash(PASSWORD),
        )
        session.add_all([supervisor, verifier, verifier_two, clerk, inactive, alice, bob])
        await session.commit()

    return SimpleNamespace(
        supervisor=supervisor, verifier=verifier, verifier_two=verifier_two, clerk=clerk,
        inactive=inactive, alice=alice, bob=bob, password=PASSWORD,
    )


@pytest.fixture
def actors(seed):
    return SimpleNamespace(
        supervisor=Actor.from_account(seed.supervisor),
        verifier=Actor.from_account(seed.verifier),
        verifier_two=Actor.from_account(seed.verifier_two),
        clerk=Actor.from_account(seed.clerk),
        alice=Actor.from_account(seed.alice),
        bob=Actor.from_account(seed.bob),
    )


@pytest.fixture
def payment_details() -> Dict[str, Any]:
    return {
        "amount": "1500.50",
        "currency": "usd",
        "beneficiary_name": "John O'Neill",
        "beneficiary_account": "GB29 NWBK 6016 1331 9268 19",
        "bank_name": "NatWest",
        "swift_code": "nwbkgb2l",
    }


@pytest.fixture
def make_transaction(session_factory, seed):
    """Insert a transaction directly in a given status."""

    async def _make(status: TransactionStatus = TransactionStatus.pending, customer=None, **overrides) -> Transaction:
        now = utcnow()
        fields: Dict[str, Any] = {
            "reference_number": generate_reference_number(now),
            "customer_id": (customer or seed.alice).id,
            "amount": overrides.pop("amount", Decimal("250.00")),
            "currency": "EUR",
            "beneficiary_name": "Greta Gruber",
            "beneficiary_account": "DE89370400440532013000",
            "bank_name": "Commerzbank",
            "swift_code": "COBADEFFXXX",
            "status": status.value,
            "created_at": now,
        }
        if status in (TransactionStatus.verified, TransactionStatus.submitted, TransactionStatus.rejected):
            fields["verified_by"] = seed.verifier.id
            fields["verified_at"] = now
        if status == TransactionStatus.rejected:
            fields["rejection_reason"] = "Beneficiary mismatch"
        if status == TransactionStatus.submitted:
            fields["submitted_at"] = now
        fields.update(overrides)
        async with session_factory() as session:
            txn = Transaction(**fields)
            session.add(txn)
            await session.commit()
            await session.refresh(txn)
        return txn

    return _make


@pytest.fixture
def fetch_transaction(db):
    """Re-read a transaction through ``db`` and release its connection afterwards."""

    async def _fetch(transaction_id: int):
        txn = await db.get(Transaction, transaction_id, populate_existing=True)
        await db.commit()
        return txn

    return _fetch


@pytest.fixture
async def client(session_factory):
    """HTTP client for the app bound to the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


def auth_headers(account, expires_in_seconds=None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account, expires_in_seconds)}"}


def minutes_ago(minutes: int):
    return utcnow() - timedelta(minutes=minutes)
