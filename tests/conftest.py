"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at throwaway resources first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-paydash.db"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

from decimal import Decimal  # noqa: E402
from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import models  # noqa: E402,F401
from api.access import AccessContext  # noqa: E402
from api.deps import get_db  # noqa: E402
from auth.jwt import create_access_token  # noqa: E402
from auth.passwords import hash_password  # noqa: E402
from db import Base  # noqa: E402
from main import app  # noqa: E402
from models.payment import ApprovalStatus, Payment, PaymentStatus  # noqa: E402
from models.profile import Profile, Role  # noqa: E402
from models.project import Project, ProjectStatus  # noqa: E402
from services.realtime import EventBus  # noqa: E402
from services.storage import BlobStore, get_blob_store  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


def _enable_sqlite_features(engine) -> None:
    """Foreign keys plus real SAVEPOINT support for pysqlite/aiosqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so nested transactions work
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    _enable_sqlite_features(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_store(tmp_path):
    """Local-disk blob store rooted in the test's temp directory."""
    return BlobStore(
        root=tmp_path / "storage",
        public_base_url="http://test/files",
        timeout_seconds=5.0,
    )


@pytest.fixture
def bus():
    """Isolated event bus."""
    return EventBus()


@pytest.fixture
def override_deps(db_session, blob_store):
    """Override database and blob store dependencies for testing."""

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(override_deps):
    """HTTP client bound to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def password():
    """Plain-text password of every profile made by create_profile."""
    return TEST_PASSWORD


@pytest.fixture
def auth_headers():
    """Helper building an Authorization header with a fresh token for a profile."""

    def _auth_headers(profile: Profile) -> dict:
        token = create_access_token(profile.id, profile.role)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def create_profile(db_session):
    """Helper to create a profile."""

    async def _create_profile(role=Role.CLIENT, email=None, full_name=None, password=TEST_PASSWORD):
        profile = Profile(
            id=uuid4(),
            email=email or f"{role.value}-{uuid4().hex[:8]}@example.com",
            password_hash=hash_password(password),
            full_name=full_name or f"Test {role.value.title()}",
            role=role.value,
            is_active=True,
        )
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return profile

    return _create_profile


@pytest_asyncio.fixture
async def admin(create_profile):
    return await create_profile(Role.ADMIN, email="admin@agency.test", full_name="Agency Admin")


@pytest_asyncio.fixture
async def client_a(create_profile):
    return await create_profile(Role.CLIENT, email="alice@client-a.test", full_name="Alice Client")


@pytest_asyncio.fixture
async def client_b(create_profile):
    return await create_profile(Role.CLIENT, email="bob@client-b.test", full_name="Bob Client")


@pytest.fixture
def admin_ctx(admin):
    return AccessContext.from_profile(admin)


@pytest.fixture
def ctx_a(client_a):
    return AccessContext.from_profile(client_a)


@pytest.fixture
def ctx_b(client_b):
    return AccessContext.from_profile(client_b)


@pytest.fixture
def create_project(db_session, admin):
    """Helper to insert a project directly."""

    async def _create_project(client, total_amount="1000.00", name=None, status=ProjectStatus.ACTIVE):
        project = Project(
            id=uuid4(),
            client_id=client.id,
            created_by=admin.id,
            name=name or f"Project {uuid4().hex[:6]}",
            status=status.value,
            total_amount=Decimal(total_amount),
        )
        db_session.add(project)
        await db_session.commit()
        await db_session.refresh(project)
        return project

    return _create_project


@pytest.fixture
def create_payment(db_session, admin):
    """Helper to insert a payment directly with explicit statuses."""

    async def _create_payment(
        project,
        amount,
        status=PaymentStatus.COMPLETED,
        approval_status=ApprovalStatus.APPROVED,
        payment_date=None,
    ):
        payment = Payment(
            id=uuid4(),
            project_id=project.id,
            amount=Decimal(amount),
            status=status.value,
            approval_status=approval_status.value,
            created_by=admin.id,
        )
        if payment_date is not None:
            payment.payment_date = payment_date
        db_session.add(payment)
        await db_session.commit()
        await db_session.refresh(payment)
        return payment

    return _create_payment
