"""Pytest configuration and fixtures."""

import os
import tempfile

# Point the app at a throwaway database and upload directory before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="uploads-"))

from uuid import uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import models  # noqa: E402,F401
from api.actor import ActorContext  # noqa: E402
from auth.jwt import create_access_token  # noqa: E402
from auth.passwords import hash_password  # noqa: E402
from db import Base  # noqa: E402
from main import app  # noqa: E402
from models.expense_category import ExpenseCategory  # noqa: E402
from models.project import ProjectCreate  # noqa: E402
from models.user import User, UserRole  # noqa: E402
from services import projects_service  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "secret123"


def _enable_savepoints(engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on sqlite."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session):
    """HTTP client bound to the app, sharing the test session."""
    from api.deps import get_db

    async def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


def make_auth_headers(user: User) -> dict:
    """Bearer header for a user."""
    token = create_access_token(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


def actor_for(user: User) -> ActorContext:
    return ActorContext.from_user(user)


async def create_user(
    db_session,
    *,
    email: str,
    role: UserRole,
    first_name: str,
    active: bool = True,
) -> User:
    user = User(
        id=uuid4(),
        first_name=first_name,
        last_name="Test",
        email=email,
        role=role.value,
        active=active,
        password_hash=hash_password(TEST_PASSWORD),
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await create_user(db_session, email="admin@example.com", role=UserRole.ADMIN, first_name="Admin")


@pytest_asyncio.fixture
async def technician(db_session):
    return await create_user(db_session, email="t1@example.com", role=UserRole.TECHNICIAN, first_name="Tomas")


@pytest_asyncio.fixture
async def other_technician(db_session):
    return await create_user(db_session, email="t2@example.com", role=UserRole.TECHNICIAN, first_name="Teresa")


@pytest_asyncio.fixture
async def client_user(db_session):
    return await create_user(db_session, email="c1@example.com", role=UserRole.CLIENT, first_name="Carla")


@pytest_asyncio.fixture
async def other_client(db_session):
    return await create_user(db_session, email="c2@example.com", role=UserRole.CLIENT, first_name="Carlos")


@pytest_asyncio.fixture
async def project(db_session, admin_user, technician, client_user):
    """Project with technician T1 and client C1."""
    return await projects_service.create_project(
        db_session,
        actor=actor_for(admin_user),
        payload=ProjectCreate(
            name="Planta Norte",
            location="Santiago",
            technician_id=technician.id,
            client_ids=[client_user.id],
        ),
    )


@pytest_asyncio.fixture
async def expense_categories(db_session):
    for name in ("Materiales", "Alimentación", "Transporte"):
        db_session.add(ExpenseCategory(name=name))
    await db_session.commit()
