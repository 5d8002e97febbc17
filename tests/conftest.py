import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from typing import AsyncGenerator, Callable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tutorledger.auth.security import create_access_token
from tutorledger.core.models import Branch, Student
from tutorledger.db.session import Base, get_db
from tutorledger.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite DB per test with all tables created."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT rollbacks work under aiosqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def branch(db_session: AsyncSession) -> Branch:
    b = Branch(name="Downtown", code="DWT")
    db_session.add(b)
    await db_session.commit()
    await db_session.refresh(b)
    return b


@pytest.fixture()
async def other_branch(db_session: AsyncSession) -> Branch:
    b = Branch(name="Riverside", code="RVS")
    db_session.add(b)
    await db_session.commit()
    await db_session.refresh(b)
    return b


@pytest.fixture()
def make_student(db_session: AsyncSession, branch: Branch) -> Callable:
    """Factory for students; defaults to the Downtown branch and a Mathematics enrolment."""
    counter = {"n": 0}

    async def _make(branch_id: Optional[uuid.UUID] = None, **fields) -> Student:
        counter["n"] += 1
        fields.setdefault("name", f"Student {counter['n']}")
        fields.setdefault("student_code", f"STU-{counter['n']:04d}")
        fields.setdefault("subjects", ["Mathematics"])
        student = Student(branch_id=branch_id or branch.id, **fields)
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _make


def auth_headers(role: str = "admin", branch_id: Optional[uuid.UUID] = None, user_id: Optional[uuid.UUID] = None) -> dict:
    subject = {"user_id": str(user_id or uuid.uuid4()), "role": role}
    if branch_id is not None:
        subject["branch_id"] = str(branch_id)
    return {"Authorization": f"Bearer {create_access_token(subject=subject)}"}


@pytest.fixture()
def headers() -> Callable[..., dict]:
    return auth_headers
