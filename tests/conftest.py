import os
from typing import AsyncGenerator, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.security import create_access_token
from app.core.models import FeeStructure, School, Student
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine():
    """One in-memory database per test; StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
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
async def school(db_session: AsyncSession) -> School:
    school = School(name="Hillview Academy", is_active=True)
    db_session.add(school)
    await db_session.commit()
    return school


@pytest.fixture()
async def other_school(db_session: AsyncSession) -> School:
    school = School(name="Lakeside School", is_active=True)
    db_session.add(school)
    await db_session.commit()
    return school


@pytest.fixture()
def make_student(db_session: AsyncSession, school: School):
    async def _make(
        name: str = "Amina Otieno",
        class_level: str = "Form 1",
        boarding_status: str = "day",
        school_id: Optional[int] = None,
        is_active: bool = True,
    ) -> Student:
        student = Student(
            school_id=school_id or school.id,
            name=name,
            class_level=class_level,
            stream="East",
            boarding_status=boarding_status,
            parent_contact="+254700000000",
            is_active=is_active,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
def make_structure(db_session: AsyncSession, school: School):
    async def _make(
        fee_type: str = "Tuition",
        amount: int = 1000,
        class_level: str = "Form 1",
        term: Optional[int] = 1,
        year: int = 2026,
        boarding_status: str = "all",
        school_id: Optional[int] = None,
    ) -> FeeStructure:
        fs = FeeStructure(
            school_id=school_id or school.id,
            class_level=class_level,
            fee_type=fee_type,
            amount=amount,
            term=term,
            term_key=term or 0,
            year=year,
            boarding_status=boarding_status,
            is_active=True,
        )
        db_session.add(fs)
        await db_session.commit()
        return fs

    return _make


def bearer(school_id: int, user_id: int = 1, role: str = "ADMIN", permissions: Optional[dict] = None) -> dict:
    token = create_access_token(
        subject={
            "user_id": user_id,
            "school_id": school_id,
            "role": role,
            "permissions": permissions or {},
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers(school: School) -> dict:
    return bearer(school.id)


@pytest.fixture()
def make_headers():
    return bearer
