import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from datetime import date, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gradebook.auth.security import create_access_token
from gradebook.db.session import Base, get_db
from gradebook.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
YEAR = "2024-2025"
NEXT_YEAR = "2025-2026"


@pytest.fixture()
async def engine():
    """One in-memory database per test, shared by every connection through StaticPool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def school_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(school_id, user_id) -> dict:
    token = create_access_token(
        subject={
            "user_id": str(user_id),
            "school_id": str(school_id),
            "name": "Mme Ngono",
            "role": "ADMIN",
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def client(session_factory, auth_headers) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; every request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as ac:
        yield ac
    app.dependency_overrides.clear()


async def _post(client: AsyncClient, url: str, payload: dict) -> dict:
    response = await client.post(url, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
async def school(client) -> SimpleNamespace:
    """
    Current calendar year with one term holding an active and an inactive sequence,
    two subjects, and a Form 1 class weighting Mathematics 4 and French 2.
    """
    today = date.today()
    start = (today - timedelta(days=60)).isoformat()
    end = (today + timedelta(days=60)).isoformat()

    detail = await _post(
        client,
        "/api/v1/academic-year-details",
        {"name": YEAR, "start_date": start, "end_date": end, "set_as_current": True},
    )
    term = await _post(
        client,
        "/api/v1/terms",
        {
            "academic_year_detail_id": detail["id"],
            "name": "Term 1",
            "order": 1,
            "start_date": start,
            "end_date": end,
            "is_active": True,
        },
    )
    sequence = await _post(
        client,
        "/api/v1/sequences",
        {"term_id": term["id"], "name": "Sequence 1", "order": 1, "start_date": start, "end_date": end},
    )
    closed_sequence = await _post(
        client,
        "/api/v1/sequences",
        {
            "term_id": term["id"],
            "name": "Sequence 2",
            "order": 2,
            "start_date": start,
            "end_date": end,
            "is_active": False,
        },
    )
    math = await _post(client, "/api/v1/subjects", {"name": "Mathematics", "code": "math", "year": YEAR})
    french = await _post(client, "/api/v1/subjects", {"name": "French", "code": "fr", "year": YEAR})
    school_class = await _post(
        client,
        "/api/v1/classes",
        {
            "name": "Form 1 A",
            "year": YEAR,
            "level": "Form 1",
            "subjects": [
                {"subject_id": math["id"], "coefficient": 4},
                {"subject_id": french["id"], "coefficient": 2},
            ],
        },
    )
    return SimpleNamespace(
        detail=detail,
        term=term,
        sequence=sequence,
        closed_sequence=closed_sequence,
        math=math,
        french=french,
        school_class=school_class,
    )


@pytest.fixture()
def make_student(client):
    counter = {"n": 0}

    async def _make(level: str = "Form 1", first_name: str = "Student") -> dict:
        counter["n"] += 1
        return await _post(
            client,
            "/api/v1/students",
            {
                "matricule": f"MAT-{counter['n']:04d}",
                "first_name": first_name,
                "last_name": f"No{counter['n']}",
                "level": level,
            },
        )

    return _make


@pytest.fixture()
def make_record(client, school, make_student):
    """Academic year record of a fresh student in the Form 1 class, with no terms yet."""

    async def _make(student: dict = None) -> dict:
        student = student or await make_student()
        return await _post(
            client,
            "/api/v1/academic-years",
            {"student_id": student["id"], "year": YEAR, "class_id": school.school_class["id"]},
        )

    return _make


@pytest.fixture()
def set_mark(client, school):
    async def _set(record_id: str, subject_id: str, mark: float, sequence: dict = None):
        sequence = sequence or school.sequence
        return await client.put(
            f"/api/v1/academic-years/{record_id}/marks",
            json={
                "term_id": school.term["id"],
                "sequence_id": sequence["id"],
                "subject_id": subject_id,
                "new_mark": mark,
            },
        )

    return _set
