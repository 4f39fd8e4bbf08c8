"""
Pytest configuration for the API tests.

Every test gets a fresh in-memory MongoDB (mongomock) and its own upload
directory; AnyIO runs on the asyncio backend only.
"""
from types import SimpleNamespace

import httpx
import mongomock
import pytest
from httpx import ASGITransport

import config
import database
import main

PASSWORD = "secret123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def mongo(monkeypatch, tmp_path):
    db = mongomock.MongoClient()[config.DATABASE_NAME]
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    database.ensure_indexes()
    return db


@pytest.fixture
async def client():
    async with httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as c:
        yield c


@pytest.fixture
def signup(client):
    """Register a user and return (auth headers, public user)."""

    async def _signup(name, role="student", email=None):
        r = await client.post("/api/auth/register", json={
            "name": name,
            "email": email or f"{name.lower()}@example.com",
            "password": PASSWORD,
            "role": role,
        })
        assert r.status_code == 201, r.text
        body = r.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]

    return _signup


@pytest.fixture
async def classroom(client, signup):
    """A teacher, an admin, an enrolled student, an outsider and one course."""
    teacher_h, teacher = await signup("Tina", role="teacher")
    admin_h, admin = await signup("Ada", role="admin")
    student_h, student = await signup("Sam")
    outsider_h, outsider = await signup("Olga")

    r = await client.post("/api/courses", json={"title": "Algebra", "code": "ALG-1"}, headers=teacher_h)
    assert r.status_code == 201, r.text
    course = r.json()["course"]
    r = await client.post(f"/api/courses/{course['_id']}/enroll", headers=student_h)
    assert r.status_code == 200, r.text

    return SimpleNamespace(
        teacher_h=teacher_h, teacher=teacher,
        admin_h=admin_h, admin=admin,
        student_h=student_h, student=student,
        outsider_h=outsider_h, outsider=outsider,
        course=course,
    )
