"""
Auth API: registration, login, bearer-token resolution and the uniform
error envelope.
"""
import pytest

import database

pytestmark = pytest.mark.anyio


async def test_register_returns_token_and_hides_hash(client):
    r = await client.post("/api/auth/register", json={
        "name": "Nora", "email": "  Nora@Example.com ", "password": "secret123",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "nora@example.com"
    assert body["user"]["role"] == "student"
    assert "password_hash" not in body["user"]


async def test_duplicate_email_is_a_conflict(client, signup):
    await signup("Nora")
    r = await client.post("/api/auth/register", json={
        "name": "Other", "email": "NORA@example.com", "password": "secret123",
    })
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "User with this email already exists"}
    assert database.db.user.count_documents({}) == 1


async def test_short_password_is_a_validation_error(client):
    r = await client.post("/api/auth/register", json={"name": "Nora", "email": "n@example.com", "password": "123"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"].startswith("password")


async def test_login_and_me(client, signup):
    await signup("Nora")
    r = await client.post("/api/auth/login", json={"email": "nora@example.com", "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Nora"
    assert me.headers["Cache-Control"] == "no-store"


async def test_oauth2_form_login(client, signup):
    await signup("Nora")
    r = await client.post("/api/auth/token", data={"username": "nora@example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"


async def test_bad_credentials(client, signup):
    await signup("Nora")
    r = await client.post("/api/auth/login", json={"email": "nora@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials"}


async def test_missing_and_broken_tokens(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, no token"

    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized, token failed"


async def test_role_guard_message(client, signup):
    headers, _ = await signup("Sam")
    r = await client.get("/api/users", headers=headers)
    assert r.status_code == 403
    assert r.json()["message"] == "User role student is unauthorized"


async def test_password_reset_flow(client, signup, caplog):
    await signup("Nora")
    with caplog.at_level("INFO", logger="lms.web.auth"):
        r = await client.post("/api/auth/forgot-password", json={"email": "nora@example.com"})
    assert r.status_code == 200
    link = next(rec.getMessage() for rec in caplog.records if "reset-password/" in rec.getMessage())
    token = link.rsplit("reset-password/", 1)[1]

    r = await client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
    assert r.status_code == 200
    r = await client.post("/api/auth/login", json={"email": "nora@example.com", "password": "brand-new"})
    assert r.status_code == 200

    # tokens are single use
    r = await client.post("/api/auth/reset-password", json={"token": token, "password": "again-new"})
    assert r.status_code == 400


async def test_health_and_root(client):
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["database"] == "connected"
    r = await client.get("/")
    assert r.json()["message"] == "Course Portal API running"
