import pytest

import database

pytestmark = pytest.mark.anyio


async def test_admin_lists_users_without_hashes(client, classroom):
    r = await client.get("/api/users", headers=classroom.admin_h)
    assert r.status_code == 200
    users = r.json()["users"]
    assert r.json()["count"] == 4
    assert all("password_hash" not in u for u in users)


async def test_profile_update_and_email_collision(client, classroom):
    r = await client.put("/api/users/me", json={"name": "Samuel"}, headers=classroom.student_h)
    assert r.json()["user"]["name"] == "Samuel"
    r = await client.put("/api/users/me", json={"email": "Tina@example.com"}, headers=classroom.student_h)
    assert r.status_code == 409


async def test_password_change_requires_current_password(client, classroom):
    r = await client.put(
        "/api/users/me/password",
        json={"current_password": "wrong-one", "new_password": "another1"},
        headers=classroom.student_h,
    )
    assert r.status_code == 401
    r = await client.put(
        "/api/users/me/password",
        json={"current_password": "secret123", "new_password": "another1"},
        headers=classroom.student_h,
    )
    assert r.status_code == 200
    r = await client.post("/api/auth/login", json={"email": "sam@example.com", "password": "another1"})
    assert r.status_code == 200


async def test_deleting_a_user_drops_enrollments(client, classroom):
    sid = classroom.student["_id"]
    r = await client.delete(f"/api/users/{sid}", headers=classroom.admin_h)
    assert r.status_code == 200
    assert database.db.course.find_one({})["students"] == []
    r = await client.get("/api/auth/me", headers=classroom.student_h)
    assert r.status_code == 401
    assert r.json()["message"] == "User not found"


async def test_teacher_with_courses_cannot_be_deleted(client, classroom):
    r = await client.delete(f"/api/users/{classroom.teacher['_id']}", headers=classroom.admin_h)
    assert r.status_code == 409
    assert database.db.user.count_documents({"_id": database.to_object_id(classroom.teacher["_id"])}) == 1

    await client.delete(f"/api/courses/{classroom.course['_id']}", headers=classroom.teacher_h)
    r = await client.delete(f"/api/users/{classroom.teacher['_id']}", headers=classroom.admin_h)
    assert r.status_code == 200
