"""Materials, notices and the activity feed."""
from pathlib import Path

import pytest

import config

pytestmark = pytest.mark.anyio


async def test_file_material_roundtrip(client, classroom):
    cid = classroom.course["_id"]
    r = await client.post(
        "/api/materials",
        data={"title": "Syllabus", "course": cid, "type": "pdf"},
        files={"file": ("syllabus.pdf", b"%PDF-1.4", "application/pdf")},
        headers=classroom.teacher_h,
    )
    assert r.status_code == 201, r.text
    material = r.json()["material"]
    path = Path(config.UPLOAD_DIR) / material["file"]["file_url"]
    assert path.read_bytes() == b"%PDF-1.4"

    listed = await client.get(f"/api/materials/course/{cid}", headers=classroom.student_h)
    assert listed.json()["count"] == 1
    assert (await client.get(f"/api/materials/course/{cid}", headers=classroom.outsider_h)).status_code == 403

    r = await client.delete(f"/api/materials/{material['_id']}", headers=classroom.teacher_h)
    assert r.status_code == 200
    assert not path.exists()


async def test_material_type_rules(client, classroom):
    cid = classroom.course["_id"]
    r = await client.post("/api/materials", data={"title": "Site", "course": cid, "type": "link"},
                          headers=classroom.teacher_h)
    assert r.status_code == 400
    r = await client.post("/api/materials", data={"title": "Notes", "course": cid, "type": "pdf"},
                          headers=classroom.teacher_h)
    assert r.status_code == 400
    r = await client.post("/api/materials", data={"title": "Odd", "course": cid, "type": "hologram"},
                          headers=classroom.teacher_h)
    assert r.status_code == 400
    r = await client.post(
        "/api/materials",
        data={"title": "Site", "course": cid, "type": "link", "link": "https://example.com"},
        headers=classroom.teacher_h,
    )
    assert r.status_code == 201
    assert r.json()["material"]["link"] == "https://example.com"


async def test_students_cannot_add_materials(client, classroom):
    r = await client.post(
        "/api/materials",
        data={"title": "Mine", "course": classroom.course["_id"], "type": "link", "link": "https://example.com"},
        headers=classroom.student_h,
    )
    assert r.status_code == 403


async def test_notices_pinned_first_and_marked_read(client, classroom):
    cid = classroom.course["_id"]
    for title, pinned in (("Old pinned", "true"), ("Newer", "false")):
        r = await client.post(
            "/api/notices",
            data={"title": title, "content": "text", "course": cid, "pinned": pinned},
            headers=classroom.teacher_h,
        )
        assert r.status_code == 201, r.text

    r = await client.get(f"/api/notices/course/{cid}", headers=classroom.student_h)
    notices = r.json()["notices"]
    assert [n["title"] for n in notices] == ["Old pinned", "Newer"]
    assert notices[0]["author"]["name"] == "Tina"

    r = await client.get(f"/api/notices/{notices[0]['_id']}", headers=classroom.teacher_h)
    assert classroom.student["_id"] in r.json()["notice"]["read_by"]


async def test_global_notices_are_admin_only(client, classroom):
    r = await client.post("/api/notices", data={"title": "Hi", "content": "all"}, headers=classroom.teacher_h)
    assert r.status_code == 403
    r = await client.post(
        "/api/notices", data={"title": "Hi", "content": "all", "priority": "high"}, headers=classroom.admin_h
    )
    assert r.status_code == 201
    r = await client.get("/api/notices", headers=classroom.outsider_h)
    assert r.json()["count"] == 1
    assert r.json()["notices"][0]["priority"] == "high"


async def test_notice_edit_by_author_or_admin(client, classroom, signup):
    r = await client.post(
        "/api/notices", data={"title": "Exam", "content": "Friday", "course": classroom.course["_id"]},
        headers=classroom.teacher_h,
    )
    nid = r.json()["notice"]["_id"]
    other_h, _ = await signup("Tom", role="teacher")
    assert (await client.put(f"/api/notices/{nid}", json={"title": "X"}, headers=other_h)).status_code == 403
    r = await client.put(f"/api/notices/{nid}", json={"content": "Monday"}, headers=classroom.admin_h)
    assert r.json()["notice"]["content"] == "Monday"
    assert (await client.delete(f"/api/notices/{nid}", headers=classroom.teacher_h)).status_code == 200


async def test_recent_activity(client, classroom):
    cid = classroom.course["_id"]
    await client.post("/api/assignments", json={"title": "HW", "course": cid}, headers=classroom.teacher_h)
    await client.post("/api/notices", data={"title": "Welcome", "content": "hi", "course": cid},
                      headers=classroom.teacher_h)

    student_feed = (await client.get("/api/activities/recent", headers=classroom.student_h)).json()
    assert {a["type"] for a in student_feed["activities"]} == {"assignment", "notice"}

    teacher_feed = (await client.get("/api/activities/recent", headers=classroom.teacher_h)).json()
    assert "course" in {a["type"] for a in teacher_feed["activities"]}

    outsider_feed = (await client.get("/api/activities/recent", headers=classroom.outsider_h)).json()
    assert outsider_feed["count"] == 0
