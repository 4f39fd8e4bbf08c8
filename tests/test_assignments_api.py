from pathlib import Path

import pytest

import config
import database

pytestmark = pytest.mark.anyio


async def make_assignment(client, classroom, **overrides):
    payload = {"title": "Essay", "description": "500 words", "course": classroom.course["_id"], "total_points": 100}
    payload.update(overrides)
    r = await client.post("/api/assignments", json=payload, headers=classroom.teacher_h)
    assert r.status_code == 201, r.text
    return r.json()["assignment"]


async def submit(client, classroom, assignment, content="my essay", files=None):
    return await client.post(
        f"/api/assignments/{assignment['_id']}/submit",
        data={"content": content} if content is not None else None,
        files=files,
        headers=classroom.student_h,
    )


async def test_submit_with_file_is_stored(client, classroom):
    assignment = await make_assignment(client, classroom)
    r = await submit(client, classroom, assignment, files=[("files", ("essay draft.txt", b"hello", "text/plain"))])
    assert r.status_code == 200, r.text
    sub = r.json()["submission"]
    ref = sub["attachments"][0]
    assert ref["file_name"] == "essay draft.txt"
    assert ref["file_url"].startswith("submissions/")
    assert ref["file_url"].endswith("_essay_draft.txt")
    assert ref["file_size"] == 5
    assert (Path(config.UPLOAD_DIR) / ref["file_url"]).read_bytes() == b"hello"


async def test_second_submission_is_a_conflict(client, classroom):
    assignment = await make_assignment(client, classroom)
    assert (await submit(client, classroom, assignment)).status_code == 200
    r = await submit(client, classroom, assignment, content="second try")
    assert r.status_code == 409
    stored = database.db.assignment.find_one({})
    assert len(stored["submissions"]) == 1
    assert stored["submissions"][0]["content"] == "my essay"


async def test_submission_preconditions(client, classroom):
    late = await make_assignment(client, classroom, deadline="2000-01-01T00:00:00Z")
    r = await submit(client, classroom, late)
    assert r.status_code == 400
    assert r.json()["message"] == "Assignment due date has passed"

    open_one = await make_assignment(client, classroom)
    r = await client.post(
        f"/api/assignments/{open_one['_id']}/submit", data={"content": "hi"}, headers=classroom.outsider_h
    )
    assert r.status_code == 403

    r = await submit(client, classroom, open_one, content="   ")
    assert r.status_code == 400


async def test_grade_bounds(client, classroom):
    assignment = await make_assignment(client, classroom)
    sid = (await submit(client, classroom, assignment)).json()["submission"]["id"]

    r = await client.put(f"/api/submissions/{sid}/grade", json={"grade": 101}, headers=classroom.teacher_h)
    assert r.status_code == 400
    assert r.json()["message"] == "Grade must be a number between 0 and 100"

    r = await client.put(f"/api/submissions/{sid}/grade", json={"grade": "abc"}, headers=classroom.teacher_h)
    assert r.status_code == 400
    assert r.json()["message"] == "Grade must be a number between 0 and 100"

    for grade in (100, 0):
        r = await client.put(
            f"/api/submissions/{sid}/grade", json={"grade": grade, "feedback": "ok"}, headers=classroom.teacher_h
        )
        assert r.status_code == 200
        graded = r.json()["submission"]
        assert graded["grade"] == grade
        assert graded["graded"] is True
        assert graded["graded_by"] == classroom.teacher["_id"]


async def test_only_course_teacher_or_admin_grades(client, classroom, signup):
    assignment = await make_assignment(client, classroom)
    sid = (await submit(client, classroom, assignment)).json()["submission"]["id"]
    other_h, _ = await signup("Tom", role="teacher")

    r = await client.put(f"/api/submissions/{sid}/grade", json={"grade": 50}, headers=other_h)
    assert r.status_code == 403
    r = await client.put(f"/api/submissions/{sid}/grade", json={"grade": 50}, headers=classroom.student_h)
    assert r.status_code == 403
    r = await client.put(
        f"/api/assignments/{assignment['_id']}/grade/{sid}", json={"grade": 50}, headers=classroom.admin_h
    )
    assert r.status_code == 200


async def test_grading_notifies_the_student(client, classroom):
    assignment = await make_assignment(client, classroom, total_points=20)
    sid = (await submit(client, classroom, assignment)).json()["submission"]["id"]
    await client.put(f"/api/submissions/{sid}/grade", json={"grade": 15}, headers=classroom.teacher_h)

    r = await client.get("/api/notifications", headers=classroom.student_h)
    body = r.json()
    assert body["unread"] == 1
    note = body["notifications"][0]
    assert "15/20" in note["text"]

    r = await client.put(f"/api/notifications/{note['_id']}/read", headers=classroom.student_h)
    assert r.json()["notification"]["read"] is True
    r = await client.put(f"/api/notifications/{note['_id']}/read", headers=classroom.teacher_h)
    assert r.status_code == 403


async def test_students_see_only_their_own_submission(client, classroom, signup):
    assignment = await make_assignment(client, classroom)
    await submit(client, classroom, assignment)

    peer_h, _ = await signup("Pia")
    await client.post(f"/api/courses/{classroom.course['_id']}/enroll", headers=peer_h)
    r = await client.get(f"/api/assignments/{assignment['_id']}", headers=peer_h)
    assert r.json()["assignment"]["submissions"] == []

    r = await client.get(f"/api/assignments/{assignment['_id']}", headers=classroom.teacher_h)
    assert len(r.json()["assignment"]["submissions"]) == 1

    listed = (await client.get("/api/assignments/student", headers=classroom.student_h)).json()
    assert listed["count"] == 1
    assert len(listed["assignments"][0]["submissions"]) == 1


async def test_delete_submission_removes_files(client, classroom):
    assignment = await make_assignment(client, classroom)
    r = await submit(client, classroom, assignment, files=[("files", ("a.txt", b"data", "text/plain"))])
    sub = r.json()["submission"]
    path = Path(config.UPLOAD_DIR) / sub["attachments"][0]["file_url"]
    assert path.exists()

    r = await client.delete(f"/api/submissions/{sub['id']}", headers=classroom.teacher_h)
    assert r.status_code == 200
    assert not path.exists()
    assert database.db.assignment.find_one({})["submissions"] == []


async def test_total_points_must_be_positive(client, classroom):
    r = await client.post(
        "/api/assignments",
        json={"title": "Bad", "course": classroom.course["_id"], "total_points": 0},
        headers=classroom.teacher_h,
    )
    assert r.status_code == 400


async def test_update_rejects_null_title_but_clears_deadline(client, classroom):
    assignment = await make_assignment(client, classroom, deadline="2999-01-01T00:00:00Z")
    aid = assignment["_id"]
    for field in ("title", "total_points"):
        r = await client.put(f"/api/assignments/{aid}", json={field: None}, headers=classroom.teacher_h)
        assert r.status_code == 400, field
        assert r.json()["message"] == f"Assignment {field} cannot be null"
    stored = database.db.assignment.find_one({})
    assert stored["title"] == "Essay"
    assert stored["total_points"] == 100

    r = await client.put(f"/api/assignments/{aid}", json={"deadline": None}, headers=classroom.teacher_h)
    assert r.status_code == 200
    assert database.db.assignment.find_one({})["deadline"] is None
