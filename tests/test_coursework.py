import pytest
from httpx import AsyncClient


@pytest.fixture()
async def course(client: AsyncClient, admin_headers, teacher, student) -> dict:
    """A course taught by `teacher` with `student` enrolled."""
    resp = await client.post(
        "/api/v1/courses",
        json={"courseCode": "CS101", "courseName": "Programming", "teacherId": str(teacher.id)},
        headers=admin_headers,
    )
    data = resp.json()["data"]
    await client.post(
        f"/api/v1/courses/{data['id']}/students",
        json={"studentId": str(student.id)},
        headers=admin_headers,
    )
    return data


async def _create_activity(client: AsyncClient, course: dict, headers, **fields) -> dict:
    payload = {"title": "Homework 1", "maxPoints": 50}
    payload.update(fields)
    resp = await client.post(f"/api/v1/courses/{course['id']}/activities", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_teacher_creates_and_lists_activities(
    client: AsyncClient, course, teacher, headers_for
) -> None:
    headers = headers_for(teacher)
    await _create_activity(client, course, headers, title="Late", dueDate="2026-12-01T09:00:00")
    await _create_activity(client, course, headers, title="Early", dueDate="2026-11-01T09:00:00")
    await _create_activity(client, course, headers, title="Undated")

    resp = await client.get(f"/api/v1/courses/{course['id']}/activities", headers=headers)
    assert resp.status_code == 200
    assert [a["title"] for a in resp.json()["data"]] == ["Early", "Late", "Undated"]


@pytest.mark.asyncio
async def test_activity_requires_title(client: AsyncClient, course, admin_headers) -> None:
    resp = await client.post(
        f"/api/v1/courses/{course['id']}/activities", json={"title": "  "}, headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Activity title is required"


@pytest.mark.asyncio
async def test_other_teacher_cannot_add_activity(
    client: AsyncClient, course, make_user, headers_for
) -> None:
    other = await make_user("Teacher")
    resp = await client.post(
        f"/api/v1/courses/{course['id']}/activities", json={"title": "Hijack"}, headers=headers_for(other)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_record_grade_creates_then_updates(
    client: AsyncClient, course, teacher, student, headers_for
) -> None:
    headers = headers_for(teacher)
    activity = await _create_activity(client, course, headers)
    url = f"/api/v1/courses/{course['id']}/grades"
    payload = {"activityId": activity["id"], "studentId": str(student.id), "score": 40}

    created = await client.post(url, json=payload, headers=headers)
    assert created.status_code == 201
    assert created.json()["data"]["score"] == 40
    assert created.json()["data"]["gradedBy"] == str(teacher.id)

    payload["score"] = 45
    payload["comments"] = "Regraded"
    updated = await client.post(url, json=payload, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["id"] == created.json()["data"]["id"]
    assert updated.json()["data"]["score"] == 45

    listed = await client.get(url, headers=headers)
    assert listed.json()["count"] == 1


@pytest.mark.asyncio
async def test_grade_requires_enrollment(
    client: AsyncClient, course, admin_headers, make_user
) -> None:
    outsider = await make_user("Student")
    activity = await _create_activity(client, course, admin_headers)
    resp = await client.post(
        f"/api/v1/courses/{course['id']}/grades",
        json={"activityId": activity["id"], "studentId": str(outsider.id), "score": 10},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Student is not enrolled in this course"


@pytest.mark.asyncio
async def test_grade_score_bounds(client: AsyncClient, course, admin_headers, student) -> None:
    activity = await _create_activity(client, course, admin_headers)
    resp = await client.post(
        f"/api/v1/courses/{course['id']}/grades",
        json={"activityId": activity["id"], "studentId": str(student.id), "score": 51},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Score must be between 0 and 50"


@pytest.mark.asyncio
async def test_student_sees_only_own_grades(
    client: AsyncClient, course, admin_headers, student, make_user, headers_for
) -> None:
    classmate = await make_user("Student")
    await client.post(
        f"/api/v1/courses/{course['id']}/students",
        json={"studentId": str(classmate.id)},
        headers=admin_headers,
    )
    activity = await _create_activity(client, course, admin_headers)
    for s, score in ((student, 30), (classmate, 20)):
        await client.post(
            f"/api/v1/courses/{course['id']}/grades",
            json={"activityId": activity["id"], "studentId": str(s.id), "score": score},
            headers=admin_headers,
        )

    resp = await client.get(
        f"/api/v1/courses/{course['id']}/grades",
        params={"studentId": str(classmate.id)},
        headers=headers_for(student),
    )
    assert resp.status_code == 200
    grades = resp.json()["data"]
    assert [g["studentId"] for g in grades] == [str(student.id)]


@pytest.mark.asyncio
async def test_student_cannot_record_grades(
    client: AsyncClient, course, admin_headers, student, headers_for
) -> None:
    activity = await _create_activity(client, course, admin_headers)
    resp = await client.post(
        f"/api/v1/courses/{course['id']}/grades",
        json={"activityId": activity["id"], "studentId": str(student.id), "score": 50},
        headers=headers_for(student),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_activity_removes_grades(
    client: AsyncClient, course, admin_headers, student
) -> None:
    activity = await _create_activity(client, course, admin_headers)
    await client.post(
        f"/api/v1/courses/{course['id']}/grades",
        json={"activityId": activity["id"], "studentId": str(student.id), "score": 10},
        headers=admin_headers,
    )

    resp = await client.delete(
        f"/api/v1/courses/{course['id']}/activities/{activity['id']}", headers=admin_headers
    )
    assert resp.status_code == 200

    grades = await client.get(f"/api/v1/courses/{course['id']}/grades", headers=admin_headers)
    assert grades.json()["count"] == 0
    activities = await client.get(f"/api/v1/courses/{course['id']}/activities", headers=admin_headers)
    assert activities.json()["count"] == 0
