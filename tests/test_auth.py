from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.models import RefreshToken

PASSWORD = "StrongPass123"


@pytest.mark.asyncio
async def test_login_with_email(client: AsyncClient, student) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"identifier": student.email.upper(), "password": PASSWORD},
    )
    assert response.status_code == 200
    data = response.json()

    assert data["success"] is True
    assert data["accessToken"]
    assert data["refreshToken"]
    assert data["tokenType"] == "bearer"
    assert data["user"]["id"] == str(student.id)
    assert data["user"]["role"] == "Student"
    assert data["user"]["lastLogin"] is not None


@pytest.mark.asyncio
async def test_login_with_username(client: AsyncClient, teacher) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"identifier": teacher.username, "password": PASSWORD},
    )
    assert response.status_code == 200
    assert response.json()["user"]["assignedCourses"] == []


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, student) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"identifier": student.username, "password": "WrongPass999"},
    )
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_login_unknown_user(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"identifier": "nobody@school.test", "password": PASSWORD},
    )
    assert response.status_code == 401


@pytest.mark.parametrize("status", ["pending", "suspended", "inactive", "archived"])
@pytest.mark.asyncio
async def test_login_requires_active_account(client: AsyncClient, make_user, status: str) -> None:
    user = await make_user("Student", status=status)
    response = await client.post(
        "/api/v1/auth/login",
        json={"identifier": user.username, "password": PASSWORD},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_login_oauth_form(client: AsyncClient, admin) -> None:
    response = await client.post(
        "/api/v1/auth/login-oauth",
        data={"username": admin.username, "password": PASSWORD},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["data"]["username"] == admin.username


@pytest.mark.asyncio
async def test_refresh_and_logout(client: AsyncClient, student) -> None:
    login = await client.post(
        "/api/v1/auth/login",
        json={"identifier": student.username, "password": PASSWORD},
    )
    tokens = login.json()

    refreshed = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["accessToken"]

    logout = await client.post(
        "/api/v1/auth/logout", headers={"Authorization": f"Bearer {tokens['accessToken']}"}
    )
    assert logout.status_code == 200

    refreshed = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 401


@pytest.mark.asyncio
async def test_expired_refresh_token(client: AsyncClient, db_session: AsyncSession, student) -> None:
    login = await client.post(
        "/api/v1/auth/login",
        json={"identifier": student.username, "password": PASSWORD},
    )
    token = login.json()["refreshToken"]

    stored = (
        await db_session.execute(select(RefreshToken).where(RefreshToken.token == token))
    ).scalar_one()
    stored.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    await db_session.commit()

    refreshed = await client.post("/api/v1/auth/refresh", json={"refreshToken": token})
    assert refreshed.status_code == 401


@pytest.mark.asyncio
async def test_invalid_bearer_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Could not validate credentials"


@pytest.mark.asyncio
async def test_me_lists_enrolled_courses(
    client: AsyncClient, admin_headers, student, headers_for
) -> None:
    course = (
        await client.post(
            "/api/v1/courses",
            json={"courseCode": "ENG1", "courseName": "English"},
            headers=admin_headers,
        )
    ).json()["data"]
    await client.post(
        f"/api/v1/courses/{course['id']}/students",
        json={"studentId": str(student.id)},
        headers=admin_headers,
    )

    me = await client.get("/api/v1/auth/me", headers=headers_for(student))
    assert me.status_code == 200
    data = me.json()["data"]
    assert data["enrolledCourses"] == [course["id"]]
    assert data["assignedCourses"] is None


@pytest.mark.asyncio
async def test_update_me(client: AsyncClient, student, headers_for) -> None:
    response = await client.put(
        "/api/v1/auth/me",
        json={"bio": "Hello", "phoneNumber": "555-0111"},
        headers=headers_for(student),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["bio"] == "Hello"
    assert data["phoneNumber"] == "555-0111"


@pytest.mark.asyncio
async def test_update_me_empty(client: AsyncClient, student, headers_for) -> None:
    response = await client.put("/api/v1/auth/me", json={}, headers=headers_for(student))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_is_admin_only(client: AsyncClient, admin_headers, teacher, headers_for) -> None:
    payload = {
        "username": "newteacher",
        "firstName": "Nia",
        "lastName": "Okafor",
        "email": "nia@school.test",
        "password": PASSWORD,
        "phoneNumber": "555-0177",
        "address": "3 Oak Road",
        "role": "Teacher",
        "sex": "Female",
        "status": "active",
    }
    denied = await client.post("/api/v1/auth/register", json=payload, headers=headers_for(teacher))
    assert denied.status_code == 403

    created = await client.post("/api/v1/auth/register", json=payload, headers=admin_headers)
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["role"] == "Teacher"
    assert data["status"] == "active"
    assert data["assignedCourses"] == []

    login = await client.post(
        "/api/v1/auth/login", json={"identifier": "nia@school.test", "password": PASSWORD}
    )
    assert login.status_code == 200
