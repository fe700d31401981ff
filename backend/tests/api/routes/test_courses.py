from uuid_extensions import uuid7str
import pytest
from httpx import AsyncClient
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub.core.config import settings
from coursehub.core.enrollment import enroll
from coursehub.models import Course, Enrollment, Module, Progress, User, UserRole
from tests.utils.course import create_random_course
from tests.utils.user import create_random_user, user_authentication_headers


pytestmark = pytest.mark.asyncio()


async def test_create_course(client_with_test_db: AsyncClient, db: AsyncSession):
    instructor = await create_random_user(db, role=UserRole.INSTRUCTOR)
    headers = await user_authentication_headers(
        client=client_with_test_db, email=instructor.email, password="testpass"
    )
    data = {"title": "Math 101", "description": "Intro to Mathematics"}

    response = await client_with_test_db.post(
        f"{settings.API_V1_STR}/courses/",
        json=data,
        headers=headers,
    )
    assert response.status_code == 201
    content = response.json()
    assert content["title"] == data["title"]
    assert content["description"] == data["description"]
    assert content["is_published"] is True
    assert content["instructor"]["id"] == instructor.id
    assert content["modules"] == []


async def test_create_course_as_student(
    client_with_test_db: AsyncClient, student_token_headers: dict[str, str]
):
    response = await client_with_test_db.post(
        f"{settings.API_V1_STR}/courses/",
        json={"title": "Sneaky", "description": "Not allowed"},
        headers=student_token_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Only instructors can perform this action"


async def test_create_course_missing_fields(
    client_with_test_db: AsyncClient, instructor_token_headers: dict[str, str]
):
    data = {"description": "No title provided"}

    response = await client_with_test_db.post(
        f"{settings.API_V1_STR}/courses/",
        json=data,
        headers=instructor_token_headers,
    )
    assert response.status_code == 422


async def test_create_course_unauthenticated(client_with_test_db: AsyncClient):
    response = await client_with_test_db.post(
        f"{settings.API_V1_STR}/courses/",
        json={"title": "Anonymous", "description": "Not allowed"},
    )
    assert response.status_code == 401


async def test_read_course(client_with_test_db: AsyncClient, create_course: Course):
    response = await client_with_test_db.get(
        f"{settings.API_V1_STR}/courses/{create_course.id}"
    )
    assert response.status_code == 200
    content = response.json()
    assert content["id"] == create_course.id
    assert content["title"] == "Intro"
    assert [m["order"] for m in content["modules"]] == [1, 2]
    assert content["instructor"]["id"] == create_course.instructor_id


async def test_read_course_not_found(client_with_test_db: AsyncClient):
    response = await client_with_test_db.get(f"{settings.API_V1_STR}/courses/{uuid7str()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Course not found"


async def test_read_courses_published_filter(
    client_with_test_db: AsyncClient, db: AsyncSession, create_instructor: User
):
    published = await create_random_course(db, create_instructor)
    draft = await create_random_course(db, create_instructor, is_published=False)

    response = await client_with_test_db.get(
        f"{settings.API_V1_STR}/courses/",
        params={"published": True, "limit": 100},
    )
    assert response.status_code == 200
    content = response.json()
    ids = [course["id"] for course in content["data"]]
    assert published.id in ids
    assert draft.id not in ids
    assert all(course["is_published"] for course in content["data"])
    # newest first
    assert ids[0] == published.id


async def test_read_courses_includes_drafts_without_filter(
    client_with_test_db: AsyncClient, db: AsyncSession, create_instructor: User
):
    draft = await create_random_course(db, create_instructor, is_published=False)

    response = await client_with_test_db.get(
        f"{settings.API_V1_STR}/courses/", params={"limit": 1}
    )
    assert response.status_code == 200
    content = response.json()
    assert [course["id"] for course in content["data"]] == [draft.id]
    assert content["count"] >= 1


async def test_read_my_courses(client_with_test_db: AsyncClient, db: AsyncSession):
    instructor = await create_random_user(db, role=UserRole.INSTRUCTOR)
    other = await create_random_user(db, role=UserRole.INSTRUCTOR)
    mine = await create_random_course(db, instructor, is_published=False)
    await create_random_course(db, other)
    headers = await user_authentication_headers(
        client=client_with_test_db, email=instructor.email, password="testpass"
    )

    response = await client_with_test_db.get(
        f"{settings.API_V1_STR}/courses/mine", headers=headers
    )
    assert response.status_code == 200
    content = response.json()
    assert content["count"] == 1
    assert content["data"][0]["id"] == mine.id


async def test_read_my_courses_as_student(
    client_with_test_db: AsyncClient, student_token_headers: dict[str, str]
):
    response = await client_with_test_db.get(
        f"{settings.API_V1_STR}/courses/mine", headers=student_token_headers
    )
    assert response.status_code == 403


async def test_update_course(client_with_test_db: AsyncClient, db: AsyncSession):
    instructor = await create_random_user(db, role=UserRole.INSTRUCTOR)
    course = await create_random_course(db, instructor)
    headers = await user_authentication_headers(
        client=client_with_test_db, email=instructor.email, password="testpass"
    )

    response = await client_with_test_db.patch(
        f"{settings.API_V1_STR}/courses/{course.id}",
        json={"title": "Updated Title", "is_published": False},
        headers=headers,
    )
    assert response.status_code == 200
    content = response.json()
    assert content["title"] == "Updated Title"
    assert content["is_published"] is False
    assert content["description"] == "Course description"


async def test_update_course_not_owner(
    client_with_test_db: AsyncClient,
    create_course: Course,
    instructor_token_headers: dict[str, str],
):
    response = await client_with_test_db.patch(
        f"{settings.API_V1_STR}/courses/{create_course.id}",
        json={"title": "Hijacked"},
        headers=instructor_token_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You can only update your own courses"


async def test_update_course_not_found(
    client_with_test_db: AsyncClient, instructor_token_headers: dict[str, str]
):
    response = await client_with_test_db.patch(
        f"{settings.API_V1_STR}/courses/{uuid7str()}",
        json={"title": "Ghost"},
        headers=instructor_token_headers,
    )
    assert response.status_code == 404


async def test_delete_course_not_owner(
    client_with_test_db: AsyncClient,
    create_course: Course,
    instructor_token_headers: dict[str, str],
):
    response = await client_with_test_db.delete(
        f"{settings.API_V1_STR}/courses/{create_course.id}",
        headers=instructor_token_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "You can only delete your own courses"


async def test_delete_course_cascades(
    client_with_test_db: AsyncClient, db: AsyncSession
):
    instructor = await create_random_user(db, role=UserRole.INSTRUCTOR)
    student = await create_random_user(db)
    course = await create_random_course(db, instructor, modules=2)
    enrollment = await enroll(student_id=student.id, course_id=course.id, session=db)
    headers = await user_authentication_headers(
        client=client_with_test_db, email=instructor.email, password="testpass"
    )

    response = await client_with_test_db.delete(
        f"{settings.API_V1_STR}/courses/{course.id}", headers=headers
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Course deleted successfully"

    modules_left = (
        await db.exec(select(func.count()).select_from(Module).where(Module.course_id == course.id))
    ).one()
    enrollments_left = (
        await db.exec(select(func.count()).select_from(Enrollment).where(Enrollment.course_id == course.id))
    ).one()
    progress_left = (
        await db.exec(select(func.count()).select_from(Progress).where(Progress.enrollment_id == enrollment.id))
    ).one()
    assert modules_left == 0
    assert enrollments_left == 0
    assert progress_left == 0

    response = await client_with_test_db.get(f"{settings.API_V1_STR}/courses/{course.id}")
    assert response.status_code == 404
