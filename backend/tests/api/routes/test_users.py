import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub import crud
from coursehub.core.config import settings
from coursehub.core.security import verify_password
from tests.utils.utils import random_email, random_lower_string


pytestmark = pytest.mark.asyncio()


async def test_register_student(client_with_test_db: AsyncClient, db: AsyncSession):
    email = random_email()
    password = random_lower_string()
    data = {
        "email": email,
        "password": password,
        "first_name": "Ada",
        "last_name": "Lovelace",
    }

    r = await client_with_test_db.post(f"{settings.API_V1_STR}/users/signup", json=data)

    assert r.status_code == 201
    created = r.json()
    assert created["email"] == email
    assert created["role"] == "student"
    assert "password" not in created
    assert "hashed_password" not in created

    user = await crud.get_user_by_email(session=db, email=email)
    assert user
    assert user.id == created["id"]
    assert verify_password(password, user.hashed_password)


async def test_register_instructor(client_with_test_db: AsyncClient):
    data = {
        "email": random_email(),
        "password": random_lower_string(),
        "first_name": "Alan",
        "last_name": "Turing",
        "role": "instructor",
    }

    r = await client_with_test_db.post(f"{settings.API_V1_STR}/users/signup", json=data)

    assert r.status_code == 201
    assert r.json()["role"] == "instructor"


async def test_register_existing_email(client_with_test_db: AsyncClient):
    data = {
        "email": settings.FIRST_INSTRUCTOR,
        "password": random_lower_string(),
        "first_name": "Copy",
        "last_name": "Cat",
    }

    r = await client_with_test_db.post(f"{settings.API_V1_STR}/users/signup", json=data)

    assert r.status_code == 409
    assert r.json()["detail"] == "Email already exists"


@pytest.mark.parametrize(
    "overrides",
    [
        {"role": "admin"},
        {"password": "short"},
        {"email": "not-an-email"},
        {"first_name": ""},
    ],
)
async def test_register_invalid_payload(client_with_test_db: AsyncClient, overrides: dict):
    data = {
        "email": random_email(),
        "password": random_lower_string(),
        "first_name": "Grace",
        "last_name": "Hopper",
        **overrides,
    }

    r = await client_with_test_db.post(f"{settings.API_V1_STR}/users/signup", json=data)

    assert r.status_code == 422


async def test_read_user_me(
    client_with_test_db: AsyncClient, student_token_headers: dict[str, str]
):
    r = await client_with_test_db.get(
        f"{settings.API_V1_STR}/users/me", headers=student_token_headers
    )

    assert r.status_code == 200
    current_user = r.json()
    assert current_user["email"] == settings.EMAIL_TEST_USER
    assert current_user["role"] == "student"


async def test_read_instructor_me(
    client_with_test_db: AsyncClient, instructor_token_headers: dict[str, str]
):
    r = await client_with_test_db.get(
        f"{settings.API_V1_STR}/users/me", headers=instructor_token_headers
    )

    assert r.status_code == 200
    assert r.json()["email"] == settings.FIRST_INSTRUCTOR
    assert r.json()["role"] == "instructor"
