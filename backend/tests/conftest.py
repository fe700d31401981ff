import os
from collections.abc import AsyncGenerator

# must be set before coursehub builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./coursehub_test.db")
os.environ.setdefault("ENVIRONMENT", "testing")

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub.api.deps import get_db
from coursehub.core.config import settings
from coursehub.core.db import async_engine, create_db_and_tables, init_db
from coursehub.main import app
from coursehub.models import Course, Module, User, UserRole
from tests.utils.user import authentication_token_from_email, create_random_user


@pytest_asyncio.fixture(scope="function")
async def db() -> AsyncGenerator[AsyncSession, None]:
    await create_db_and_tables()
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        await init_db(session)
        await session.commit()
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def client_with_test_db(
    db: AsyncSession, client: AsyncClient
) -> AsyncGenerator[AsyncClient, None]:
    """
    Wraps the client and overrides the DB session to use the test session.
    """

    async def _override_get_session():
        yield db  # Reuse the same session

    app.dependency_overrides[get_db] = _override_get_session
    yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def instructor_token_headers(
    client_with_test_db: AsyncClient, db: AsyncSession
) -> dict[str, str]:
    return await authentication_token_from_email(
        client=client_with_test_db,
        email=settings.FIRST_INSTRUCTOR,
        password=settings.FIRST_INSTRUCTOR_PASSWORD,
        db=db,
    )


@pytest_asyncio.fixture(scope="function")
async def student_token_headers(
    client_with_test_db: AsyncClient, db: AsyncSession
) -> dict[str, str]:
    return await authentication_token_from_email(
        client=client_with_test_db, email=settings.EMAIL_TEST_USER, db=db
    )


@pytest_asyncio.fixture(scope="function")
async def create_instructor(db: AsyncSession) -> User:
    """
    Fixture to create a random instructor in the database.
    """
    return await create_random_user(db, role=UserRole.INSTRUCTOR)


@pytest_asyncio.fixture(scope="function")
async def create_student(db: AsyncSession) -> User:
    """
    Fixture to create a random student in the database.
    """
    return await create_random_user(db)


@pytest_asyncio.fixture(scope="function")
async def create_course(db: AsyncSession, create_instructor: User) -> Course:
    """
    Fixture to create a published test course with two modules.
    """
    course = Course(
        title="Intro",
        description="Test Description",
        instructor_id=create_instructor.id,
        is_published=True,
    )
    db.add(course)
    await db.flush()
    for order in (1, 2):
        db.add(
            Module(
                title=f"Module {order}",
                content="Test Content",
                order=order,
                course_id=course.id,
            )
        )
    await db.flush()
    await db.refresh(course)
    return course


@pytest_asyncio.fixture(scope="function")
async def create_module(db: AsyncSession, create_course: Course) -> Module:
    """
    Fixture to create one more module within the test course.
    """
    module = Module(
        title="Test Module",
        content="Test Content",
        order=3,
        course_id=create_course.id,
    )
    db.add(module)
    await db.flush()
    await db.refresh(module)
    return module
