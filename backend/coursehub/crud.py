from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub.core.security import get_password_hash, verify_password
from coursehub.models import (
    Course,
    Module,
    User,
    UserCreate,
)


async def create_user(*, session: AsyncSession, user_create: UserCreate) -> User:
    """Function to create a user.

    :param session: The SQLAlchemy session object.
    :param user_create: The user data to create a User.
    :returns: User object.
    """

    db_obj = User.model_validate(
        user_create,
        update={
            "hashed_password": get_password_hash(user_create.password),
            "role": user_create.role.value,
        },
    )
    session.add(db_obj)
    await session.commit()
    await session.refresh(db_obj)
    return db_obj


async def get_user_by_email(*, session: AsyncSession, email: str) -> User | None:
    """Function to get a User object from database by email.

    :param session: The SQLAlchemy session object
    :param email: email string.
    :returns: User object
    """

    statement = select(User).where(User.email == email)
    session_user = await session.exec(statement)
    return session_user.first()


async def authenticate(*, session: AsyncSession, email: str, password: str) -> User | None:
    """Function to get a user authentificated.

    :param session: The SQLAlchemy session object.
    :param email: email string to find a user.
    :param password: password for a user.
    :returns: User object
    """

    db_user = await get_user_by_email(session=session, email=email)
    if not db_user:
        return None
    if not verify_password(password, db_user.hashed_password):
        return None
    return db_user


async def get_course(*, session: AsyncSession, course_id: str) -> Course | None:
    """Function to get a Course with its instructor and modules.

    Loaded attributes are overwritten from the database, so modules added
    earlier in the same session are part of the result.

    :param session: The SQLAlchemy session object.
    :param course_id: id of the course.
    :returns: Course object or None.
    """

    statement = (
        select(Course)
        .where(Course.id == course_id)
        .options(selectinload(Course.instructor), selectinload(Course.modules))
        .execution_options(populate_existing=True)
    )
    return (await session.exec(statement)).first()


async def list_modules(*, session: AsyncSession, course_id: str) -> list[Module]:
    """Function to list the current modules of a course in display order.

    Always reads from the database, so modules added in the same session
    are included.

    :param session: The SQLAlchemy session object.
    :param course_id: id of the course.
    :returns: list of Module objects.
    """

    statement = (
        select(Module)
        .where(Module.course_id == course_id)
        .order_by(Module.order, Module.id)
    )
    return list((await session.exec(statement)).all())
