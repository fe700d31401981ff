import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub import crud
from coursehub.core.config import settings
from coursehub.models import User, UserCreate, UserRole

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


if _is_sqlite(settings.SQLALCHEMY_DATABASE_URI):
    # aiosqlite connections are bound to the loop that opened them
    async_engine = create_async_engine(
        settings.SQLALCHEMY_DATABASE_URI, poolclass=NullPool
    )

    @event.listens_for(async_engine.sync_engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave,
        # and turn on ON DELETE CASCADE enforcement
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(async_engine.sync_engine, "begin")
    def _sqlite_on_begin(conn):
        # take the write lock up front so concurrent writers queue on the
        # busy timeout instead of failing with "database is locked"
        conn.exec_driver_sql("BEGIN IMMEDIATE")

else:
    async_engine = create_async_engine(
        settings.SQLALCHEMY_DATABASE_URI, pool_pre_ping=True
    )


async def create_db_and_tables() -> None:
    """Create every table that is missing.

    Deployments run the Alembic migrations instead; this is used for
    tests and for local SQLite databases.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db(session: AsyncSession) -> None:
    """Seed the first instructor account if it does not exist yet.

    :param session: The database session.
    """
    statement = select(User).where(User.email == settings.FIRST_INSTRUCTOR)
    user = (await session.exec(statement)).first()
    if not user:
        user_in = UserCreate(
            email=settings.FIRST_INSTRUCTOR,
            password=settings.FIRST_INSTRUCTOR_PASSWORD,
            first_name="First",
            last_name="Instructor",
            role=UserRole.INSTRUCTOR,
        )
        user = await crud.create_user(session=session, user_create=user_in)
        logger.info("Created first instructor %s", user.email)
