import logging

from fastapi import HTTPException
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from uuid_extensions import uuid7str

from coursehub.core.enrollment import get_owned_enrollment
from coursehub.models import Progress, ProgressPublic, utcnow

logger = logging.getLogger(__name__)

COMPLETE = 100.0

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def clamp_percentage(completion_percentage: float) -> float:
    """Bound a reported percentage to [0, 100]."""
    return max(0.0, min(COMPLETE, float(completion_percentage)))


def is_complete(completion_percentage: float) -> bool:
    return completion_percentage >= COMPLETE


def _upsert_statement(dialect_name: str, enrollment_id: str, module_id: str, completion_percentage: float):
    """Build INSERT ... ON CONFLICT (enrollment_id, module_id) DO UPDATE."""
    try:
        insert = _INSERTS[dialect_name]
    except KeyError:
        raise ValueError(
            f"Progress upsert needs one of {sorted(_INSERTS)}, got {dialect_name!r}"
        )

    now = utcnow()
    statement = insert(Progress).values(
        id=uuid7str(),
        enrollment_id=enrollment_id,
        module_id=module_id,
        completion_percentage=completion_percentage,
        is_completed=is_complete(completion_percentage),
        created_at=now,
        updated_at=now,
    )
    return statement.on_conflict_do_update(
        index_elements=["enrollment_id", "module_id"],
        set_={
            "completion_percentage": statement.excluded.completion_percentage,
            "is_completed": statement.excluded.is_completed,
            "updated_at": statement.excluded.updated_at,
        },
    )


async def _get_progress(enrollment_id: str, module_id: str, session: AsyncSession) -> Progress | None:
    statement = (
        select(Progress)
        .where(Progress.enrollment_id == enrollment_id, Progress.module_id == module_id)
        .execution_options(populate_existing=True)
    )
    return (await session.exec(statement)).first()


async def update_progress(
    enrollment_id: str,
    module_id: str,
    completion_percentage: float,
    student_id: str,
    session: AsyncSession,
) -> ProgressPublic:
    """Record the student's completion of one module.

    Creates the progress row when it does not exist yet (modules added
    after enrollment), updates it otherwise. The write is a single
    upsert on the (enrollment_id, module_id) unique constraint, so
    concurrent reports never produce two rows.

    :param enrollment_id: The ID of the enrollment.
    :param module_id: The ID of the module, not checked against the course.
    :param completion_percentage: Reported completion, clamped to [0, 100].
    :param student_id: The ID of the authenticated student.
    :param session: The database session.
    :return: The resulting progress row.
    :raises HTTPException: 404 if the enrollment is not the student's,
        or the module does not exist.
    """
    enrollment = await get_owned_enrollment(enrollment_id, student_id, session)

    percentage = clamp_percentage(completion_percentage)
    if percentage != completion_percentage:
        logger.warning(
            "Clamped completion %s to %s for enrollment %s module %s",
            completion_percentage,
            percentage,
            enrollment.id,
            module_id,
        )

    dialect_name = (await session.connection()).dialect.name
    statement = _upsert_statement(dialect_name, enrollment.id, module_id, percentage)
    try:
        async with session.begin_nested():
            await session.exec(statement)
    except IntegrityError:
        # only the module foreign key can fail here
        raise HTTPException(status_code=404, detail="Module not found")

    progress = await _get_progress(enrollment.id, module_id, session)
    logger.debug(
        "Progress of enrollment %s on module %s is now %s",
        enrollment.id,
        module_id,
        progress.completion_percentage,
    )
    return ProgressPublic.model_validate(progress)


async def get_module_progress(
    enrollment_id: str,
    module_id: str,
    student_id: str,
    session: AsyncSession,
) -> ProgressPublic:
    """Read the progress row of one module. Never creates it.

    :param enrollment_id: The ID of the enrollment.
    :param module_id: The ID of the module.
    :param student_id: The ID of the authenticated student.
    :param session: The database session.
    :return: The progress row.
    :raises HTTPException: 404 if the enrollment is not the student's or no row exists.
    """
    enrollment = await get_owned_enrollment(enrollment_id, student_id, session)

    progress = await _get_progress(enrollment.id, module_id, session)
    if not progress:
        raise HTTPException(status_code=404, detail="Progress not found")
    return ProgressPublic.model_validate(progress)
