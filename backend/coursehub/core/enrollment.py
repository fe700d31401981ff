import logging
from decimal import Decimal, ROUND_HALF_UP

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub import crud
from coursehub.core.permissions import is_owner
from coursehub.models import (
    Course,
    Enrollment,
    EnrollmentProgressPublic,
    EnrollmentPublic,
    Module,
    Progress,
)

logger = logging.getLogger(__name__)


def _enrollment_statement():
    """Select enrollments with everything EnrollmentPublic renders, refreshed from the db."""
    return (
        select(Enrollment)
        .options(
            selectinload(Enrollment.course).selectinload(Course.modules),
            selectinload(Enrollment.course).selectinload(Course.instructor),
            selectinload(Enrollment.progress),
        )
        .execution_options(populate_existing=True)
    )


async def get_owned_enrollment(
    enrollment_id: str,
    student_id: str,
    session: AsyncSession,
) -> Enrollment:
    """Load an enrollment that belongs to the student.

    Enrollments of other students are reported exactly like missing ones.

    :param enrollment_id: The ID of the enrollment.
    :param student_id: The ID of the authenticated student.
    :param session: The database session.
    :return: The Enrollment with course, modules and progress loaded.
    :raises HTTPException: 404 if absent or owned by someone else.
    """
    statement = _enrollment_statement().where(Enrollment.id == enrollment_id)
    enrollment = (await session.exec(statement)).first()
    if not enrollment or not is_owner(student_id, enrollment.student_id):
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return enrollment


async def _find_enrollment(student_id: str, course_id: str, session: AsyncSession) -> Enrollment | None:
    statement = select(Enrollment).where(
        Enrollment.student_id == student_id, Enrollment.course_id == course_id
    )
    return (await session.exec(statement)).first()


async def enroll(
    student_id: str,
    course_id: str,
    session: AsyncSession,
) -> EnrollmentPublic:
    """Enroll a student in a published course.

    The enrollment row and one progress row per current module are written
    inside one savepoint. A duplicate enrollment is detected by the unique
    constraint on (student_id, course_id) at insert time, which also covers
    two requests racing for the same pair.

    :param student_id: The ID of the student.
    :param course_id: The ID of the course.
    :param session: The database session.
    :return: The new enrollment with its course, modules and progress.
    :raises HTTPException: 404 if the course is missing or unpublished,
        409 if the student is already enrolled.
    :raises IntegrityError: if the course or one of its modules was deleted
        concurrently. Neither the enrollment nor any progress row is kept.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    # drafts are reported as missing so their existence does not leak
    if not course or not course.is_published:
        raise HTTPException(status_code=404, detail="Course not found")

    modules = await crud.list_modules(session=session, course_id=course_id)

    try:
        async with session.begin_nested():
            enrollment = Enrollment(student_id=student_id, course_id=course_id)
            session.add(enrollment)
            await session.flush()

            session.add_all(
                [
                    Progress(
                        enrollment_id=enrollment.id,
                        module_id=module.id,
                        is_completed=False,
                        completion_percentage=0.0,
                    )
                    for module in modules
                ]
            )
            await session.flush()
    except IntegrityError:
        # the savepoint is gone, so an existing row is the unique constraint winner
        if await _find_enrollment(student_id, course_id, session):
            logger.info(
                "Student %s is already enrolled in course %s", student_id, course_id
            )
            raise HTTPException(status_code=409, detail="Already enrolled in this course")
        logger.warning(
            "Enrollment of student %s in course %s rolled back, the course changed meanwhile",
            student_id,
            course_id,
        )
        raise

    enrollment_id = enrollment.id
    logger.info(
        "Enrolled student %s in course %s with %d progress rows",
        student_id,
        course_id,
        len(modules),
    )

    statement = _enrollment_statement().where(Enrollment.id == enrollment_id)
    created = (await session.exec(statement)).one()
    return EnrollmentPublic.from_db(created)


async def list_enrollments(
    student_id: str,
    session: AsyncSession,
) -> list[EnrollmentPublic]:
    """Retrieve all enrollments of a student, most recent first.

    :param student_id: The ID of the student.
    :param session: The database session.
    :return: A list of EnrollmentPublic objects.
    """
    statement = (
        _enrollment_statement()
        .where(Enrollment.student_id == student_id)
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
    )
    enrollments = (await session.exec(statement)).all()
    return [EnrollmentPublic.from_db(enrollment) for enrollment in enrollments]


def overall_progress(completed_modules: int, total_modules: int) -> int:
    """Percentage of completed modules, rounded half up to an integer.

    :param completed_modules: Number of completed modules.
    :param total_modules: Number of modules in the course.
    :return: 0 for a course without modules.
    """
    if total_modules <= 0:
        return 0
    ratio = Decimal(completed_modules * 100) / Decimal(total_modules)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def get_enrollment_progress(
    enrollment_id: str,
    student_id: str,
    session: AsyncSession,
) -> EnrollmentProgressPublic:
    """Compute the aggregate completion of an enrollment.

    The total counts the modules the course has now, not the progress rows,
    so modules added after enrollment lower the percentage until the
    student reports progress on them.

    :param enrollment_id: The ID of the enrollment.
    :param student_id: The ID of the authenticated student.
    :param session: The database session.
    :return: EnrollmentProgressPublic with the counts and percentage.
    """
    enrollment = await get_owned_enrollment(enrollment_id, student_id, session)

    total_statement = (
        select(func.count())
        .select_from(Module)
        .where(Module.course_id == enrollment.course_id)
    )
    total_modules = (await session.exec(total_statement)).one()

    completed_statement = (
        select(func.count())
        .select_from(Progress)
        .where(Progress.enrollment_id == enrollment.id, Progress.is_completed == True)  # noqa: E712
    )
    completed_modules = (await session.exec(completed_statement)).one()

    return EnrollmentProgressPublic(
        enrollment=EnrollmentPublic.from_db(enrollment),
        overall_progress=overall_progress(completed_modules, total_modules),
        completed_modules=completed_modules,
        total_modules=total_modules,
    )
