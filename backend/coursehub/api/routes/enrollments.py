"""
Enrollments only accessible by the enrolled student
"""
from typing import Any

from fastapi import APIRouter, status

from coursehub.api.deps import CurrentStudent, CurrentUser, SessionDep
from coursehub.core.enrollment import (
    enroll,
    get_enrollment_progress,
    list_enrollments,
)
from coursehub.models import (
    EnrollmentProgressPublic,
    EnrollmentPublic,
)

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post(
    "/courses/{course_id}",
    response_model=EnrollmentPublic,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_route(
    session: SessionDep,
    current_user: CurrentStudent,
    course_id: str,
) -> Any:
    """
    Enroll the current student in a published course.
    """
    return await enroll(student_id=current_user.id, course_id=course_id, session=session)


# more specific endpoints go first
@router.get("/my-courses", response_model=list[EnrollmentPublic])
async def read_my_enrollments_route(
    session: SessionDep,
    current_user: CurrentStudent,
) -> Any:
    """
    All enrollments of the current student, most recent first.
    """
    return await list_enrollments(student_id=current_user.id, session=session)


@router.get("/{id}/progress", response_model=EnrollmentProgressPublic)
async def read_enrollment_progress_route(
    session: SessionDep,
    current_user: CurrentUser,
    id: str,
) -> Any:
    """
    Aggregate completion of one of the current user's enrollments.
    """
    return await get_enrollment_progress(
        enrollment_id=id, student_id=current_user.id, session=session
    )
