from fastapi import APIRouter, HTTPException, status
from sqlalchemy.orm import selectinload
from sqlmodel import select, func

from coursehub import crud
from coursehub.api.deps import CurrentInstructor, SessionDep
from coursehub.core.permissions import require_course_owner
from coursehub.models import (
    Course,
    CourseCreate,
    CoursePublic,
    CoursesPublic,
    CourseUpdate,
    Message,
    utcnow,
)


router = APIRouter(prefix="/courses", tags=["courses"])


def _courses_statement():
    return (
        select(Course)
        .options(selectinload(Course.instructor), selectinload(Course.modules))
        .order_by(Course.created_at.desc(), Course.id.desc())
        .execution_options(populate_existing=True)
    )


@router.post("/", response_model=CoursePublic, status_code=status.HTTP_201_CREATED)
async def create_course_route(
    *,
    session: SessionDep,
    current_user: CurrentInstructor,
    course_in: CourseCreate,
):
    """
    Create a course owned by the current instructor.
    Modules are added afterwards through /courses/{course_id}/modules.
    """
    course = Course.model_validate(course_in, update={"instructor_id": current_user.id})
    session.add(course)
    await session.flush()

    course = await crud.get_course(session=session, course_id=course.id)
    return CoursePublic.from_db(course)


@router.get("/", response_model=CoursesPublic)
async def read_courses_route(
    session: SessionDep,
    published: bool = False,
    skip: int = 0,
    limit: int = 10,
):
    """
    Public catalog, newest first.
    With published=true drafts are left out.
    """
    statement = _courses_statement()
    count_statement = select(func.count()).select_from(Course)
    if published:
        statement = statement.where(Course.is_published == True)  # noqa: E712
        count_statement = count_statement.where(Course.is_published == True)  # noqa: E712

    courses = (await session.exec(statement.offset(skip).limit(limit))).all()
    total_count = (await session.exec(count_statement)).one()
    courses_public = [CoursePublic.from_db(course) for course in courses]
    return CoursesPublic(data=courses_public, count=total_count)


# /mine has to be declared before /{course_id}
@router.get("/mine", response_model=CoursesPublic)
async def read_my_courses_route(
    session: SessionDep,
    current_user: CurrentInstructor,
):
    """
    Courses of the current instructor, drafts included.
    """
    statement = _courses_statement().where(Course.instructor_id == current_user.id)
    courses = (await session.exec(statement)).all()
    return CoursesPublic(
        data=[CoursePublic.from_db(course) for course in courses],
        count=len(courses),
    )


@router.get("/{course_id}", response_model=CoursePublic)
async def read_course_route(
    course_id: str,
    session: SessionDep,
):
    """
    Get a specific course by ID, with its instructor and modules.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return CoursePublic.from_db(course)


@router.patch("/{course_id}", response_model=CoursePublic)
async def update_course_route(
    *,
    session: SessionDep,
    current_user: CurrentInstructor,
    course_id: str,
    course_in: CourseUpdate,
):
    """
    Update a course.
    Only the owning instructor can update it. Unpublishing keeps existing enrollments.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    require_course_owner(course, current_user, "update")

    update_dict = course_in.model_dump(exclude_unset=True)
    course.sqlmodel_update(update_dict)
    course.updated_at = utcnow()
    session.add(course)
    await session.flush()

    course = await crud.get_course(session=session, course_id=course_id)
    return CoursePublic.from_db(course)


@router.delete("/{course_id}", response_model=Message)
async def delete_course_route(
    *,
    session: SessionDep,
    current_user: CurrentInstructor,
    course_id: str,
):
    """
    Delete a course by ID.
    Only the owning instructor can delete it. Modules, enrollments and
    progress go with it through ON DELETE CASCADE.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    require_course_owner(course, current_user, "delete")

    await session.delete(course)
    await session.flush()
    return Message(message="Course deleted successfully")
