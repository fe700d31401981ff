from fastapi import APIRouter, HTTPException, status

from coursehub import crud
from coursehub.api.deps import CurrentInstructor, SessionDep
from coursehub.core.permissions import require_course_owner
from coursehub.models import (
    Course,
    Message,
    Module,
    ModuleCreate,
    ModulePublic,
    ModulesPublic,
    ModuleUpdate,
    User,
    utcnow,
)


router = APIRouter(prefix="/courses", tags=["modules"])


async def _get_owned_module(session: SessionDep, module_id: str, user: User, action: str) -> Module:
    """Load a module and check that the caller owns its course."""
    module = await session.get(Module, module_id)
    if not module:
        raise HTTPException(status_code=404, detail="Module not found")
    course = await session.get(Course, module.course_id)
    require_course_owner(course, user, action)
    return module


@router.get("/{course_id}/modules", response_model=ModulesPublic)
async def read_modules_route(session: SessionDep, course_id: str):
    """
    Modules of a course, sorted by their order.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    modules = await crud.list_modules(session=session, course_id=course_id)
    return ModulesPublic(
        data=[ModulePublic.model_validate(module) for module in modules],
        count=len(modules),
    )


@router.post(
    "/{course_id}/modules",
    response_model=ModulePublic,
    status_code=status.HTTP_201_CREATED,
)
async def create_module_route(
    session: SessionDep,
    current_user: CurrentInstructor,
    course_id: str,
    module_in: ModuleCreate,
):
    """
    Add a module to a course. Only the owning instructor can do it.
    Existing enrollments get a progress row for it when the student first reports progress.
    """
    course = await crud.get_course(session=session, course_id=course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    require_course_owner(course, current_user, "add modules to")

    module = Module(**module_in.model_dump(mode="json"), course_id=course.id)
    session.add(module)
    await session.flush()
    await session.refresh(module)

    return ModulePublic.model_validate(module)


@router.patch("/modules/{module_id}", response_model=ModulePublic)
async def update_module_route(
    session: SessionDep,
    current_user: CurrentInstructor,
    module_id: str,
    module_in: ModuleUpdate,
):
    module = await _get_owned_module(session, module_id, current_user, "update modules in")

    module_data = module_in.model_dump(mode="json", exclude_unset=True)
    for key, value in module_data.items():
        setattr(module, key, value)
    module.updated_at = utcnow()

    session.add(module)
    await session.flush()
    await session.refresh(module)

    return ModulePublic.model_validate(module)


@router.delete("/modules/{module_id}", response_model=Message)
async def delete_module_route(
    session: SessionDep,
    current_user: CurrentInstructor,
    module_id: str,
):
    """
    Delete a module. Progress rows on it are removed by the database.
    """
    module = await _get_owned_module(session, module_id, current_user, "delete modules from")

    await session.delete(module)
    await session.flush()

    return Message(message="Module deleted successfully")
