from typing import Any

from fastapi import APIRouter

from coursehub.api.deps import CurrentUser, SessionDep
from coursehub.core.progress import get_module_progress, update_progress
from coursehub.models import ProgressPublic, ProgressUpdate

router = APIRouter(prefix="/progress", tags=["progress"])


@router.patch("/{enrollment_id}/modules/{module_id}", response_model=ProgressPublic)
async def update_progress_route(
    session: SessionDep,
    current_user: CurrentUser,
    enrollment_id: str,
    module_id: str,
    progress_in: ProgressUpdate,
) -> Any:
    """
    Report completion of a module. Creates the progress row if needed.
    """
    return await update_progress(
        enrollment_id=enrollment_id,
        module_id=module_id,
        completion_percentage=progress_in.completion_percentage,
        student_id=current_user.id,
        session=session,
    )


@router.get("/{enrollment_id}/modules/{module_id}", response_model=ProgressPublic)
async def read_progress_route(
    session: SessionDep,
    current_user: CurrentUser,
    enrollment_id: str,
    module_id: str,
) -> Any:
    return await get_module_progress(
        enrollment_id=enrollment_id,
        module_id=module_id,
        student_id=current_user.id,
        session=session,
    )
