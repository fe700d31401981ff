from typing import Any

from fastapi import APIRouter, HTTPException, status

from coursehub import crud
from coursehub.api.deps import CurrentUser, SessionDep
from coursehub.models import UserCreate, UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/signup", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register_user(session: SessionDep, user_in: UserCreate) -> Any:
    """
    Create a new user without the need to be logged in.
    The role is chosen at registration and cannot change afterwards.
    """
    user = await crud.get_user_by_email(session=session, email=user_in.email)
    if user:
        raise HTTPException(status_code=409, detail="Email already exists")
    user = await crud.create_user(session=session, user_create=user_in)
    return user


@router.get("/me", response_model=UserPublic)
async def read_user_me(current_user: CurrentUser) -> Any:
    """
    Get current user.
    """
    return current_user
