from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from coursehub.core import security
from coursehub.core.config import settings
from coursehub.core.db import async_engine
from coursehub.core.permissions import require_role
from coursehub.models import TokenPayload, User, UserRole

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token"
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session and one transaction per request.

    Handlers only flush; the transaction is committed once the handler
    returns, before the response is sent, and rolled back if it raises.
    """
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


SessionDep = Annotated[AsyncSession, Depends(get_db, scope="function")]
TokenDep = Annotated[str, Depends(reusable_oauth2)]


async def get_current_user(session: SessionDep, token: TokenDep) -> User:
    try:
        payload = security.decode_access_token(token)
        token_data = TokenPayload(**payload)
    except (InvalidTokenError, ValidationError):
        token_data = TokenPayload()
    if not token_data.sub:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )
    user = await session.get(User, token_data.sub)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_current_student(current_user: CurrentUser) -> User:
    return require_role(current_user, UserRole.STUDENT)


def get_current_instructor(current_user: CurrentUser) -> User:
    return require_role(current_user, UserRole.INSTRUCTOR)


CurrentStudent = Annotated[User, Depends(get_current_student)]
CurrentInstructor = Annotated[User, Depends(get_current_instructor)]
