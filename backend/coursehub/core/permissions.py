"""
Ownership and role checks.

Every mutating operation calls one of these explicitly with the resolved
caller before touching data.
"""
from fastapi import HTTPException

from coursehub.models import Course, User, UserRole


def is_owner(caller_id: str, owner_id: str) -> bool:
    """Allow/deny decision for ownership of a single entity.

    :param caller_id: id of the authenticated user.
    :param owner_id: owner field of the target entity.
    :return: True when the caller owns the entity.
    """
    return caller_id == owner_id


def require_role(user: User, role: UserRole) -> User:
    """Raise 403 unless the user has the given role."""
    if user.role != role:
        raise HTTPException(
            status_code=403,
            detail=f"Only {role.value}s can perform this action",
        )
    return user


def require_course_owner(course: Course, user: User, action: str) -> None:
    """Raise 403 unless the user is the instructor who owns the course.

    :param course: The course about to be changed.
    :param user: The authenticated caller.
    :param action: Verb used in the error message, e.g. "update".
    """
    if not is_owner(user.id, course.instructor_id):
        raise HTTPException(
            status_code=403,
            detail=f"You can only {action} your own courses",
        )
