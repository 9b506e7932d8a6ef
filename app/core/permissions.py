from fastapi import Depends, HTTPException, status

from app.core.current_user import get_current_user
from app.models.user import STAFF_ROLES, User


def require_staff(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Instructor or director role required",
        )
    return current_user


def require_director(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "director":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Director role required",
        )
    return current_user
