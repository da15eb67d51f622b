"""
Admin route dependencies
"""
from fastapi import HTTPException, status, Depends

from app.db.models import Profile, UserRole
from app.routes.auth import get_current_user


def require_admin(current_user: Profile = Depends(get_current_user)) -> Profile:
    """
    Dependency to require admin privileges

    Raises:
        HTTPException: 403 if the authenticated user is not an admin
    """
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
