from fastapi import Depends, HTTPException, status

from lms.auth.dependencies import get_current_user
from lms.auth.schemas import CurrentUser
from lms.core.enums import UserRole


def require_roles(*roles: UserRole):
    """
    Dependency factory to restrict an endpoint to the given roles.

    Example:
        Depends(require_roles(UserRole.ADMIN, UserRole.TEACHER))
    """
    allowed = {r.value for r in roles}

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


require_admin = require_roles(UserRole.ADMIN)
