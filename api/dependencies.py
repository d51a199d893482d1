"""FastAPI dependencies for dependency injection."""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status

from core.middleware.authentication import get_current_principal
from core.middleware.authorization import require_roles
from core.scoping import Principal
from database.engine import get_db
from database.models.users import User, UserRole

__all__ = [
    "get_db",
    "get_optional_user",
    "require_authenticated_user",
    "require_principal",
    "require_admin",
    "require_manager_or_admin",
]


async def get_optional_user(request: Request) -> Optional[User]:
    """
    Get current user if authenticated, otherwise return None.
    Useful for endpoints that work both authenticated and unauthenticated.
    """
    return request.scope.get("user")


async def require_authenticated_user(
    current_user: Optional[User] = Depends(get_optional_user),
) -> User:
    """Require user to be authenticated."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


async def require_principal(
    request: Request,
    current_user: User = Depends(require_authenticated_user),
) -> Principal:
    """The caller's decoded role and scope."""
    return get_current_principal(request)


require_admin = require_roles(UserRole.ADMIN)

require_manager_or_admin = require_roles(UserRole.ADMIN, UserRole.HIRING_MANAGER)
