"""
Common dependencies for route handlers.
"""
from typing import Optional
from fastapi import Depends, Request, HTTPException

from consultdesk.auth import validate_session, deserialize_session
from consultdesk.config import SESSION_COOKIE_NAME
from consultdesk import roles


def get_current_user(request: Request) -> Optional[dict]:
    """
    Get the current logged-in user from session cookie.
    Returns user dict or None if not authenticated.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    session_id = deserialize_session(token)
    if not session_id:
        return None

    return validate_session(session_id)


def require_auth(request: Request) -> dict:
    """
    Dependency that requires authentication.
    Raises HTTPException 401 if not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_role(*allowed_roles):
    """
    Dependency factory: authenticated user holding one of allowed_roles.
    Raises 403 for any other role.
    """
    def dependency(user: dict = Depends(require_auth)) -> dict:
        if not roles.has_any_role(user, allowed_roles):
            raise HTTPException(status_code=403, detail="Access denied")
        return user
    return dependency


require_admin = require_role(roles.ROLE_ADMIN)
require_staff = require_role(roles.ROLE_EMPLOYEE, roles.ROLE_MANAGER)
require_customer = require_role(roles.ROLE_CUSTOMER)


def has_permission(user: dict, permission: str) -> bool:
    """Check if user has a specific permission."""
    return roles.has_permission(user, permission)
