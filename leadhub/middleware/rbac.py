"""
Role-Based Access Control (RBAC) decorators for the Leadhub backend.
Enforces role-based permissions on protected endpoints.

Leadhub uses 2 roles:
- admin: Marketplace operators (assignment, cancellation decisions)
- partner: Service partners (accept/reject leads, request cancellation)
"""
import inspect
from functools import wraps
from typing import List
from fastapi import Request, HTTPException
from leadhub.obs.logging import get_logger

logger = get_logger(__name__)

ROLE_ADMIN = "admin"
ROLE_PARTNER = "partner"

VALID_ROLES = {ROLE_ADMIN, ROLE_PARTNER}

# Role hierarchy for permission inheritance
ROLE_HIERARCHY = {
    ROLE_ADMIN: [ROLE_ADMIN, ROLE_PARTNER],  # Admin can act on behalf of partners
    ROLE_PARTNER: [ROLE_PARTNER],
}

# Old dashboard role names
ROLE_ALIASES = {
    "superadmin": ROLE_ADMIN,
    "super_admin": ROLE_ADMIN,
}


class RBACError(HTTPException):
    """Custom exception for RBAC violations."""

    def __init__(self, required_roles: List[str], user_role: str):
        detail = f"Access denied. Required roles: {', '.join(required_roles)}. User role: {user_role}"
        super().__init__(status_code=403, detail=detail)
        logger.warning(f"RBAC violation: {detail}")


def _check_role(allowed_roles, args, kwargs):
    request = None
    for arg in args:
        if isinstance(arg, Request):
            request = arg
            break
    if not request:
        request = kwargs.get('request')

    if not request:
        logger.error("RBAC decorator: Request object not found in function arguments")
        raise HTTPException(
            status_code=500,
            detail="Internal error: Request object not available for RBAC check"
        )

    user_role = getattr(request.state, 'user_role', None)
    user_id = getattr(request.state, 'user_id', None)

    if not user_role or not user_id:
        logger.warning(f"RBAC check failed: actor not found in request state for user {user_id}")
        raise HTTPException(
            status_code=401,
            detail="Authentication required: user role not found"
        )

    normalized_user_role = ROLE_ALIASES.get(user_role, user_role)
    user_allowed_roles = ROLE_HIERARCHY.get(normalized_user_role, [normalized_user_role])
    normalized_allowed_roles = {ROLE_ALIASES.get(role, role) for role in allowed_roles}

    if not any(role in normalized_allowed_roles for role in user_allowed_roles):
        logger.warning(
            f"RBAC violation: user {user_id} (role: {user_role}) "
            f"attempted to access endpoint requiring roles: {allowed_roles}"
        )
        raise RBACError(list(allowed_roles), user_role)


def require_role(*allowed_roles: str):
    """
    Decorator to enforce role-based access control on endpoints.

    Works on both ``async def`` and plain ``def`` endpoints; plain ones keep
    running in FastAPI's threadpool.

    Usage:
        @router.post("/leads/{lead_id}/assignments")
        @require_role("admin")
        def commit_assignment(request: Request, ...):
            ...

    Raises:
        HTTPException: 403 if user's role is not in allowed_roles
        HTTPException: 401 if user_role is not found in request state
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                _check_role(allowed_roles, args, kwargs)
                return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            _check_role(allowed_roles, args, kwargs)
            return func(*args, **kwargs)
        return wrapper
    return decorator


def is_admin(request: Request) -> bool:
    role = getattr(request.state, 'user_role', None)
    return ROLE_ALIASES.get(role, role) == ROLE_ADMIN
