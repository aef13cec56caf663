"""
Request identity helpers for FastAPI endpoints.
"""

from fastapi import Request

from .exceptions import AuthenticationError


def get_user_id(request: Request) -> str:
    """
    Dependency returning the user id set by ``AuthMiddleware``.

    Raises:
        AuthenticationError: request reached a protected route unauthenticated
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationError("Authentication token required")
    return user_id
