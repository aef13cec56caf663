"""
Authentication middleware for JWT token validation.
"""

from typing import Optional, Tuple

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..core.config import get_settings

logger = structlog.get_logger(__name__)

ERROR_MESSAGES = {
    "token_expired": "Token has expired",
    "token_invalid": "Invalid token",
    "token_missing": "Authentication token required",
}


class AuthMiddleware(BaseHTTPMiddleware):
    """JWT authentication middleware."""

    # Public endpoints that don't require authentication
    PUBLIC_PATHS = {
        "/api/health",
        "/api/mcp/tools",
        "/api/media/callback",  # checked against memories_callback_token
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.settings = get_settings()

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request and validate JWT token if required."""

        # Skip authentication for public endpoints and preflight requests
        if request.method == "OPTIONS" or request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        token = self._extract_token(request)
        if not token:
            logger.warning("Missing authentication token", path=request.url.path)
            return self._unauthorized_response("token_missing")

        payload, error_code = self._validate_token(token)
        if payload is None:
            logger.warning("Invalid JWT token", path=request.url.path, code=error_code)
            return self._unauthorized_response(error_code)

        user_id = payload.get("sub") or payload.get("user_id")
        if not user_id:
            logger.warning("JWT token without subject", path=request.url.path)
            return self._unauthorized_response("token_invalid")

        # Add user context to request
        request.state.user_id = user_id
        request.state.authenticated = True
        request.state.user_claims = payload

        logger.debug("Authenticated request", user_id=user_id, path=request.url.path)

        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> Optional[str]:
        """Extract JWT token from Authorization header."""
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        try:
            scheme, token = auth_header.split()
        except ValueError:
            return None
        if scheme.lower() != "bearer":
            return None
        return token

    def _validate_token(self, token: str) -> Tuple[Optional[dict], str]:
        """Validate JWT token and return (payload, error code)."""
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                options={"verify_exp": True},
            )
            return payload, ""
        except ExpiredSignatureError:
            logger.warning("JWT token expired")
            return None, "token_expired"
        except JWTError as exc:
            logger.warning("JWT token validation failed", error=str(exc))
            return None, "token_invalid"

    @staticmethod
    def _unauthorized_response(code: str) -> JSONResponse:
        """Return standardized unauthorized response with error codes."""
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "code": code,
                "message": ERROR_MESSAGES.get(code, "Not authenticated"),
            },
        )
