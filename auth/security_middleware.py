"""Security middleware for FastAPI - resolves the signed-in user per request."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from auth.authorization import AuthGate

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the bearer token into request.state.user.

    For every non-public route:
    1. Reads the configured authorization header
    2. Validates the session and hydrates the user via AuthGate
    3. Sets request.state.user (None when unauthenticated)

    The middleware never rejects a request; handlers decide with
    require_role, so each route picks its own narrowest role list.
    The user is resolved fresh on every request.
    """

    PUBLIC_PATHS = [
        "/auth/request-link",
        "/auth/verify",
        "/invitation/",
        "/dev/",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, gate: AuthGate):
        super().__init__(app)
        self._gate = gate

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        request.state.user = None

        if not self._is_public_path(request.url.path):
            request.state.user = self._gate.resolve_request(request)
            if request.state.user is None:
                logger.debug(f"Unauthenticated request to {request.url.path}")

        return await call_next(request)
