"""Request authentication and role-based access checks.

Handlers resolve the caller first, then call `require_role` with the
narrowest role list they need. Admins pass every role check. Operations on
company-owned resources additionally call `require_same_company`.

Guards return an error response to short-circuit with, or None to proceed.
"""

import logging
from typing import Iterable

from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.config import AuthConfig
from auth.directory import UserDirectory, is_inactive
from auth.exceptions import SessionExpiredError
from auth.session import SessionManager
from auth.types import AuthenticatedUser, CompanyUserRecord, UserType

logger = logging.getLogger(__name__)


def parse_bearer(header: str | None) -> str | None:
    """Token from a 'Bearer <token>' header value.

    The value must be exactly two whitespace-separated parts; the scheme is
    case-insensitive. Anything else yields None.
    """
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class AuthGate:
    """Resolves the signed-in user behind a bearer token."""

    def __init__(
        self,
        session_manager: SessionManager,
        directory: UserDirectory,
        config: AuthConfig,
    ):
        self._session_manager = session_manager
        self._directory = directory
        self._config = config

    def resolve(self, header: str | None) -> AuthenticatedUser | None:
        """Authenticated user for an authorization header value, or None.

        None when the header is missing or malformed, the session is unknown
        or expired, no record owns the session's email any more, or that
        record is deactivated.
        """
        token = parse_bearer(header)
        if token is None:
            return None

        try:
            session = self._session_manager.validate_session(token)
        except SessionExpiredError:
            return None

        match = self._directory.find_by_email(session.email)
        if match is None:
            logger.warning(f"Session for {session.user_id} has no owning record")
            return None
        if is_inactive(match):
            logger.info(f"Session for deactivated user {match.id} refused")
            return None

        record = match.record
        role = session.user_type
        if isinstance(record, CompanyUserRecord) and record.role is not None:
            role = record.role

        return AuthenticatedUser(
            id=record.id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            role=role,
            company_id=match.company_id,
            user_type=session.user_type,
        )

    def resolve_request(self, request: Request) -> AuthenticatedUser | None:
        return self.resolve(request.headers.get(self._config.auth_header_name))


def _reject(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
    )


def require_role(
    user: AuthenticatedUser | None,
    allowed_roles: Iterable[UserType],
) -> JSONResponse | None:
    """401 without a user, 403 for a role outside allowed_roles.

    Admins always pass.
    """
    if user is None:
        return _reject(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required.")

    if user.role is UserType.ADMIN:
        return None

    if user.role not in set(allowed_roles):
        return _reject(
            403,
            ErrorCodes.FORBIDDEN,
            "You do not have permission to perform this action.",
        )

    return None


def require_same_company(
    user: AuthenticatedUser | None,
    company_id: str,
) -> JSONResponse | None:
    """Tenant scoping: non-admins may only act within their own company."""
    if user is None:
        return _reject(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required.")

    if user.role is UserType.ADMIN:
        return None

    if not company_id or user.company_id != company_id:
        return _reject(
            403,
            ErrorCodes.FORBIDDEN,
            "You can only manage users in your own company.",
        )

    return None


def require_admin(user: AuthenticatedUser | None) -> JSONResponse | None:
    return require_role(user, [UserType.ADMIN])


def require_manager(user: AuthenticatedUser | None) -> JSONResponse | None:
    return require_role(user, [UserType.MANAGER])
