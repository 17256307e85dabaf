"""HTTP routes for authentication, invitations and dev login.

Services raise AuthError subclasses; the app's exception handlers turn them
into error envelopes. Role and tenant guards short-circuit with their own
responses.
"""

import ipaddress
import logging
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.base import success_response
from auth.config import AuthConfig
from auth.authorization import require_admin, require_manager, require_role, require_same_company
from auth.exceptions import InvitationAlreadyProcessedError, InvitationExpiredError
from auth.invitations import InvitationService
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.types import (
    AuthenticatedUser,
    DevLoginRequest,
    Invitation,
    InvitationStatus,
    MagicLinkRequest,
    SendInvitationRequest,
    UserType,
    VerifyMagicLinkRequest,
)
from clients.email_client import EmailGatewayError

logger = logging.getLogger(__name__)

ALL_ROLES = (UserType.ADMIN, UserType.MANAGER, UserType.EMPLOYEE)


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _current_user(request: Request) -> AuthenticatedUser | None:
    return getattr(request.state, "user", None)


def _ok(request: Request, data) -> dict:
    request_id = getattr(request.state, "request_id", None)
    return success_response(data, request_id).model_dump(mode="json")


def _sent_invitation(invitation: Invitation) -> dict:
    # The token only ever travels by email.
    return {
        "invitation_id": invitation.id,
        "user_id": invitation.user_id,
        "invited_email": invitation.invited_email,
        "status": invitation.status.value,
        "expires_at": invitation.expires_at.isoformat(),
    }


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service. Mounted under /auth."""
    router = APIRouter(tags=["auth"])

    @router.post("/request-link")
    async def request_magic_link(request: Request, body: MagicLinkRequest):
        """Request magic link email.

        Always answers the same way so the response never reveals whether
        the email belongs to an account.
        """
        try:
            auth_service.request_magic_link(
                email=str(body.email),
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except EmailGatewayError as e:
            logger.error(f"Magic link email failed: {e}")

        return _ok(
            request,
            {"message": "If an account exists for this email, a login link has been sent."},
        )

    @router.post("/verify")
    async def verify_magic_link(request: Request, body: VerifyMagicLinkRequest):
        """Exchange magic link token for a session token and profile."""
        result = auth_service.verify_magic_link(
            token=body.token,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return _ok(request, result.model_dump(mode="json"))

    @router.get("/me")
    async def get_current_user(request: Request):
        """Profile of the signed-in user."""
        user = _current_user(request)
        denied = require_role(user, ALL_ROLES)
        if denied is not None:
            return denied

        return _ok(request, auth_service.get_profile(user).model_dump(mode="json"))

    return router


def create_invitation_router(
    invitation_service: InvitationService,
    security_logger: SecurityLogger,
) -> APIRouter:
    """Invitation preview/accept (public) and issue (manager, admin) routes."""
    router = APIRouter(tags=["invitations"])

    def guard(
        request: Request,
        check: Callable[[AuthenticatedUser | None], JSONResponse | None],
        company_id: str | None = None,
    ):
        user = _current_user(request)
        denied = check(user)
        if denied is None and company_id is not None:
            denied = require_same_company(user, company_id)

        if denied is not None and user is not None:
            security_logger.log(
                SecurityEvent.ACCESS_DENIED,
                email=user.email,
                user_id=user.id,
                ip_address=_get_client_ip(request),
                details={"path": request.url.path, "role": user.role.value},
            )
        return denied

    @router.get("/invitation/{token}")
    async def validate_invitation(request: Request, token: str):
        """Preview a pending invitation before acceptance."""
        preview = invitation_service.validate(token)

        if preview.status is InvitationStatus.EXPIRED:
            raise InvitationExpiredError()
        if preview.status is not InvitationStatus.PENDING:
            raise InvitationAlreadyProcessedError(preview.status.value)

        return _ok(request, preview.model_dump(mode="json"))

    @router.post("/invitation/{token}/accept")
    async def accept_invitation(request: Request, token: str):
        """Accept an invitation; the token is the credential."""
        accepted = invitation_service.accept(token)
        return _ok(request, accepted.model_dump(mode="json"))

    @router.post("/manager/employees/{employee_id}/invite")
    async def invite_employee(request: Request, employee_id: str, body: SendInvitationRequest):
        """Manager invites an employee of their own company."""
        denied = guard(request, require_manager, company_id=body.company_id)
        if denied is not None:
            return denied

        invitation = invitation_service.invite_company_user(
            user_id=employee_id,
            company_id=body.company_id,
            invited_email=str(body.invited_email),
            user_type=UserType.EMPLOYEE,
            sent_by_user_id=_current_user(request).id,
        )
        return _ok(request, _sent_invitation(invitation))

    @router.post("/management/managers/{manager_id}/invite")
    async def invite_manager(request: Request, manager_id: str, body: SendInvitationRequest):
        """Admin invites a manager of any company."""
        denied = guard(request, require_admin)
        if denied is not None:
            return denied

        invitation = invitation_service.invite_company_user(
            user_id=manager_id,
            company_id=body.company_id,
            invited_email=str(body.invited_email),
            user_type=UserType.MANAGER,
            sent_by_user_id=_current_user(request).id,
        )
        return _ok(request, _sent_invitation(invitation))

    return router


def create_dev_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Dev-mode helpers. Mounted under /dev."""
    router = APIRouter(tags=["dev"])

    @router.get("/status")
    async def dev_status(request: Request):
        """Whether dev features are on. Always answers, even in production."""
        return _ok(request, {"dev_mode": config.dev_mode})

    @router.get("/users")
    async def dev_users(request: Request):
        """Sign-in candidates grouped by role. Refused unless dev mode is on."""
        return _ok(request, auth_service.list_dev_users().model_dump(mode="json"))

    @router.post("/login")
    async def dev_login(request: Request, body: DevLoginRequest):
        """Sign in as any user. Refused unless dev mode is on."""
        result = auth_service.dev_login(body.user_id, body.user_type)
        return _ok(request, result.model_dump(mode="json"))

    return router
