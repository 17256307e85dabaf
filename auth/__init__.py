"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    SessionExpiredError,
    TokenExpiredError,
    TokenAlreadyUsedError,
    ForbiddenError,
    UserInactiveError,
    UserNotFoundError,
    CompanyNotFoundError,
    InvitationNotFoundError,
    InvitationExpiredError,
    InvitationAlreadyProcessedError,
    EmailInUseError,
    InvitationDeliveryError,
)
from auth.types import (
    UserType,
    InvitationStatus,
    UserInvitationStatus,
    Session,
    MagicLink,
    Invitation,
    AuthenticatedUser,
    UserProfile,
    LoginResult,
)
from auth.config import AuthConfig
from auth.tokens import generate_token
from auth.directory import UserDirectory
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService
from auth.invitations import InvitationService
from auth.authorization import AuthGate, parse_bearer, require_role, require_same_company
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router, create_invitation_router, create_dev_router
