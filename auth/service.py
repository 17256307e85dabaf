"""Authentication service - orchestrates magic link auth flow."""

import logging
from datetime import timedelta
from urllib.parse import quote
from uuid import uuid4

from clients.document_store import DocumentConflictError, DocumentStore
from clients.email_client import EmailGatewayClient
from auth.config import AuthConfig
from auth.directory import UserDirectory, is_inactive, normalize_email
from auth.emails import magic_link_email
from auth.exceptions import (
    ForbiddenError,
    InvalidTokenError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    UserInactiveError,
    UserNotFoundError,
)
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.tokens import MAGIC_LINK_TOKEN_LENGTH, generate_token
from auth.types import (
    AuthenticatedUser,
    DevUser,
    DevUsers,
    DirectoryMatch,
    LoginResult,
    MagicLink,
    UserProfile,
    UserType,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

MAGIC_LINKS = "magic_links"


class AuthService:
    """Orchestrates passwordless sign-in.

    Handles:
    - Magic link requests (with enumeration protection)
    - Magic link verification (single use)
    - Dev-mode impersonation
    - Profile lookup for the signed-in user
    """

    def __init__(
        self,
        config: AuthConfig,
        store: DocumentStore,
        directory: UserDirectory,
        session_manager: SessionManager,
        email_client: EmailGatewayClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._store = store
        self._directory = directory
        self._session_manager = session_manager
        self._email_client = email_client
        self._security_logger = security_logger

    def request_magic_link(
        self,
        email: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Issue and email a magic link for a known account.

        Unknown and deactivated accounts are a silent no-op so the caller's
        response never reveals whether an email is registered.

        Raises:
            EmailGatewayError: If email send fails.
        """
        email = normalize_email(email)
        match = self._directory.find_by_email(email)

        if match is None or is_inactive(match):
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=email,
                user_id=match.id if match else None,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_inactive" if match else "user_not_found"},
            )
            return

        now = now_utc()
        link = MagicLink(
            id=f"ml_{uuid4()}",
            email=email,
            token=generate_token(MAGIC_LINK_TOKEN_LENGTH),
            user_id=match.id,
            user_type=match.user_type,
            created_at=now,
            expires_at=now + timedelta(minutes=self._config.magic_link_expiry_minutes),
        )
        self._store.create(MAGIC_LINKS, link.model_dump(mode="json"))

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_REQUESTED,
            email=email,
            user_id=match.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        content = magic_link_email(
            user_name=match.record.first_name or email,
            magic_link_url=f"{self._config.app_base_url}/auth/verify?token={quote(link.token)}",
            expires_in_minutes=self._config.magic_link_expiry_minutes,
            app_name=self._config.app_name,
        )
        # May raise EmailGatewayError
        self._email_client.send_email(
            to=email,
            subject=content.subject,
            html_body=content.html,
            text_body=content.text,
            sender="auth",
        )

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_SENT,
            email=email,
            user_id=match.id,
            ip_address=ip_address,
        )

    def verify_magic_link(
        self,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Exchange a magic link token for a session.

        Flow:
        1. Lookup token
        2. Reject used, then expired
        3. Mark token used
        4. Resolve owner through the directory, reject deactivated accounts
        5. Record login and create session

        Raises:
            InvalidTokenError: Token unknown, or its owner no longer exists.
            TokenAlreadyUsedError: Token was already exchanged.
            TokenExpiredError: Token lifetime elapsed.
            UserInactiveError: Owner account is deactivated.
        """
        docs = self._store.query(MAGIC_LINKS, {"token": token}) if token else []

        if not docs:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "token_not_found"},
            )
            raise InvalidTokenError()

        link = MagicLink.model_validate(docs[0])

        if link.used_at is not None:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_ALREADY_USED,
                email=link.email,
                user_id=link.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise TokenAlreadyUsedError()

        now = now_utc()
        if now >= link.expires_at:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_EXPIRED,
                email=link.email,
                user_id=link.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise TokenExpiredError()

        used = link.model_copy(update={"used_at": now})
        try:
            # Only one concurrent verify can move used_at off null.
            self._store.replace(
                MAGIC_LINKS,
                used.id,
                used.token,
                used.model_dump(mode="json"),
                if_match={"used_at": None},
            )
        except DocumentConflictError:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_ALREADY_USED,
                email=link.email,
                user_id=link.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "concurrent_verify"},
            )
            raise TokenAlreadyUsedError()

        match = self._directory.find_by_email(link.email)
        if match is None:
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=link.email,
                user_id=link.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_not_found"},
            )
            raise InvalidTokenError()

        if is_inactive(match):
            self._security_logger.log(
                SecurityEvent.MAGIC_LINK_FAILED,
                email=link.email,
                user_id=match.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_inactive"},
            )
            raise UserInactiveError()

        self._security_logger.log(
            SecurityEvent.MAGIC_LINK_VERIFIED,
            email=link.email,
            user_id=match.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return self._start_session(match, ip_address=ip_address, user_agent=user_agent)

    def dev_login(self, user_id: str, user_type: UserType) -> LoginResult:
        """Sign in as any user without a credential. Dev mode only.

        Raises:
            ForbiddenError: Dev mode is off.
            UserNotFoundError: No such user in the given partition.
        """
        self._require_dev_mode()

        match = self._directory.find_user_by_id(user_id, user_type)
        if match is None:
            raise UserNotFoundError()

        logger.warning(f"Dev login as {user_type.value} {user_id}")
        self._security_logger.log(
            SecurityEvent.DEV_LOGIN,
            email=match.record.email,
            user_id=match.id,
            details={"user_type": user_type.value},
        )
        return self._start_session(match)

    def list_dev_users(self) -> DevUsers:
        """Admins plus active managers and employees, for the dev login picker.

        Raises:
            ForbiddenError: Dev mode is off.
        """
        self._require_dev_mode()

        def listed(user_type: UserType) -> list[DevUser]:
            return [
                DevUser(
                    id=match.id,
                    email=match.record.email,
                    first_name=match.record.first_name,
                    last_name=match.record.last_name,
                    company_id=match.company_id or None,
                )
                for match in self._directory.list_users(user_type)
            ]

        return DevUsers(
            admins=listed(UserType.ADMIN),
            managers=listed(UserType.MANAGER),
            employees=listed(UserType.EMPLOYEE),
        )

    def _require_dev_mode(self) -> None:
        if not self._config.dev_mode:
            raise ForbiddenError("Dev endpoints are only available in development environment.")

    def get_profile(self, user: AuthenticatedUser) -> UserProfile:
        """Profile of the signed-in user, with company name for display."""
        return UserProfile(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            company_id=user.company_id,
            company_name=self._directory.get_company_name(user.company_id),
            user_type=user.user_type,
        )

    def _start_session(
        self,
        match: DirectoryMatch,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        match = self._directory.record_login(match)
        record = match.record

        session = self._session_manager.create_session(match.id, match.user_type, record.email)

        self._security_logger.log(
            SecurityEvent.SESSION_CREATED,
            email=session.email,
            user_id=match.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        profile = UserProfile(
            id=record.id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            role=match.role,
            company_id=match.company_id,
            company_name=self._directory.get_company_name(match.company_id),
            user_type=match.user_type,
            last_login=record.last_login,
        )
        return LoginResult(token=session.token, expires_at=session.expires_at, user=profile)
