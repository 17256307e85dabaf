"""Invitation lifecycle.

An invitation lets a pre-provisioned company user (created without an email)
bind an email address and sign in. States:

    pending -> accepted   accepted by the invitee
    pending -> expired    detected lazily when acceptance is attempted late
    pending -> revoked    superseded by a newer invitation for the same user

Terminal states never transition again. At most one invitation per user is
pending at any time.

There are no multi-document transactions. Acceptance writes the user record,
then the invitation, then creates the session; a crash after the user write
is recovered by simply accepting again, because the collision guard sees the
email as owned by the same user.
"""

import logging
from datetime import timedelta
from urllib.parse import quote
from uuid import uuid4

from clients.document_store import DocumentStore
from clients.email_client import EmailGatewayClient, EmailGatewayError
from auth.config import AuthConfig
from auth.directory import UserDirectory
from auth.emails import invitation_email
from auth.exceptions import (
    CompanyNotFoundError,
    EmailInUseError,
    InvitationAlreadyProcessedError,
    InvitationDeliveryError,
    InvitationExpiredError,
    InvitationNotFoundError,
    UserInactiveError,
    UserNotFoundError,
)
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.tokens import INVITATION_TOKEN_LENGTH, generate_token
from auth.types import (
    AcceptedInvitation,
    CompanyUserRecord,
    Invitation,
    InvitationPreview,
    InvitationStatus,
    UserInvitationStatus,
    UserType,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

INVITATIONS = "invitations"


def _has_role(record: CompanyUserRecord, user_type: UserType) -> bool:
    if user_type is UserType.MANAGER:
        return record.role is UserType.MANAGER
    return record.role in (None, UserType.EMPLOYEE)


class InvitationService:
    """Issues, previews and accepts invitations."""

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

    # -------------------------------------------------------------------------
    # Storage helpers
    # -------------------------------------------------------------------------

    def get_by_token(self, token: str) -> Invitation | None:
        if not token:
            return None
        docs = self._store.query(INVITATIONS, {"token": token})
        return Invitation.model_validate(docs[0]) if docs else None

    def list_for_user(self, user_id: str) -> list[Invitation]:
        """All invitations ever issued for a user, oldest first."""
        invitations = [
            Invitation.model_validate(doc)
            for doc in self._store.query(INVITATIONS, {"user_id": user_id})
        ]
        return sorted(invitations, key=lambda inv: inv.created_at)

    def _save(self, invitation: Invitation) -> None:
        self._store.replace(
            INVITATIONS,
            invitation.id,
            invitation.company_id,
            invitation.model_dump(mode="json"),
        )

    def _set_user_status(
        self,
        record: CompanyUserRecord,
        status: UserInvitationStatus,
        **changes,
    ) -> CompanyUserRecord:
        return self._directory.save_company_user(
            record.model_copy(update={"invitation_status": status, **changes})
        )

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def issue(
        self,
        user_id: str,
        user_type: UserType,
        company_id: str,
        company_name: str,
        user_name: str,
        invited_email: str,
        sent_by_user_id: str,
    ) -> Invitation:
        """Revoke any pending invitation for the user, create a new one, and
        email it.

        If the email cannot be sent the user's invitation_status is reverted
        to none so it never sits in pending for an invitation nobody received.

        Raises:
            UserNotFoundError: Target user record does not exist.
            InvitationDeliveryError: Email send failed (status rolled back).
        """
        target = self._directory.get_company_user(user_id, company_id)
        if target is None:
            raise UserNotFoundError()

        for prior in self.list_for_user(user_id):
            if prior.status is not InvitationStatus.PENDING:
                continue
            revoked = prior.model_copy(update={"status": InvitationStatus.REVOKED})
            self._save(revoked)
            self._security_logger.log(
                SecurityEvent.INVITATION_REVOKED,
                email=revoked.invited_email,
                user_id=user_id,
                details={"invitation_id": revoked.id, "superseded_by": sent_by_user_id},
            )

        now = now_utc()
        invitation = Invitation(
            id=f"inv_{uuid4()}",
            token=generate_token(INVITATION_TOKEN_LENGTH),
            user_id=user_id,
            user_type=user_type,
            company_id=company_id,
            company_name=company_name,
            user_name=user_name,
            invited_email=invited_email.strip(),
            status=InvitationStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(days=self._config.invitation_expiry_days),
            sent_by_user_id=sent_by_user_id,
        )
        self._store.create(INVITATIONS, invitation.model_dump(mode="json"))

        target = self._set_user_status(
            target, UserInvitationStatus.PENDING, invited_email=invitation.invited_email
        )

        content = invitation_email(
            user_name=user_name,
            company_name=company_name,
            invitation_url=(
                f"{self._config.app_base_url}/accept-invitation?token={quote(invitation.token)}"
            ),
            expires_in_days=self._config.invitation_expiry_days,
            app_name=self._config.app_name,
        )

        try:
            self._email_client.send_email(
                to=invitation.invited_email,
                subject=content.subject,
                html_body=content.html,
                text_body=content.text,
                sender="system",
            )
        except EmailGatewayError as e:
            logger.error(f"Failed to send invitation {invitation.id}: {e}")
            self._set_user_status(target, UserInvitationStatus.NONE)
            self._security_logger.log(
                SecurityEvent.INVITATION_SEND_FAILED,
                email=invitation.invited_email,
                user_id=user_id,
                details={"invitation_id": invitation.id},
            )
            raise InvitationDeliveryError() from e

        self._security_logger.log(
            SecurityEvent.INVITATION_ISSUED,
            email=invitation.invited_email,
            user_id=user_id,
            details={"invitation_id": invitation.id, "sent_by": sent_by_user_id},
        )
        logger.info(f"Invitation {invitation.id} issued for {user_type.value} {user_id}")
        return invitation

    def invite_company_user(
        self,
        user_id: str,
        company_id: str,
        invited_email: str,
        user_type: UserType,
        sent_by_user_id: str,
    ) -> Invitation:
        """Load the target user and company, then issue.

        Raises:
            UserNotFoundError: No such user in the company with that role.
            CompanyNotFoundError: Company record missing.
        """
        record = self._directory.get_company_user(user_id, company_id)
        if record is None or not _has_role(record, user_type):
            raise UserNotFoundError(f"{user_type.value.capitalize()} not found.")

        company = self._directory.get_company(company_id)
        if company is None:
            raise CompanyNotFoundError()

        return self.issue(
            user_id=user_id,
            user_type=user_type,
            company_id=company_id,
            company_name=company.name,
            user_name=record.full_name,
            invited_email=invited_email,
            sent_by_user_id=sent_by_user_id,
        )

    # -------------------------------------------------------------------------
    # Validate / accept
    # -------------------------------------------------------------------------

    def validate(self, token: str) -> InvitationPreview:
        """Read-only preview. Reports a late pending invitation as expired
        without persisting the transition.

        Raises:
            InvitationNotFoundError: No invitation matches the token.
        """
        invitation = self.get_by_token(token)
        if invitation is None:
            raise InvitationNotFoundError()

        status = invitation.status
        if status is InvitationStatus.PENDING and now_utc() >= invitation.expires_at:
            status = InvitationStatus.EXPIRED

        return InvitationPreview(
            user_name=invitation.user_name,
            company_name=invitation.company_name,
            expires_at=invitation.expires_at,
            status=status,
        )

    def accept(self, token: str) -> AcceptedInvitation:
        """Bind the invited email to the user and sign them in.

        Raises:
            InvitationNotFoundError: No invitation matches the token.
            InvitationAlreadyProcessedError: Invitation is not pending.
            InvitationExpiredError: Past expiry; invitation is now expired.
            EmailInUseError: Email belongs to a different user record.
            UserNotFoundError: Invited user record is gone.
            UserInactiveError: Invited user is deactivated.
        """
        invitation = self.get_by_token(token)
        if invitation is None:
            self._security_logger.log(
                SecurityEvent.INVITATION_REJECTED,
                details={"reason": "token_not_found"},
            )
            raise InvitationNotFoundError()

        if invitation.status is not InvitationStatus.PENDING:
            self._security_logger.log(
                SecurityEvent.INVITATION_REJECTED,
                email=invitation.invited_email,
                user_id=invitation.user_id,
                details={"reason": f"already_{invitation.status.value}"},
            )
            raise InvitationAlreadyProcessedError(invitation.status.value)

        now = now_utc()
        if now >= invitation.expires_at:
            self._save(invitation.model_copy(update={"status": InvitationStatus.EXPIRED}))
            self._security_logger.log(
                SecurityEvent.INVITATION_EXPIRED,
                email=invitation.invited_email,
                user_id=invitation.user_id,
                details={"invitation_id": invitation.id},
            )
            raise InvitationExpiredError()

        accepted_email = invitation.invited_email.strip().lower()

        for owner in self._directory.find_all_by_email(accepted_email):
            if owner.user_type is UserType.ADMIN or owner.id != invitation.user_id:
                self._security_logger.log(
                    SecurityEvent.INVITATION_REJECTED,
                    email=accepted_email,
                    user_id=invitation.user_id,
                    details={"reason": "email_in_use", "owner_id": owner.id},
                )
                raise EmailInUseError()

        record = self._directory.get_company_user(invitation.user_id, invitation.company_id)
        if record is None:
            logger.error(
                f"Invitation {invitation.id} targets missing user {invitation.user_id}"
            )
            raise UserNotFoundError()

        if not record.is_active:
            self._security_logger.log(
                SecurityEvent.INVITATION_REJECTED,
                email=accepted_email,
                user_id=invitation.user_id,
                details={"reason": "user_inactive"},
            )
            raise UserInactiveError()

        record = self._set_user_status(
            record, UserInvitationStatus.ACCEPTED, email=accepted_email
        )

        self._save(
            invitation.model_copy(
                update={
                    "status": InvitationStatus.ACCEPTED,
                    "accepted_at": now_utc(),
                    "accepted_email": accepted_email,
                }
            )
        )

        session = self._session_manager.create_session(
            record.id, record.role or invitation.user_type, accepted_email
        )

        self._security_logger.log(
            SecurityEvent.INVITATION_ACCEPTED,
            email=accepted_email,
            user_id=record.id,
            details={"invitation_id": invitation.id},
        )
        return AcceptedInvitation(session_token=session.token, expires_at=session.expires_at)
