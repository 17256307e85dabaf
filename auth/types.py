"""Pydantic models for auth domain.

Stored documents round-trip through model_dump(mode="json") and
model_validate(); user records allow extra fields so that writes from this
service never drop fields owned by other services.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class UserType(str, Enum):
    """Identity partition a user lives in; doubles as the role value."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class UserInvitationStatus(str, Enum):
    """Invitation state mirrored onto the invited user record."""

    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"


# =============================================================================
# Stored documents
# =============================================================================


class Session(BaseModel):
    """A logged-in client. Expiry is fixed at creation."""

    id: str
    user_id: str
    user_type: UserType
    email: str = Field(..., description="Lower-cased at creation")
    token: str = Field(..., description="Session token (opaque string)")
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime


class MagicLink(BaseModel):
    """A one-time, short-lived login credential."""

    id: str
    email: str
    token: str
    user_id: str
    user_type: UserType
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None


class Invitation(BaseModel):
    """Offer for a pre-provisioned user record to bind an email and sign in."""

    id: str
    token: str
    user_id: str
    user_type: UserType
    company_id: str
    company_name: str
    user_name: str
    invited_email: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None
    accepted_email: str | None = None
    sent_by_user_id: str


class AdminRecord(BaseModel):
    """Platform administrator. Not tied to a company."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    created_at: datetime | None = None
    last_login: datetime | None = None

    model_config = {"extra": "allow"}


class CompanyUserRecord(BaseModel):
    """Manager or employee of a company. Email is empty until invited."""

    id: str
    company_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str | None = None
    role: UserType | None = None
    is_active: bool = True
    invitation_status: UserInvitationStatus = UserInvitationStatus.NONE
    invited_email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None

    model_config = {"extra": "allow"}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Company(BaseModel):
    id: str
    name: str

    model_config = {"extra": "allow"}


# =============================================================================
# Views
# =============================================================================


@dataclass
class DirectoryMatch:
    """A user record together with the partition it was found in."""

    user_type: UserType
    record: AdminRecord | CompanyUserRecord

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def company_id(self) -> str:
        if isinstance(self.record, CompanyUserRecord):
            return self.record.company_id
        return ""

    @property
    def role(self) -> UserType:
        """Explicit record role, falling back to the partition."""
        if isinstance(self.record, CompanyUserRecord) and self.record.role is not None:
            return self.record.role
        return self.user_type


class AuthenticatedUser(BaseModel):
    """Identity resolved for one request. Never cached beyond it."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserType
    company_id: str
    user_type: UserType


class UserProfile(BaseModel):
    """Profile returned to the client after sign-in and from /auth/me."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserType
    company_id: str
    company_name: str | None = None
    user_type: UserType
    last_login: datetime | None = None


class LoginResult(BaseModel):
    """Session handed back to the client after a successful sign-in."""

    token: str
    expires_at: datetime
    user: UserProfile


class DevUser(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    company_id: str | None = None


class DevUsers(BaseModel):
    """Sign-in candidates for dev login, grouped by role."""

    admins: list[DevUser]
    managers: list[DevUser]
    employees: list[DevUser]


class InvitationPreview(BaseModel):
    """Safe subset of an invitation shown before acceptance."""

    user_name: str
    company_name: str
    expires_at: datetime
    status: InvitationStatus


class AcceptedInvitation(BaseModel):
    session_token: str
    expires_at: datetime


# =============================================================================
# Request payloads
# =============================================================================


class MagicLinkRequest(BaseModel):
    """Request payload for magic link."""

    email: EmailStr


class VerifyMagicLinkRequest(BaseModel):
    token: str = Field(..., min_length=1)


class SendInvitationRequest(BaseModel):
    company_id: str = Field(..., min_length=1)
    invited_email: EmailStr


class DevLoginRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    user_type: UserType
