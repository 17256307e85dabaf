"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Token lifetimes are fixed by policy (sessions 30 days, invitations 7 days,
    magic links 15 minutes); bounds keep overrides within sane limits.
    """

    # Session settings
    session_expiry_days: int = Field(
        default=30,
        description="Session lifetime in days. Never extended by activity.",
        ge=1,
        le=90,
    )

    # Magic link settings
    magic_link_expiry_minutes: int = Field(
        default=15,
        description="How long magic links remain valid",
        ge=5,
        le=60,
    )

    # Invitation settings
    invitation_expiry_days: int = Field(
        default=7,
        description="How long invitation links remain valid",
        ge=1,
        le=30,
    )

    # Transport
    auth_header_name: str = Field(
        default="Authorization",
        description="Header carrying 'Bearer <token>'. Some hosts strip Authorization.",
        min_length=1,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:5173",
        description="Base URL for links in emails",
    )
    app_name: str = Field(
        default="EyeQ",
        description="Application name for emails",
    )
    dev_mode: bool = Field(
        default=False,
        description="Enables /dev/login impersonation. Never on in production.",
    )
