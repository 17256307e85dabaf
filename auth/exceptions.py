"""Typed exceptions for auth failures.

Each exception carries the HTTP status and machine-readable code it maps to
at the API boundary, plus a safe default message for end users.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    status_code = 400
    code = "AUTH_ERROR"
    default_message = "Request could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Unauthenticated


class InvalidTokenError(AuthError):
    """
    Magic link token does not exist or no longer maps to an account.

    Never reveals which of the two it was.
    """

    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired link."


class SessionExpiredError(AuthError):
    """Session missing or past expiry. Externally indistinguishable."""

    status_code = 401
    code = "SESSION_EXPIRED"
    default_message = "Please sign in again."


# Expiry and reuse


class TokenExpiredError(AuthError):
    """Magic link exists but its lifetime has elapsed."""

    status_code = 410
    code = "EXPIRED"
    default_message = "This login link has expired. Please request a new link."


class TokenAlreadyUsedError(AuthError):
    """Magic link was already exchanged for a session."""

    status_code = 409
    code = "ALREADY_USED"
    default_message = "This login link has already been used. Please request a new link."


# Forbidden


class ForbiddenError(AuthError):
    """Authenticated but not allowed to perform the action."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action."


class UserInactiveError(AuthError):
    """User account is deactivated. Login not permitted."""

    status_code = 403
    code = "USER_INACTIVE"
    default_message = "Account is deactivated."


# Not found


class UserNotFoundError(AuthError):
    """
    Referenced user record does not exist.

    Note: never raised from the magic link request path, which must not
    reveal whether an email exists.
    """

    status_code = 404
    code = "USER_NOT_FOUND"
    default_message = "User not found."


class CompanyNotFoundError(AuthError):
    status_code = 404
    code = "COMPANY_NOT_FOUND"
    default_message = "Company not found."


class InvitationNotFoundError(AuthError):
    """No invitation matches the token."""

    status_code = 404
    code = "INVALID_INVITATION"
    default_message = "Invalid invitation token."


# Invitation lifecycle


class InvitationExpiredError(AuthError):
    status_code = 410
    code = "INVITATION_EXPIRED"
    default_message = "Invitation has expired. Please ask for a new invitation."


class InvitationAlreadyProcessedError(AuthError):
    """Invitation is in a terminal state (accepted, expired or revoked)."""

    status_code = 409

    def __init__(self, status: str):
        self.status = status
        self.code = f"INVITATION_ALREADY_{status.upper()}"
        super().__init__(f"Invitation has already been {status}.")


class EmailInUseError(AuthError):
    """Email is bound to a different user record."""

    status_code = 409
    code = "EMAIL_IN_USE"
    default_message = "This email is already associated with another account."


# Fatal


class InvitationDeliveryError(AuthError):
    """Invitation email could not be sent. Target user status was rolled back."""

    status_code = 503
    code = "EMAIL_DELIVERY_FAILED"
    default_message = "Failed to send invitation. Please try again later."
