"""Opaque token generation for sessions, magic links and invitations."""

import secrets
import string

TOKEN_ALPHABET = string.ascii_letters + string.digits

SESSION_TOKEN_LENGTH = 64
MAGIC_LINK_TOKEN_LENGTH = 64
# 32 chars of a 62-symbol alphabet is ~190 bits
INVITATION_TOKEN_LENGTH = 32


def generate_token(length: int) -> str:
    """Uniformly random alphanumeric string from the OS CSPRNG."""
    if length < 1:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
