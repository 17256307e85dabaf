"""Session token lifecycle management.

Sessions are documents in the `sessions` collection, partitioned by token.
Expiry is fixed at creation (no sliding window); validation only refreshes
last_used_at. Sessions are never deleted - an expired session simply stops
validating.
"""

import logging
from datetime import timedelta
from uuid import uuid4

from clients.document_store import DocumentStore
from auth.config import AuthConfig
from auth.exceptions import SessionExpiredError
from auth.tokens import SESSION_TOKEN_LENGTH, generate_token
from auth.types import Session, UserType
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SESSIONS = "sessions"


class SessionManager:
    """Creates, looks up and validates sessions."""

    def __init__(self, store: DocumentStore, config: AuthConfig):
        self._store = store
        self._config = config

    def create_session(self, user_id: str, user_type: UserType, email: str) -> Session:
        """Create new session for user, expiring session_expiry_days from now."""
        now = now_utc()
        session = Session(
            id=f"sess_{uuid4()}",
            user_id=user_id,
            user_type=user_type,
            email=email.lower(),
            token=generate_token(SESSION_TOKEN_LENGTH),
            created_at=now,
            expires_at=now + timedelta(days=self._config.session_expiry_days),
            last_used_at=now,
        )
        self._store.create(SESSIONS, session.model_dump(mode="json"))
        logger.info(f"Session created for {user_type.value} {user_id}")
        return session

    def get_by_token(self, token: str) -> Session | None:
        """Point lookup by token. None if unknown."""
        if not token:
            return None
        docs = self._store.query(SESSIONS, {"token": token})
        return Session.model_validate(docs[0]) if docs else None

    def validate_session(self, token: str) -> Session:
        """Validate session token and return the refreshed session.

        Concurrent validations race on last_used_at; last write wins.

        Raises:
            SessionExpiredError: If token unknown or session expired.
        """
        session = self.get_by_token(token)
        if session is None:
            raise SessionExpiredError("Session not found or expired")

        now = now_utc()
        if now >= session.expires_at:
            raise SessionExpiredError("Session expired")

        refreshed = session.model_copy(update={"last_used_at": max(now, session.last_used_at)})
        self._store.replace(
            SESSIONS,
            refreshed.id,
            refreshed.token,
            refreshed.model_dump(mode="json"),
        )
        return refreshed
