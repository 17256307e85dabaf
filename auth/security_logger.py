"""Security event logging for auth audit trail.

Append-only events in the `security_events` collection, mirrored to the
application log.
"""

import logging
from enum import Enum
from typing import Any
from uuid import uuid4

from clients.document_store import DocumentStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

SECURITY_EVENTS = "security_events"


class SecurityEvent(Enum):
    """Auth security event types."""

    MAGIC_LINK_REQUESTED = "magic_link_requested"
    MAGIC_LINK_SENT = "magic_link_sent"
    MAGIC_LINK_VERIFIED = "magic_link_verified"
    MAGIC_LINK_FAILED = "magic_link_failed"
    MAGIC_LINK_EXPIRED = "magic_link_expired"
    MAGIC_LINK_ALREADY_USED = "magic_link_already_used"
    SESSION_CREATED = "session_created"
    INVITATION_ISSUED = "invitation_issued"
    INVITATION_REVOKED = "invitation_revoked"
    INVITATION_SEND_FAILED = "invitation_send_failed"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_EXPIRED = "invitation_expired"
    INVITATION_REJECTED = "invitation_rejected"
    ACCESS_DENIED = "access_denied"
    DEV_LOGIN = "dev_login"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record security event."""
        self._store.create(
            SECURITY_EVENTS,
            {
                "id": str(uuid4()),
                "event_type": event.value,
                "email": email,
                "user_id": user_id,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "details": details,
                "created_at": now_utc().isoformat(),
            },
        )
        logger.info(f"Security event {event.value} email={email} user_id={user_id}")
