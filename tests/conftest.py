"""Shared test fixtures for EyeQ auth test suite.

Tests run against a seeded InMemoryDocumentStore; the email gateway is a
Mock(spec=EmailGatewayClient). Seed data:

    companies  co_acme "Acme Corp", co_globex "Globex"
    admins     adm_1 admin@eyeq.io
    users      usr_mgr       manager   co_acme    mona@acme.com
               usr_emp       employee  co_acme    eve@acme.com
               usr_new       (no role) co_acme    pre-provisioned, no email
               usr_gone      employee  co_acme    ian@acme.com, deactivated
               usr_mgr2      manager   co_globex  gus@globex.com
               usr_mgr_new   manager   co_globex  pre-provisioned, no email
"""

from datetime import timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.config import AuthConfig
from auth.directory import UserDirectory
from auth.invitations import InvitationService
from auth.security_logger import SECURITY_EVENTS, SecurityEvent, SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.memory_store import InMemoryDocumentStore
from utils.timezone import now_utc


# =============================================================================
# SEED DATA
# =============================================================================

COMPANIES = [
    {"id": "co_acme", "name": "Acme Corp"},
    {"id": "co_globex", "name": "Globex"},
]

ADMINS = [
    {
        "id": "adm_1",
        "email": "Admin@EyeQ.io",
        "first_name": "Ada",
        "last_name": "Admin",
    },
]

USERS = [
    {
        "id": "usr_mgr",
        "company_id": "co_acme",
        "first_name": "Mona",
        "last_name": "Manager",
        "email": "mona@acme.com",
        "role": "manager",
        "is_active": True,
        "invitation_status": "accepted",
    },
    {
        "id": "usr_emp",
        "company_id": "co_acme",
        "first_name": "Eve",
        "last_name": "Employee",
        "email": "eve@acme.com",
        "role": "employee",
        "is_active": True,
        "invitation_status": "accepted",
    },
    {
        "id": "usr_new",
        "company_id": "co_acme",
        "first_name": "Nina",
        "last_name": "New",
        "email": "",
        "is_active": True,
        "invitation_status": "none",
        "department": "Warehouse",
    },
    {
        "id": "usr_gone",
        "company_id": "co_acme",
        "first_name": "Ian",
        "last_name": "Inactive",
        "email": "ian@acme.com",
        "role": "employee",
        "is_active": False,
        "invitation_status": "accepted",
    },
    {
        "id": "usr_mgr2",
        "company_id": "co_globex",
        "first_name": "Gus",
        "last_name": "Globex",
        "email": "gus@globex.com",
        "role": "manager",
        "is_active": True,
        "invitation_status": "accepted",
    },
    {
        "id": "usr_mgr_new",
        "company_id": "co_globex",
        "first_name": "Max",
        "last_name": "Fresh",
        "email": "",
        "role": "manager",
        "is_active": True,
        "invitation_status": "none",
    },
]


# =============================================================================
# STORE AND SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def store():
    """Fresh in-memory document store seeded with companies and users."""
    memory = InMemoryDocumentStore()
    for doc in COMPANIES:
        memory.create("companies", dict(doc))
    for doc in ADMINS:
        memory.create("admins", dict(doc))
    for doc in USERS:
        memory.create("users", dict(doc))
    return memory


@pytest.fixture
def config():
    """Default auth config."""
    return AuthConfig(app_base_url="https://app.eyeq.test")


@pytest.fixture
def mock_email_client():
    """Mock EmailGatewayClient that accepts every send."""
    client = Mock(spec=EmailGatewayClient)
    client.send_email.return_value = "msg_test"
    return client


@pytest.fixture
def directory(store):
    return UserDirectory(store)


@pytest.fixture
def session_manager(store, config):
    return SessionManager(store, config)


@pytest.fixture
def security_logger(store):
    return SecurityLogger(store)


@pytest.fixture
def security_events(store):
    """Stored security events of one type, newest first.

    Usage: security_events(SecurityEvent.ACCESS_DENIED, user_id="usr_emp")
    """

    def _events(event: SecurityEvent, **filters):
        docs = store.query(SECURITY_EVENTS, {"event_type": event.value, **filters})
        return sorted(docs, key=lambda e: e["created_at"], reverse=True)

    return _events


@pytest.fixture
def auth_service(config, store, directory, session_manager, mock_email_client, security_logger):
    """AuthService wired to the seeded store and mock email client."""
    return AuthService(
        config=config,
        store=store,
        directory=directory,
        session_manager=session_manager,
        email_client=mock_email_client,
        security_logger=security_logger,
    )


@pytest.fixture
def invitation_service(
    config, store, directory, session_manager, mock_email_client, security_logger
):
    """InvitationService wired to the seeded store and mock email client."""
    return InvitationService(
        config=config,
        store=store,
        directory=directory,
        session_manager=session_manager,
        email_client=mock_email_client,
        security_logger=security_logger,
    )


# =============================================================================
# CLOCK HELPERS
# =============================================================================


@pytest.fixture
def backdate(store):
    """Move timestamp fields of a stored document into the past.

    Usage: backdate("sessions", id, token, last_used_at=timedelta(hours=1))
    """

    def _backdate(collection: str, doc_id: str, partition_key: str, **fields):
        doc = store.get(collection, doc_id, partition_key)
        for field, ago in fields.items():
            doc[field] = (now_utc() - ago).isoformat()
        store.replace(collection, doc_id, partition_key, doc)

    return _backdate


@pytest.fixture
def expire(backdate):
    """Set expires_at of a stored document one second in the past."""

    def _expire(collection: str, doc_id: str, partition_key: str):
        backdate(collection, doc_id, partition_key, expires_at=timedelta(seconds=1))

    return _expire
