"""FastAPI application factory.

`create_app` wires explicit dependencies (used by tests and dev mode);
`create_app_from_vault` builds the production stack from Vault secrets.
"""

import logging
import os

from fastapi import FastAPI, Request

from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router, create_dev_router, create_invitation_router
from auth.authorization import AuthGate
from auth.config import AuthConfig
from auth.directory import UserDirectory
from auth.invitations import InvitationService
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.document_store import DocumentStore, PostgresDocumentStore
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_email_config

logger = logging.getLogger(__name__)


def create_app(
    store: DocumentStore,
    email_client: EmailGatewayClient,
    config: AuthConfig | None = None,
) -> FastAPI:
    """Build the app around a document store and email client."""
    config = config or AuthConfig()

    directory = UserDirectory(store)
    session_manager = SessionManager(store, config)
    security_logger = SecurityLogger(store)

    auth_service = AuthService(
        config=config,
        store=store,
        directory=directory,
        session_manager=session_manager,
        email_client=email_client,
        security_logger=security_logger,
    )
    invitation_service = InvitationService(
        config=config,
        store=store,
        directory=directory,
        session_manager=session_manager,
        email_client=email_client,
        security_logger=security_logger,
    )

    app = FastAPI(title=f"{config.app_name} API")
    app.state.config = config
    app.state.auth_service = auth_service
    app.state.invitation_service = invitation_service

    # Last added runs first: request ID is assigned before auth resolves.
    app.add_middleware(AuthMiddleware, gate=AuthGate(session_manager, directory, config))
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service), prefix="/auth")
    app.include_router(create_invitation_router(invitation_service, security_logger))
    app.include_router(create_dev_router(auth_service, config), prefix="/dev")

    @app.get("/health")
    async def health(request: Request):
        return success_response(
            {"status": "ok"}, getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    if config.dev_mode:
        logger.warning("Dev mode is ON - /dev/login allows impersonation")

    return app


def create_app_from_vault() -> FastAPI:
    """Production app: Postgres document store and email gateway from Vault.

    Non-secret settings come from the environment:
    EYEQ_APP_BASE_URL, EYEQ_AUTH_HEADER and EYEQ_DEV_MODE.
    """
    store = PostgresDocumentStore(PostgresClient(get_database_url()))
    store.ensure_schema()

    email_client = EmailGatewayClient(**get_email_config())

    overrides = {}
    if os.getenv("EYEQ_APP_BASE_URL"):
        overrides["app_base_url"] = os.environ["EYEQ_APP_BASE_URL"]
    if os.getenv("EYEQ_AUTH_HEADER"):
        overrides["auth_header_name"] = os.environ["EYEQ_AUTH_HEADER"]
    overrides["dev_mode"] = os.getenv("EYEQ_DEV_MODE", "").lower() == "true"

    return create_app(store, email_client, AuthConfig(**overrides))
