"""Tests for api/errors.py - exception handlers produce the unified envelope."""

import pytest
from fastapi import FastAPI
from pydantic import BaseModel
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.exceptions import InvitationAlreadyProcessedError, InvitationDeliveryError, TokenExpiredError
from clients.email_client import EmailGatewayError


class Payload(BaseModel):
    count: int


@pytest.fixture
def client():
    """App whose routes raise each failure type."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    @app.get("/expired")
    async def expired():
        raise TokenExpiredError()

    @app.get("/processed")
    async def processed():
        raise InvitationAlreadyProcessedError("revoked")

    @app.get("/delivery")
    async def delivery():
        raise InvitationDeliveryError()

    @app.get("/gateway")
    async def gateway():
        raise EmailGatewayError("Connection failed")

    @app.post("/payload")
    async def payload(body: Payload):
        return {"count": body.count}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return TestClient(app, raise_server_exceptions=False)


class TestAuthErrors:
    """AuthError subclasses map to their own status and code."""

    def test_status_and_code(self, client):
        response = client.get("/expired")

        body = response.json()
        assert response.status_code == 410
        assert body["success"] is False
        assert body["error"]["code"] == "EXPIRED"
        assert body["meta"]["request_id"] == response.headers["X-Request-ID"]

    def test_dynamic_code(self, client):
        response = client.get("/processed")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVITATION_ALREADY_REVOKED"

    def test_fatal_auth_error_is_logged(self, client, caplog):
        response = client.get("/delivery")

        assert response.status_code == 503
        assert "EMAIL_DELIVERY_FAILED" in caplog.text


class TestOtherErrors:

    def test_gateway_error_is_503(self, client):
        response = client.get("/gateway")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"

    def test_validation_error_is_422(self, client):
        response = client.post("/payload", json={"count": "many"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unhandled_error_is_500_without_details(self, client):
        response = client.get("/boom")

        body = response.json()
        assert response.status_code == 500
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in body["error"]["message"]
