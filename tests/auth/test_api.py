"""HTTP tests for auth, invitation and dev routes through the full app."""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from auth.config import AuthConfig
from auth.invitations import INVITATIONS
from auth.security_logger import SecurityEvent
from auth.service import MAGIC_LINKS
from auth.session import SESSIONS
from auth.types import UserType
from clients.email_client import EmailGatewayError


@pytest.fixture
def client(store, mock_email_client, config):
    """Test client over the seeded store."""
    return TestClient(create_app(store, mock_email_client, config))


@pytest.fixture
def sign_in(session_manager):
    """Bearer headers for a fresh session of a seeded user."""

    def _sign_in(user_id: str, user_type: UserType, email: str) -> dict:
        session = session_manager.create_session(user_id, user_type, email)
        return {"Authorization": f"Bearer {session.token}"}

    return _sign_in


@pytest.fixture
def as_admin(sign_in):
    return sign_in("adm_1", UserType.ADMIN, "admin@eyeq.io")


@pytest.fixture
def as_manager(sign_in):
    return sign_in("usr_mgr", UserType.MANAGER, "mona@acme.com")


@pytest.fixture
def as_other_manager(sign_in):
    return sign_in("usr_mgr2", UserType.MANAGER, "gus@globex.com")


@pytest.fixture
def as_employee(sign_in):
    return sign_in("usr_emp", UserType.EMPLOYEE, "eve@acme.com")


def _invite_body(company_id="co_acme", email="nina@acme.com") -> dict:
    return {"company_id": company_id, "invited_email": email}


class TestEnvelope:
    """Every response uses the unified envelope."""

    def test_health(self, client):
        response = client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"] == {"status": "ok"}
        assert body["error"] is None
        assert body["meta"]["request_id"] == response.headers["X-Request-ID"]

    def test_error_envelope(self, client):
        response = client.get("/auth/me")

        body = response.json()
        assert response.status_code == 401
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "NOT_AUTHENTICATED"


class TestRequestLink:
    """POST /auth/request-link"""

    def test_known_and_unknown_get_same_response(self, client, mock_email_client):
        """Response never reveals whether the account exists."""
        known = client.post("/auth/request-link", json={"email": "eve@acme.com"})
        unknown = client.post("/auth/request-link", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json()["data"] == unknown.json()["data"]
        assert mock_email_client.send_email.call_count == 1

    def test_email_failure_still_returns_200(self, client, mock_email_client):
        mock_email_client.send_email.side_effect = EmailGatewayError("down")

        response = client.post("/auth/request-link", json={"email": "eve@acme.com"})

        assert response.status_code == 200

    def test_invalid_email_returns_422(self, client):
        response = client.post("/auth/request-link", json={"email": "not-an-email"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestVerify:
    """POST /auth/verify"""

    def test_magic_link_end_to_end(self, client, store):
        """Request, verify, then call /auth/me with the new session."""
        client.post("/auth/request-link", json={"email": "eve@acme.com"})
        token = store.query(MAGIC_LINKS, {"email": "eve@acme.com"})[0]["token"]

        verified = client.post("/auth/verify", json={"token": token})

        assert verified.status_code == 200
        data = verified.json()["data"]
        assert data["user"]["id"] == "usr_emp"
        assert data["user"]["company_name"] == "Acme Corp"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {data['token']}"})

        assert me.status_code == 200
        assert me.json()["data"]["id"] == "usr_emp"
        assert me.json()["data"]["role"] == "employee"

    def test_unknown_token_is_401(self, client):
        response = client.post("/auth/verify", json={"token": "bogus"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    def test_reused_token_is_409(self, client, store):
        client.post("/auth/request-link", json={"email": "eve@acme.com"})
        token = store.query(MAGIC_LINKS, {"email": "eve@acme.com"})[0]["token"]
        client.post("/auth/verify", json={"token": token})

        response = client.post("/auth/verify", json={"token": token})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_USED"

    def test_expired_token_is_410(self, client, store, expire):
        client.post("/auth/request-link", json={"email": "eve@acme.com"})
        link = store.query(MAGIC_LINKS, {"email": "eve@acme.com"})[0]
        expire(MAGIC_LINKS, link["id"], link["token"])

        response = client.post("/auth/verify", json={"token": link["token"]})

        assert response.status_code == 410
        assert response.json()["error"]["code"] == "EXPIRED"


class TestMe:
    """GET /auth/me"""

    def test_expired_session_is_401(self, client, session_manager, expire):
        session = session_manager.create_session("usr_emp", UserType.EMPLOYEE, "eve@acme.com")
        expire(SESSIONS, session.id, session.token)

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {session.token}"})

        assert response.status_code == 401

    def test_custom_header(self, store, mock_email_client, sign_in):
        """Token can travel in a configured non-standard header."""
        app = create_app(store, mock_email_client, AuthConfig(auth_header_name="X-Authorization"))
        headers = sign_in("usr_emp", UserType.EMPLOYEE, "eve@acme.com")

        response = TestClient(app).get(
            "/auth/me", headers={"X-Authorization": headers["Authorization"]}
        )

        assert response.status_code == 200

    def test_deactivated_user_session_is_401(self, client, sign_in):
        """Deactivating a user cuts off sessions issued before."""
        headers = sign_in("usr_gone", UserType.EMPLOYEE, "ian@acme.com")

        response = client.get("/auth/me", headers=headers)

        assert response.status_code == 401


class TestManagerInvite:
    """POST /manager/employees/{employee_id}/invite - manager-only."""

    def test_no_token_is_unauthenticated(self, client, mock_email_client):
        response = client.post("/manager/employees/usr_new/invite", json=_invite_body())

        assert response.status_code == 401
        mock_email_client.send_email.assert_not_called()

    def test_employee_is_forbidden(self, client, as_employee, mock_email_client):
        response = client.post(
            "/manager/employees/usr_new/invite", json=_invite_body(), headers=as_employee
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"
        mock_email_client.send_email.assert_not_called()

    def test_admin_succeeds(self, client, as_admin):
        response = client.post(
            "/manager/employees/usr_new/invite", json=_invite_body(), headers=as_admin
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "pending"

    def test_manager_of_company_succeeds(self, client, as_manager, store):
        response = client.post(
            "/manager/employees/usr_new/invite", json=_invite_body(), headers=as_manager
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["user_id"] == "usr_new"
        assert "token" not in data
        stored = store.query(INVITATIONS, {"user_id": "usr_new"})
        assert stored[0]["sent_by_user_id"] == "usr_mgr"

    def test_manager_of_other_company_is_forbidden(self, client, as_other_manager, security_events):
        """Tenant scoping: Globex manager cannot invite Acme employees."""
        response = client.post(
            "/manager/employees/usr_new/invite", json=_invite_body(), headers=as_other_manager
        )

        assert response.status_code == 403
        events = security_events(SecurityEvent.ACCESS_DENIED)
        assert events[0]["user_id"] == "usr_mgr2"

    def test_unknown_employee_is_404(self, client, as_manager):
        response = client.post(
            "/manager/employees/usr_missing/invite", json=_invite_body(), headers=as_manager
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    def test_delivery_failure_is_503(self, client, as_manager, mock_email_client):
        mock_email_client.send_email.side_effect = EmailGatewayError("down")

        response = client.post(
            "/manager/employees/usr_new/invite", json=_invite_body(), headers=as_manager
        )

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "EMAIL_DELIVERY_FAILED"


class TestManagementInvite:
    """POST /management/managers/{manager_id}/invite - admin-only."""

    def test_manager_is_forbidden(self, client, as_manager):
        response = client.post(
            "/management/managers/usr_mgr_new/invite",
            json=_invite_body("co_globex", "max@globex.com"),
            headers=as_manager,
        )

        assert response.status_code == 403

    def test_admin_succeeds(self, client, as_admin):
        response = client.post(
            "/management/managers/usr_mgr_new/invite",
            json=_invite_body("co_globex", "max@globex.com"),
            headers=as_admin,
        )

        assert response.status_code == 200


class TestInvitationRoutes:
    """GET /invitation/{token} and POST /invitation/{token}/accept"""

    @pytest.fixture
    def invitation(self, invitation_service):
        return invitation_service.invite_company_user(
            user_id="usr_new",
            company_id="co_acme",
            invited_email="nina@acme.com",
            user_type=UserType.EMPLOYEE,
            sent_by_user_id="usr_mgr",
        )

    def test_preview(self, client, invitation):
        response = client.get(f"/invitation/{invitation.token}")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["user_name"] == "Nina New"
        assert data["company_name"] == "Acme Corp"

    def test_preview_unknown_is_404(self, client):
        response = client.get("/invitation/nope")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "INVALID_INVITATION"

    def test_preview_expired_is_410(self, client, invitation, expire):
        expire(INVITATIONS, invitation.id, invitation.company_id)

        response = client.get(f"/invitation/{invitation.token}")

        assert response.status_code == 410
        assert response.json()["error"]["code"] == "INVITATION_EXPIRED"

    def test_accept_then_use_session(self, client, invitation):
        accepted = client.post(f"/invitation/{invitation.token}/accept")

        assert accepted.status_code == 200
        token = accepted.json()["data"]["session_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["email"] == "nina@acme.com"

    def test_accept_twice_is_409(self, client, invitation):
        client.post(f"/invitation/{invitation.token}/accept")

        response = client.post(f"/invitation/{invitation.token}/accept")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVITATION_ALREADY_ACCEPTED"

    def test_preview_after_accept_is_409(self, client, invitation):
        client.post(f"/invitation/{invitation.token}/accept")

        response = client.get(f"/invitation/{invitation.token}")

        assert response.status_code == 409

    def test_email_in_use_is_409(self, client, invitation_service):
        invitation = invitation_service.invite_company_user(
            user_id="usr_new",
            company_id="co_acme",
            invited_email="mona@acme.com",
            user_type=UserType.EMPLOYEE,
            sent_by_user_id="usr_mgr",
        )

        response = client.post(f"/invitation/{invitation.token}/accept")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_IN_USE"

    def test_deactivated_user_accept_is_403(self, client, invitation_service, store):
        invitation = invitation_service.invite_company_user(
            user_id="usr_gone",
            company_id="co_acme",
            invited_email="ian@acme.com",
            user_type=UserType.EMPLOYEE,
            sent_by_user_id="usr_mgr",
        )

        response = client.post(f"/invitation/{invitation.token}/accept")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "USER_INACTIVE"
        assert store.query(SESSIONS, {}) == []


class TestDevRoutes:
    """/dev/status, /dev/login and /dev/users"""

    def test_status_reports_dev_mode_off(self, client):
        response = client.get("/dev/status")

        assert response.json()["data"] == {"dev_mode": False}

    def test_login_forbidden_outside_dev_mode(self, client):
        response = client.post("/dev/login", json={"user_id": "usr_emp", "user_type": "employee"})

        assert response.status_code == 403

    def test_login_in_dev_mode(self, store, mock_email_client):
        client = TestClient(create_app(store, mock_email_client, AuthConfig(dev_mode=True)))

        response = client.post("/dev/login", json={"user_id": "usr_emp", "user_type": "employee"})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == "usr_emp"
        assert client.get("/dev/status").json()["data"]["dev_mode"] is True

    def test_users_forbidden_outside_dev_mode(self, client):
        response = client.get("/dev/users")

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_users_in_dev_mode(self, store, mock_email_client):
        client = TestClient(create_app(store, mock_email_client, AuthConfig(dev_mode=True)))

        response = client.get("/dev/users")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["admins"] == [
            {
                "id": "adm_1",
                "email": "Admin@EyeQ.io",
                "first_name": "Ada",
                "last_name": "Admin",
                "company_id": None,
            }
        ]
        assert {u["id"] for u in data["managers"]} == {"usr_mgr", "usr_mgr2", "usr_mgr_new"}
        assert "usr_gone" not in {u["id"] for u in data["employees"]}
