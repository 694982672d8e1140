"""
Unit tests for API routes
"""

import uuid
import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from identity_service.main import app
from identity_service.models.oauth import ClientRegistryInfo
from identity_service.utils.dependencies import get_current_user

USER = {'id': str(uuid.uuid4()), 'email': 'ada@example.com', 'email_verified': True}
CLIENT_ID = "tnp_0123456789abcdef"
SESSION_TOKEN = "tnp_" + "ab" * 16


@pytest.fixture
def client():
    """Test client without lifespan (no database or Redis)"""
    return TestClient(app)


@pytest.fixture
def authed_client():
    """Test client with an authenticated user"""
    app.dependency_overrides[get_current_user] = lambda: USER
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthRoutes:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req_test"})
        assert response.headers["X-Request-ID"] == "req_test"


class TestClientRegistrationRoute:
    def test_register_client(self, client):
        info = ClientRegistryInfo(CLIENT_ID, "Demo Hr", "demo-hr", "localhost")
        with patch("identity_service.routes.oauth.ClientRegistryService.get_or_create_client",
                   new=AsyncMock(return_value={'success': True, 'client': info, 'created': True})) as create:
            response = client.get("/api/oauth/apps/demo-hr", headers={"Origin": "http://localhost:3000"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["client"]["client_id"] == CLIENT_ID
        assert body["request_id"]
        create.assert_awaited_once_with("localhost", "demo-hr")

    def test_missing_origin(self, client):
        response = client.get("/api/oauth/apps/demo-hr")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "MISSING_ORIGIN_HEADER"

    def test_invalid_domain(self, client):
        response = client.get("/api/oauth/apps/demo-hr", headers={"Origin": "http://bad_domain.example"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DOMAIN_FORMAT"

    def test_invalid_app_name(self, client):
        response = client.get("/api/oauth/apps/Demo_HR", headers={"Origin": "http://localhost"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "app_name"

    def test_generation_failure(self, client):
        failure = {
            'success': False,
            'error_code': 'CLIENT_ID_GENERATION_FAILED',
            'error': 'Failed to generate unique client ID after multiple attempts'
        }
        with patch("identity_service.routes.oauth.ClientRegistryService.get_or_create_client",
                   new=AsyncMock(return_value=failure)):
            response = client.get("/api/oauth/apps/demo-hr", headers={"Referer": "http://localhost/x"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "CLIENT_ID_GENERATION_FAILED"


class TestAuthorizeRoute:
    def _body(self, **overrides):
        body = {
            "client_id": CLIENT_ID,
            "context_id": str(uuid.uuid4()),
            "return_url": "https://hr.example.com/callback",
            "state": "xyz"
        }
        body.update(overrides)
        return body

    def test_requires_authentication(self, client):
        response = client.post("/api/oauth/authorize", json=self._body())

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    def test_authorize(self, authed_client):
        result = {
            'success': True,
            'session_token': SESSION_TOKEN,
            'expires_at': '2025-01-01T02:00:00+00:00',
            'redirect_url': f"https://hr.example.com/callback?token={SESSION_TOKEN}&state=xyz",
            'client': {'client_id': CLIENT_ID, 'display_name': 'Demo Hr', 'publisher_domain': 'localhost'},
            'context': {'id': 'ctx', 'context_name': 'Work'}
        }
        with patch("identity_service.routes.oauth.AuthorizationService.authorize",
                   new=AsyncMock(return_value=result)) as authorize:
            response = authed_client.post("/api/oauth/authorize", json=self._body())

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["session_token"] == SESSION_TOKEN
        assert "success" not in data
        assert authorize.call_args.args[0] == USER['id']

    @pytest.mark.parametrize("overrides", [
        {"client_id": "tnp_short"},
        {"context_id": "not-a-uuid"},
        {"return_url": "/relative/callback"},
        {"state": "s" * 256},
    ])
    def test_validation_errors(self, authed_client, overrides):
        response = authed_client.post("/api/oauth/authorize", json=self._body(**overrides))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_client(self, authed_client):
        failure = {'success': False, 'error_code': 'CLIENT_NOT_FOUND', 'error': 'OAuth client is not registered'}
        with patch("identity_service.routes.oauth.AuthorizationService.authorize",
                   new=AsyncMock(return_value=failure)):
            response = authed_client.post("/api/oauth/authorize", json=self._body())

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CLIENT_NOT_FOUND"


class TestResolveRoute:
    def test_missing_bearer_token(self, client):
        response = client.post("/api/oauth/resolve")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_REQUIRED"

    def test_malformed_bearer_token(self, client):
        response = client.post("/api/oauth/resolve", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_resolve(self, client):
        result = {'success': True, 'claims': {'sub': USER['id'], 'name': 'Ada Lovelace'}, 'response_time_ms': 4.2}
        with patch("identity_service.routes.oauth.ResolutionService.resolve_claims",
                   new=AsyncMock(return_value=result)) as resolve:
            response = client.post("/api/oauth/resolve", headers={"Authorization": f"Bearer {SESSION_TOKEN}"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["claims"]["name"] == "Ada Lovelace"
        assert data["performance"]["response_time_ms"] == 4.2
        assert "resolved_at" in data
        resolve.assert_awaited_once_with(SESSION_TOKEN)

    @pytest.mark.parametrize("error,status_code,code", [
        ("invalid_token", 401, "INVALID_TOKEN"),
        ("no_context_assigned", 400, "NO_CONTEXT_ASSIGNED"),
        ("client_not_registered", 400, "RESOLUTION_FAILED"),
    ])
    def test_resolution_errors(self, client, error, status_code, code):
        failure = {'success': False, 'error': error, 'message': 'failed'}
        with patch("identity_service.routes.oauth.ResolutionService.resolve_claims",
                   new=AsyncMock(return_value=failure)):
            response = client.post("/api/oauth/resolve", headers={"Authorization": f"Bearer {SESSION_TOKEN}"})

        assert response.status_code == status_code
        assert response.json()["error"]["code"] == code


class TestConnectedAppRoutes:
    def test_revoke(self, authed_client):
        result = {'success': True, 'client_id': CLIENT_ID, 'revoked_sessions': 2, 'assignment_removed': True}
        with patch("identity_service.routes.oauth.ConnectedAppsService.revoke_app",
                   new=AsyncMock(return_value=result)) as revoke:
            response = authed_client.post("/api/oauth/revoke", json={"client_id": CLIENT_ID})

        assert response.status_code == 200
        assert response.json()["data"]["revoked_sessions"] == 2
        revoke.assert_awaited_once_with(USER['id'], CLIENT_ID, True)

    def test_default_assignment_unknown_client(self, authed_client):
        with patch("identity_service.routes.oauth.ClientRegistryService.get_client",
                   new=AsyncMock(return_value=None)):
            response = authed_client.post(f"/api/oauth/assignments/{CLIENT_ID}/default")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CLIENT_NOT_FOUND"

    def test_delete_missing_session(self, authed_client):
        failure = {'success': False, 'error_code': 'SESSION_NOT_FOUND', 'error': 'Session not found'}
        with patch("identity_service.routes.oauth.ConnectedAppsService.delete_session",
                   new=AsyncMock(return_value=failure)):
            response = authed_client.delete(f"/api/oauth/sessions/{uuid.uuid4()}")

        assert response.status_code == 404


class TestIdentityRoutes:
    def test_protected_assignment(self, authed_client):
        failure = {
            'success': False,
            'error_code': 'PROTECTED_ASSIGNMENT',
            'error': "'name' is required in the permanent context and cannot be removed"
        }
        with patch("identity_service.routes.identity.AssignmentService.remove_assignment",
                   new=AsyncMock(return_value=failure)):
            response = authed_client.request(
                "DELETE", "/api/assignments/oidc",
                json={"context_id": str(uuid.uuid4()), "oidc_property": "name"}
            )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PROTECTED_ASSIGNMENT"

    def test_unknown_oidc_property_rejected(self, authed_client):
        response = authed_client.post("/api/assignments/oidc", json={
            "context_id": str(uuid.uuid4()),
            "name_id": str(uuid.uuid4()),
            "oidc_property": "birthdate"
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_auto_populate_missing_context(self, authed_client):
        failure = {'success': False, 'error': 'context_not_found', 'message': 'Target context does not exist'}
        with patch("identity_service.routes.identity.AssignmentService.auto_populate_context",
                   new=AsyncMock(return_value=failure)):
            response = authed_client.post(f"/api/contexts/{uuid.uuid4()}/auto-populate")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CONTEXT_NOT_FOUND"

    def test_name_can_delete_metadata(self, authed_client):
        name_id = str(uuid.uuid4())
        decision = {
            'can_delete': False,
            'reason': 'Cannot delete last remaining name',
            'reason_code': 'LAST_NAME_PROTECTION',
            'protection_type': 'last_name',
            'name_count': 1,
            'permanent_contexts': []
        }
        with patch("identity_service.routes.identity.AssignmentService.can_delete_name",
                   new=AsyncMock(return_value=decision)):
            response = authed_client.get(f"/api/names/{name_id}/can-delete")

        data = response.json()["data"]
        assert data["reason_code"] == "LAST_NAME_PROTECTION"
        assert data["metadata"] == {"name_id": name_id, "user_id": USER['id']}


class TestAuthRoutes:
    def test_login_invalid_credentials(self, client):
        with patch("identity_service.routes.auth.AuthService.authenticate_user",
                   new=AsyncMock(return_value={'success': False, 'error': 'Invalid email or password'})):
            response = client.post("/auth/login", json={"email": "ada@example.com", "password": "x"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_register_duplicate(self, client):
        failure = {'success': False, 'error_code': 'EMAIL_EXISTS', 'error': 'An account with this email already exists'}
        with patch("identity_service.routes.auth.AuthService.register_user", new=AsyncMock(return_value=failure)):
            response = client.post("/auth/register", json={
                "email": "ada@example.com",
                "password": "Analytical1",
                "given_name": "Ada",
                "family_name": "Lovelace"
            })

        assert response.status_code == 409

    def test_register_overlong_full_name(self, client):
        register = AsyncMock()
        with patch("identity_service.routes.auth.AuthService.register_user", new=register):
            response = client.post("/auth/register", json={
                "email": "ada@example.com",
                "password": "Analytical1",
                "given_name": "G" * 60,
                "family_name": "F" * 60
            })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        register.assert_not_called()

    def test_me(self, authed_client):
        response = authed_client.get("/auth/me")

        assert response.status_code == 200
        assert response.json()["data"]["user"] == USER
