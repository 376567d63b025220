"""
JWT middleware and role checks.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

BASE = "/api/v1"


def _token(app, **overrides):
    now = datetime.now(timezone.utc)
    payload = {"sub": "7", "org_id": 1, "role": "service_advisor", "type": "access",
               "iat": now, "exp": now + timedelta(minutes=5)}
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm="HS256")


class TestJwtMiddleware:
    def test_missing_token_is_401(self, client, health_check):
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items")
        assert rv.status_code == 401
        assert rv.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_malformed_token_is_401(self, client, health_check):
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                        headers={"Authorization": "Bearer not.a.token"})
        assert rv.status_code == 401
        assert rv.get_json()["error"] == "Invalid token"

    def test_expired_token_is_401(self, app, client, org, health_check):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = _token(app, org_id=org.id, iat=past, exp=past + timedelta(minutes=5))
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                        headers={"Authorization": f"Bearer {token}"})
        assert rv.status_code == 401
        assert rv.get_json()["error"] == "Token expired"

    def test_wrong_secret_is_401(self, client, org, health_check):
        token = jwt.encode({"sub": "7", "org_id": org.id, "type": "access",
                            "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
                           "some-other-secret-that-is-long-enough", algorithm="HS256")
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                        headers={"Authorization": f"Bearer {token}"})
        assert rv.status_code == 401

    @pytest.mark.parametrize("override", [{"type": "refresh"}, {"org_id": None}])
    def test_token_shape_is_enforced(self, app, client, health_check, override):
        token = _token(app, **override)
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                        headers={"Authorization": f"Bearer {token}"})
        assert rv.status_code == 401

    def test_valid_token_is_accepted(self, client, health_check, headers):
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items", headers=headers)
        assert rv.status_code == 200


class TestHealthProbes:
    def test_liveness_needs_no_token(self, client):
        rv = client.get(f"{BASE}/health")
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "ok"

    def test_readiness_needs_no_token(self, client):
        rv = client.get(f"{BASE}/health/ready")
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "healthy"

    def test_health_check_routes_are_not_probes(self, client, health_check):
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/workflow-status")
        assert rv.status_code == 401


class TestRoles:
    def test_read_only_role_can_read(self, client, org, health_check, auth_headers):
        rv = client.get(f"{BASE}/health-checks/{health_check.id}/repair-items",
                        headers=auth_headers(org.id, role="technician"))
        assert rv.status_code == 200

    def test_read_only_role_cannot_mutate(self, client, org, health_check, auth_headers):
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json={"name": "Brake pads"},
                         headers=auth_headers(org.id, role="technician"))
        assert rv.status_code == 403
        body = rv.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert "service_advisor" in body["details"]["required"]

    @pytest.mark.parametrize("role", ["super_admin", "org_admin", "site_admin"])
    def test_admin_roles_can_mutate(self, client, org, health_check, auth_headers, role):
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json={"name": "Brake pads"}, headers=auth_headers(org.id, role=role))
        assert rv.status_code == 201


class TestErrorEnvelope:
    def test_unknown_route_is_json_404(self, client, headers):
        rv = client.get(f"{BASE}/nowhere", headers=headers)
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"

    def test_wrong_method_is_405(self, client, headers):
        rv = client.put(f"{BASE}/health", headers=headers)
        assert rv.status_code == 405

    def test_non_object_body_is_400(self, client, health_check, headers):
        rv = client.post(f"{BASE}/health-checks/{health_check.id}/repair-items",
                         json=["not", "an", "object"], headers=headers)
        assert rv.status_code == 400
