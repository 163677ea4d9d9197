"""
Login sessions, route authorization and the security event log.
"""

from datetime import timedelta

import pytest

from fleur.models import SecurityEvent, SessionToken
from fleur.services import session_service
from fleur.time_utils import utcnow

from conftest import PASSWORD, auth_headers, get_auth_token


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessions:

    def test_login_returns_profile_and_token(self, client, db_session, staff_user):
        resp = client.post("/api/auth/login", json={"email": "STAFF@fleur.test", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["token"]
        user = resp.json["user"]
        assert user["role"] == "staff"
        assert "CREATE_INVOICE" in user["permissions"]
        assert user["full_access"] is False
        assert user["employee"]["name"] == "Nhân viên Mai"

    def test_token_is_stored_hashed(self, client, db_session, staff_user):
        token = get_auth_token(client, "staff@fleur.test")
        stored = db_session.query(SessionToken).one()
        assert stored.token_hash != token
        assert stored.token_hash == session_service.hash_token(token)

    def test_bad_password_is_logged(self, client, db_session, staff_user):
        resp = client.post("/api/auth/login", json={"email": "staff@fleur.test", "password": "wrong-one"})
        assert resp.status_code == 401
        event = db_session.query(SecurityEvent).one()
        assert event.event_type == "LOGIN_FAILED"
        assert event.success is False

    def test_missing_credentials(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "staff@fleur.test"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, db_session, staff_user):
        headers = auth_headers(get_auth_token(client, "staff@fleur.test"))
        assert client.get("/api/auth/me", headers=headers).status_code == 200
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_idle_session_expires(self, client, db_session, staff_user):
        headers = auth_headers(get_auth_token(client, "staff@fleur.test"))
        stored = db_session.query(SessionToken).one()
        stored.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_deactivated_user_loses_access(self, client, db_session, staff_user):
        headers = auth_headers(get_auth_token(client, "staff@fleur.test"))
        staff_user.is_active = False
        db_session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_customer_profile_includes_contact(self, client, db_session, customer_headers):
        resp = client.get("/api/auth/me", headers=customer_headers)
        assert resp.json["user"]["customer"]["phone"] == "0901234567"
        assert resp.json["user"]["employee"] is None


# =============================================================================
# ROUTE AUTHORIZATION
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("POST", "/api/products/receive"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("GET", "/api/debts"),
            ("GET", "/api/customers"),
            ("GET", "/api/employees"),
            ("GET", "/api/access-requests"),
            ("GET", "/api/security-events"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


class TestRoleBoundaries:

    def test_denial_is_logged(self, client, db_session, staff_headers, staff_user):
        resp = client.get("/api/security-events", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "VIEW_SECURITY_EVENTS"

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == staff_user.id
        assert event.action == "VIEW_SECURITY_EVENTS"

    def test_manager_reads_security_events(self, client, db_session, staff_headers, manager_headers):
        client.get("/api/security-events", headers=staff_headers)
        resp = client.get("/api/security-events", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["count"] >= 1

    def test_customer_cannot_sell(self, client, db_session, customer_headers, rose):
        resp = client.post("/api/invoices", json={
            "customer_name": "Tôi",
            "items": [{"product_id": rose.id, "quantity": 1}],
        }, headers=customer_headers)
        assert resp.status_code == 403

    def test_customer_cannot_see_debts(self, client, db_session, customer_headers):
        assert client.get("/api/debts", headers=customer_headers).status_code == 403


class TestCustomers:

    def test_staff_manage_customer_records(self, client, db_session, staff_headers):
        resp = client.post("/api/customers", json={"name": "Bà Sáu", "phone": "0908 888 888"},
                           headers=staff_headers)
        assert resp.status_code == 201, resp.json
        customer_id = resp.json["customer"]["id"]

        resp = client.patch(f"/api/customers/{customer_id}", json={"address": "3 Pasteur"}, headers=staff_headers)
        assert resp.json["customer"]["address"] == "3 Pasteur"

        resp = client.get("/api/customers", query_string={"search": "Sáu"}, headers=staff_headers)
        assert resp.json["count"] == 1

    def test_invalid_phone(self, client, db_session, staff_headers):
        resp = client.post("/api/customers", json={"name": "Bà Sáu", "phone": "abc"}, headers=staff_headers)
        assert resp.status_code == 400


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"
        provisioning = resp.json["checks"]["provisioning"]
        assert provisioning["status"] == "healthy"
        assert provisioning["details"]["project_id"] == "fleur-test"

    def test_health_degraded_without_provisioning_credential(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "PROVISIONING_CREDENTIALS", None)
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["provisioning"]["status"] == "degraded"

    def test_version(self, client):
        assert client.get("/version").json["api_version"]
