"""
Admin-only employee provisioning endpoint.

503 misconfigured credential (checked first), 401 missing/expired session,
403 non-admin, 400 missing fields or weak password, 409 email taken, 201 created.
"""

import pytest

from fleur.models import Employee, User

from conftest import auth_headers, get_auth_token


NEW_EMPLOYEE = {
    "email": "thu@fleur.test",
    "password": "hoatuoi1",
    "name": "Trần Thu",
    "position": "STAFF",
    "phone": "0933333333",
    "zaloName": "Thu Tran",
}


class TestCreateEmployee:

    def test_created(self, client, db_session, admin_headers):
        resp = client.post("/api/employees", json=NEW_EMPLOYEE, headers=admin_headers)
        assert resp.status_code == 201, resp.json

        user = db_session.query(User).filter_by(email="thu@fleur.test").one()
        assert resp.json["uid"] == user.id
        assert user.role == "staff"

        employee = db_session.query(Employee).filter_by(user_id=user.id).one()
        assert employee.zalo_name == "Thu Tran"
        assert get_auth_token(client, "thu@fleur.test", "hoatuoi1")

    def test_vietnamese_position_label(self, client, db_session, admin_headers):
        resp = client.post("/api/employees", json={**NEW_EMPLOYEE, "position": "Quản lý"}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["employee"]["position"] == "MANAGER"
        assert db_session.query(User).filter_by(email="thu@fleur.test").one().role == "manager"

    def test_missing_session(self, client, db_session):
        resp = client.post("/api/employees", json=NEW_EMPLOYEE)
        assert resp.status_code == 401

    def test_expired_session(self, client, db_session, admin_user):
        resp = client.post("/api/employees", json=NEW_EMPLOYEE, headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    @pytest.mark.parametrize("caller", ["manager_headers", "staff_headers", "customer_headers"])
    def test_non_admin_forbidden(self, client, db_session, request, caller):
        headers = request.getfixturevalue(caller)
        resp = client.post("/api/employees", json=NEW_EMPLOYEE, headers=headers)
        assert resp.status_code == 403
        assert db_session.query(User).filter_by(email="thu@fleur.test").count() == 0

    @pytest.mark.parametrize("field", ["email", "password", "name", "position"])
    def test_missing_field(self, client, db_session, admin_headers, field):
        body = {k: v for k, v in NEW_EMPLOYEE.items() if k != field}
        resp = client.post("/api/employees", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_short_password(self, client, db_session, admin_headers):
        resp = client.post("/api/employees", json={**NEW_EMPLOYEE, "password": "12345"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_email_taken(self, client, db_session, admin_headers, staff_user):
        resp = client.post("/api/employees", json={**NEW_EMPLOYEE, "email": "Staff@fleur.test"},
                           headers=admin_headers)
        assert resp.status_code == 409

    def test_missing_credential_is_503(self, app, client, db_session, admin_headers, monkeypatch):
        monkeypatch.setitem(app.config, "PROVISIONING_CREDENTIALS", None)
        resp = client.post("/api/employees", json=NEW_EMPLOYEE, headers=admin_headers)
        assert resp.status_code == 503
        assert db_session.query(User).filter_by(email="thu@fleur.test").count() == 0

    def test_malformed_credential_is_503_even_for_non_admin(self, app, client, db_session, staff_headers,
                                                            monkeypatch):
        monkeypatch.setitem(app.config, "PROVISIONING_CREDENTIALS", '{"type": "user"}')
        resp = client.post("/api/employees", json=NEW_EMPLOYEE, headers=staff_headers)
        assert resp.status_code == 503

    def test_missing_credential_is_503_before_session_check(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "PROVISIONING_CREDENTIALS", None)
        resp = client.post("/api/employees", json=NEW_EMPLOYEE)
        assert resp.status_code == 503
        assert "not configured" in resp.json["error"]


class TestListEmployees:

    def test_staff_can_list(self, client, db_session, staff_headers, manager_user):
        resp = client.get("/api/employees", headers=staff_headers)
        assert resp.status_code == 200
        assert {e["position"] for e in resp.json["items"]} == {"STAFF", "MANAGER"}

    def test_customers_cannot_list(self, client, db_session, customer_headers):
        resp = client.get("/api/employees", headers=customer_headers)
        assert resp.status_code == 403
