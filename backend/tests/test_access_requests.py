"""
Sign-up requests and their review.
"""

from fleur.models import Customer, Employee, User, UserAccessRequest

from conftest import get_auth_token


def _submit(client, **overrides):
    body = {
        "full_name": "Nguyễn Thị Hạnh",
        "email": "hanh@fleur.test",
        "password": "hoatuoi1",
        "requested_role": "customer",
        "phone": "0912345678",
        "address": "88 Nguyễn Huệ",
        "zalo_name": "Hanh Nguyen",
    }
    body.update(overrides)
    return client.post("/api/access-requests", json=body)


class TestSubmit:

    def test_submit_is_public(self, client, db_session):
        resp = _submit(client)
        assert resp.status_code == 201
        assert resp.json["request"]["status"] == "pending"
        assert "password_hash" not in resp.json["request"]

    def test_duplicate_pending_email(self, client, db_session):
        _submit(client)
        resp = _submit(client, email="HANH@fleur.test")
        assert resp.status_code == 409

    def test_registered_email(self, client, db_session, staff_user):
        resp = _submit(client, email="staff@fleur.test")
        assert resp.status_code == 409

    def test_customer_needs_contact(self, client, db_session):
        resp = _submit(client, address="")
        assert resp.status_code == 400

    def test_unknown_role(self, client, db_session):
        resp = _submit(client, requested_role="admin")
        assert resp.status_code == 400

    def test_short_password(self, client, db_session):
        resp = _submit(client, password="123")
        assert resp.status_code == 400


class TestReview:

    def test_approve_customer_creates_identity_and_customer(self, client, db_session, manager_headers):
        request_id = _submit(client).json["request"]["id"]

        resp = client.post(f"/api/access-requests/{request_id}/approve", headers=manager_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["user"]["role"] == "customer"
        assert resp.json["customer"]["phone"] == "0912345678"

        assert db_session.query(UserAccessRequest).count() == 0
        assert db_session.query(Customer).filter_by(email="hanh@fleur.test").count() == 1
        assert db_session.query(Employee).filter_by(email="hanh@fleur.test").count() == 0

        # The password given at sign-up works
        assert get_auth_token(client, "hanh@fleur.test", "hoatuoi1")

    def test_approve_employee_creates_staff(self, client, db_session, manager_headers):
        request_id = _submit(client, requested_role="employee", email="tam@fleur.test").json["request"]["id"]

        resp = client.post(f"/api/access-requests/{request_id}/approve", headers=manager_headers)
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "staff"
        assert resp.json["employee"]["position"] == "STAFF"
        assert db_session.query(Customer).count() == 0

    def test_reject_only_deletes_request(self, client, db_session, manager_headers):
        request_id = _submit(client).json["request"]["id"]

        resp = client.post(f"/api/access-requests/{request_id}/reject", json={"reason": "Spam"},
                           headers=manager_headers)
        assert resp.status_code == 200
        assert db_session.query(UserAccessRequest).count() == 0
        assert db_session.query(User).filter_by(email="hanh@fleur.test").count() == 0

    def test_staff_cannot_review(self, client, db_session, staff_headers):
        request_id = _submit(client).json["request"]["id"]
        resp = client.post(f"/api/access-requests/{request_id}/approve", headers=staff_headers)
        assert resp.status_code == 403
        assert db_session.query(UserAccessRequest).count() == 1

    def test_approve_missing_request(self, client, db_session, manager_headers):
        resp = client.post("/api/access-requests/999/approve", headers=manager_headers)
        assert resp.status_code == 404

    def test_approve_without_credential_keeps_request(self, app, client, db_session, manager_headers,
                                                      monkeypatch):
        request_id = _submit(client).json["request"]["id"]
        monkeypatch.setitem(app.config, "PROVISIONING_CREDENTIALS", None)

        resp = client.post(f"/api/access-requests/{request_id}/approve", headers=manager_headers)
        assert resp.status_code == 503
        assert db_session.query(UserAccessRequest).count() == 1
        assert db_session.query(User).filter_by(email="hanh@fleur.test").count() == 0
