"""
test_registrations.py — BaridiMob self-registration and admin review.
"""

import io
import json
from datetime import datetime, timedelta, timezone

import pytest


def _form(**overrides):
    body = {
        "first_name":     "Amina",
        "last_name":      "Benali",
        "email":          "amina@test.dz",
        "phone":          "0555123456",
        "wilaya":         "Alger",
        "diploma":        "Master",
        "selected_offer": "basic",
        "payment_type":   "partial",
        "selected_countries": ["Germany"],
        "baridimob_info": {
            "email": "payer@test.dz",
            "rip":   "00799999001234567890",
            "ccp":   "1234567",
            "key":   "42",
        },
    }
    body.update(overrides)
    return body


@pytest.fixture
def registered(client):
    """Submit a default registration and return the response data."""
    r = client.post("/client/register", json=_form())
    assert r.status_code == 201
    return r.get_json()["data"]


class TestRegister:
    def test_partial_registration(self, app, client):
        from models import PendingRegistration
        r = client.post("/client/register", json=_form())
        assert r.status_code == 201
        data = r.get_json()["data"]
        assert data["amount"] == 12500
        assert data["credentials"]["email"] == "amina@test.dz"
        assert data["credentials"]["password"].startswith("amina-benali-")

        with app.app_context():
            from database import db
            pending = db.session.get(PendingRegistration, data["pending_id"])
            assert pending.status.value == "pending_verification"
            assert "password" not in pending.registration_data
            assert pending.registration_data["password_hash"] != data["credentials"]["password"]
            assert pending.payment_details["baridimob_info"]["rip"] == "00799999001234567890"

    def test_full_payment_gets_discount(self, client):
        r = client.post("/client/register", json=_form(payment_type="full", selected_offer="premium"))
        assert r.get_json()["data"]["amount"] == 49000

    def test_multipart_with_receipt(self, app, client):
        form = _form()
        form["selected_countries"] = json.dumps(form["selected_countries"])
        form["baridimob_info"] = json.dumps(form["baridimob_info"])
        form["receipt"] = (io.BytesIO(b"%PDF-1.4 receipt"), "receipt.pdf")
        r = client.post("/client/register", data=form, content_type="multipart/form-data")
        assert r.status_code == 201

        from models import PendingRegistration
        with app.app_context():
            from database import db
            pending = db.session.get(PendingRegistration, r.get_json()["data"]["pending_id"])
            assert pending.payment_details["receipt_url"].startswith("receipts/registration_")

    def test_invalid_fields_are_listed(self, client):
        r = client.post("/client/register", json=_form(
            email="not-an-email",
            baridimob_info={"email": "payer@test.dz", "rip": "123", "ccp": "12a", "key": "4"},
        ))
        assert r.status_code == 400
        body = r.get_json()
        assert not body["success"]
        assert "email is invalid" in body["details"]
        assert "baridimob_info.rip must be exactly 20 digits" in body["details"]
        assert "baridimob_info.ccp must contain digits only" in body["details"]
        assert "baridimob_info.key must be exactly 2 digits" in body["details"]

    def test_unknown_offer(self, client):
        r = client.post("/client/register", json=_form(selected_offer="platinum"))
        assert r.status_code == 400

    def test_existing_client_email(self, client, make_client):
        make_client(email="amina@test.dz")
        r = client.post("/client/register", json=_form())
        assert r.status_code == 400

    def test_status_polling(self, client, registered):
        r = client.get(f"/client/registration-status?id={registered['pending_id']}")
        assert r.get_json()["data"]["status"] == "pending_verification"

    def test_status_unknown_id(self, client):
        assert client.get("/client/registration-status?id=nope").status_code == 404


class TestReview:
    def test_list_pending(self, admin_client, registered):
        data = admin_client.get("/admin/registrations").get_json()["data"]
        assert data["count"] == 1
        reg = data["registrations"][0]
        assert reg["registration_id"] == registered["pending_id"]
        assert reg["client"]["email"] == "amina@test.dz"
        assert reg["payment"]["amount"] == 12500

    def test_list_requires_admin(self, client):
        assert client.get("/admin/registrations").status_code == 401

    def test_approve_creates_client_with_verified_payment(self, app, admin_client, registered):
        from models import Payment, PendingRegistration
        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        assert r.status_code == 200
        client_id = r.get_json()["data"]["client_id"]

        c = admin_client.get(f"/api/clients/{client_id}").get_json()["data"]["client"]
        assert c["email"] == "amina@test.dz"
        assert c["payment_status"] == "paid"
        assert c["paid_amount"] == 12500

        with app.app_context():
            from database import db
            payment = Payment.query.filter_by(client_id=client_id).one()
            assert payment.status.value == "verified"
            assert payment.payment_method.value == "baridimob"
            assert payment.verified_by == app._test_admin_id
            pending = db.session.get(PendingRegistration, registered["pending_id"])
            assert pending.status.value == "approved"

    def test_approved_client_can_log_in(self, client, admin_client, registered):
        admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        r = client.post("/auth/client/login", json=registered["credentials"])
        assert r.status_code == 200

    def test_approve_twice(self, admin_client, registered):
        admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        assert r.status_code == 400

    def test_approve_expired(self, app, admin_client, registered):
        from database import db
        from models import PendingRegistration
        with app.app_context():
            pending = db.session.get(PendingRegistration, registered["pending_id"])
            pending.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
            db.session.commit()

        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        assert r.status_code == 400
        with app.app_context():
            assert db.session.get(PendingRegistration, registered["pending_id"]).status.value == "expired"

    def test_approve_when_email_taken_meanwhile(self, app, admin_client, make_client, registered):
        from database import db
        from models import PendingRegistration
        make_client(email="amina@test.dz")
        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/approve")
        assert r.status_code == 400
        with app.app_context():
            pending = db.session.get(PendingRegistration, registered["pending_id"])
            assert pending.status.value == "rejected"

    def test_reject_requires_reason(self, admin_client, registered):
        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/reject", json={})
        assert r.status_code == 400

    def test_reject(self, client, admin_client, registered, monkeypatch):
        queued = []
        monkeypatch.setattr("routes.admin.queue_notification", lambda task, *args: queued.append(args))
        r = admin_client.post(
            f"/admin/registrations/{registered['pending_id']}/reject",
            json={"reason": "Receipt unreadable"},
        )
        assert r.status_code == 200
        assert queued == [("amina@test.dz", "Amina Benali", "Receipt unreadable")]

        status = client.get(f"/client/registration-status?id={registered['pending_id']}").get_json()["data"]
        assert status == {"status": "rejected", "rejection_reason": "Receipt unreadable"}

    def test_unknown_registration(self, admin_client):
        assert admin_client.post("/admin/registrations/nope/approve").status_code == 404

    def test_stats_count_pending(self, admin_client, registered):
        data = admin_client.get("/admin/stats").get_json()["data"]
        assert data["pending_registrations"] == 1


class TestRegisterInputTypes:
    @pytest.mark.parametrize("field,value", [
        ("first_name", 123),
        ("email", 5),
        ("phone", ["0555123456"]),
        ("selected_offer", ["basic"]),
    ])
    def test_non_string_field_is_invalid(self, client, field, value):
        r = client.post("/client/register", json=_form(**{field: value}))
        assert r.status_code == 400
        assert not r.get_json()["success"]

    def test_non_string_reject_reason(self, admin_client, registered):
        r = admin_client.post(f"/admin/registrations/{registered['pending_id']}/reject", json={"reason": 7})
        assert r.status_code == 400


class TestReceiptCleanup:
    def _receipts(self, app):
        import os
        folder = os.path.join(app.config["UPLOAD_FOLDER"], "receipts")
        return os.listdir(folder) if os.path.isdir(folder) else []

    def test_rejected_registration_keeps_no_receipt(self, app, client):
        form = _form(first_name="")
        form["selected_countries"] = json.dumps(form["selected_countries"])
        form["baridimob_info"] = json.dumps(form["baridimob_info"])
        form["receipt"] = (io.BytesIO(b"%PDF-1.4 receipt"), "receipt.pdf")
        r = client.post("/client/register", data=form, content_type="multipart/form-data")
        assert r.status_code == 400
        assert self._receipts(app) == []

    def test_rejected_second_payment_keeps_no_receipt(self, app, make_client, login_as_client):
        cid = make_client(payments=[("pending", 12500)])
        r = login_as_client(cid).post(
            "/client/second-payment",
            data={"payment_method": "baridimob", "receipt": (io.BytesIO(b"\x89PNG"), "proof.png")},
            content_type="multipart/form-data",
        )
        assert r.status_code == 400
        assert self._receipts(app) == []

    def test_accepted_registration_keeps_receipt(self, app, client):
        form = _form()
        form["selected_countries"] = json.dumps(form["selected_countries"])
        form["baridimob_info"] = json.dumps(form["baridimob_info"])
        form["receipt"] = (io.BytesIO(b"%PDF-1.4 receipt"), "receipt.pdf")
        assert client.post("/client/register", data=form, content_type="multipart/form-data").status_code == 201
        assert len(self._receipts(app)) == 1
