"""
test_client_portal.py — Logged-in client profile, stages and second payment.
"""

import io


class TestProfile:
    def test_requires_login(self, client):
        r = client.get("/client/profile")
        assert r.status_code == 401

    def test_missing_client_clears_session(self, login_as_client):
        c = login_as_client("gone")
        assert c.get("/client/profile").status_code == 401

    def test_profile_has_projection_and_stages(self, make_client, login_as_client):
        cid = make_client(payments=[("verified", 12500)])
        data = login_as_client(cid).get("/client/profile").get_json()["data"]["client"]
        assert data["client_id"] == cid
        assert data["payment_status"] == "paid"
        assert len(data["stages"]) == 6
        assert data["second_payment_reminder"] is False

    def test_second_payment_reminder(self, admin_client, make_client, login_as_client):
        cid = make_client()
        admin_client.patch(f"/api/clients/{cid}/payment-status", json={"payment_status": "partially_paid"})
        admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 2, "status": "completed"})

        data = login_as_client(cid).get("/client/profile").get_json()["data"]["client"]
        assert data["payment_status"] == "partially_paid"
        assert data["second_payment_reminder"] is True

    def test_pending_verification_flag(self, make_client, login_as_client):
        cid = make_client(payments=[("paid", 12500)])
        data = login_as_client(cid).get("/client/profile").get_json()["data"]["client"]
        assert data["has_pending_verification"] is True

    def test_stages_view(self, make_client, login_as_client):
        cid = make_client()
        stages = login_as_client(cid).get("/client/stages").get_json()["data"]["stages"]
        assert [s["stage_number"] for s in stages] == [1, 2, 3, 4, 5, 6]


class TestSecondPayment:
    def test_records_pending_half(self, app, make_client, login_as_client):
        from models import Payment, PaymentType
        cid = make_client(offer="premium", payments=[("verified", 25000)])
        c = login_as_client(cid)
        r = c.post("/client/second-payment", json={"payment_method": "baridimob"})
        assert r.status_code == 201
        payment = r.get_json()["data"]["payment"]
        assert payment["payment_type"] == "second"
        assert payment["status"] == "pending"
        assert payment["amount"] == 25000

        data = c.get("/client/profile").get_json()["data"]["client"]
        assert data["payment_status"] == "partially_paid"
        assert data["remaining_amount"] == 25000

    def test_resubmission_updates_in_place(self, app, make_client, login_as_client):
        from models import Payment, PaymentType
        cid = make_client(payments=[("verified", 12500)])
        c = login_as_client(cid)
        c.post("/client/second-payment", json={"payment_method": "baridimob"})
        r = c.post("/client/second-payment", json={"payment_method": "cib"})
        assert r.get_json()["data"]["payment"]["payment_method"] == "cib"
        with app.app_context():
            assert Payment.query.filter_by(client_id=cid, payment_type=PaymentType.second).count() == 1

    def test_multipart_receipt(self, make_client, login_as_client):
        cid = make_client(payments=[("verified", 12500)])
        r = login_as_client(cid).post(
            "/client/second-payment",
            data={"payment_method": "baridimob", "receipt": (io.BytesIO(b"\x89PNG"), "proof.png")},
            content_type="multipart/form-data",
        )
        assert r.status_code == 201
        assert r.get_json()["data"]["payment"]["receipt_url"].startswith("receipts/second_payment_")

    def test_first_payment_required(self, make_client, login_as_client):
        cid = make_client(payments=[("pending", 12500)])
        r = login_as_client(cid).post("/client/second-payment", json={"payment_method": "baridimob"})
        assert r.status_code == 400

    def test_unknown_method(self, make_client, login_as_client):
        cid = make_client(payments=[("verified", 12500)])
        r = login_as_client(cid).post("/client/second-payment", json={"payment_method": "cash"})
        assert r.status_code == 400

    def test_admin_verifies_second_payment(self, app, admin_client, make_client, login_as_client):
        cid = make_client(payments=[("verified", 12500)])
        pid = login_as_client(cid).post(
            "/client/second-payment", json={"payment_method": "baridimob"}
        ).get_json()["data"]["payment"]["payment_id"]

        r = admin_client.patch(f"/api/clients/{cid}/payments/{pid}/verify")
        client = r.get_json()["data"]["client"]
        assert client["payment_status"] == "paid"
        assert client["paid_amount"] == 25000
