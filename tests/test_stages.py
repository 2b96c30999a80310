"""
test_stages.py — Six-stage case checklist.
"""

import pytest


class TestStageInitialisation:
    def test_first_read_creates_six_not_started_stages(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.get(f"/api/clients/{cid}/stages")
        assert r.status_code == 200
        stages = r.get_json()["data"]["stages"]
        assert [s["stage_number"] for s in stages] == [1, 2, 3, 4, 5, 6]
        assert all(s["status"] == "not_started" for s in stages)
        assert stages[1]["required_documents"] == ["CV", "Cover letter"]
        assert stages[3]["required_documents"] == ["Diplomas", "Transcripts"]

    def test_second_read_does_not_duplicate(self, app, admin_client, make_client):
        from models import Stage
        cid = make_client()
        admin_client.get(f"/api/clients/{cid}/stages")
        admin_client.get(f"/api/clients/{cid}/stages")
        with app.app_context():
            assert Stage.query.filter_by(client_id=cid).count() == 6

    def test_unknown_client_is_404(self, admin_client):
        r = admin_client.get("/api/clients/nope/stages")
        assert r.status_code == 404


class TestStageUpdate:
    def test_update_before_first_read(self, app, admin_client, make_client):
        from models import Stage
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 3, "status": "in_progress"})
        assert r.status_code == 200
        assert r.get_json()["data"]["stage"]["status"] == "in_progress"
        with app.app_context():
            assert Stage.query.filter_by(client_id=cid).count() == 6

    def test_notes_and_documents(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={
            "stage_number": 2,
            "notes": "CV received",
            "required_documents": ["CV"],
        })
        stage = r.get_json()["data"]["stage"]
        assert stage["notes"] == "CV received"
        assert stage["required_documents"] == ["CV"]
        assert stage["status"] == "not_started"

    def test_absent_notes_are_kept(self, admin_client, make_client):
        cid = make_client()
        admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "notes": "keep me"})
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "status": "completed"})
        stage = r.get_json()["data"]["stage"]
        assert stage["notes"] == "keep me"
        assert stage["status"] == "completed"

    def test_siblings_are_untouched(self, admin_client, make_client):
        cid = make_client()
        before = admin_client.get(f"/api/clients/{cid}/stages").get_json()["data"]["stages"]
        admin_client.put(f"/api/clients/{cid}/stages", json={
            "stage_number": 4, "status": "pending_review", "notes": "awaiting transcripts",
        })
        after = admin_client.get(f"/api/clients/{cid}/stages").get_json()["data"]["stages"]

        assert [s for s in after if s["stage_number"] != 4] == [s for s in before if s["stage_number"] != 4]
        updated = next(s for s in after if s["stage_number"] == 4)
        assert updated["status"] == "pending_review"
        assert updated["notes"] == "awaiting transcripts"

    def test_second_ensure_leaves_rows_unchanged(self, admin_client, make_client):
        cid = make_client()
        first = admin_client.get(f"/api/clients/{cid}/stages").get_json()["data"]["stages"]
        second = admin_client.get(f"/api/clients/{cid}/stages").get_json()["data"]["stages"]
        assert first == second

    def test_later_stage_may_complete_first(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 6, "status": "completed"})
        assert r.status_code == 200

    @pytest.mark.parametrize("number", [0, 7, "two", None, 2.9, True, "2.9"])
    def test_stage_number_out_of_range(self, admin_client, make_client, number):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": number, "status": "completed"})
        assert r.status_code == 400
        assert not r.get_json()["success"]

    def test_unknown_status(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "status": "done"})
        assert r.status_code == 400

    def test_required_documents_must_be_strings(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "required_documents": [1, 2]})
        assert r.status_code == 400

    def test_requires_admin(self, client, make_client):
        cid = make_client()
        r = client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "status": "completed"})
        assert r.status_code == 401


class TestSecondPaymentReminder:
    def _stages(self, stage2_status):
        from models import StageStatus

        class Row:
            def __init__(self, number, status):
                self.stage_number = number
                self.status = status

        return [Row(1, StageStatus.completed), Row(2, StageStatus(stage2_status))]

    def test_reminder_when_partially_paid_and_profile_done(self):
        from services.stages import second_payment_reminder
        assert second_payment_reminder("partially_paid", self._stages("completed"))

    def test_no_reminder_before_profile_done(self):
        from services.stages import second_payment_reminder
        assert not second_payment_reminder("partially_paid", self._stages("in_progress"))

    @pytest.mark.parametrize("status", ["paid", "pending", "unpaid"])
    def test_no_reminder_unless_partially_paid(self, status):
        from services.stages import second_payment_reminder
        assert not second_payment_reminder(status, self._stages("completed"))


class TestStageNumberParsing:
    def test_digit_string_is_accepted(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": "3", "status": "completed"})
        assert r.status_code == 200
        assert r.get_json()["data"]["stage"]["stage_number"] == 3

    def test_float_does_not_update_neighbour(self, admin_client, make_client):
        cid = make_client()
        admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 2.9, "status": "completed"})
        stages = admin_client.get(f"/api/clients/{cid}/stages").get_json()["data"]["stages"]
        assert all(s["status"] == "not_started" for s in stages)

    def test_notes_must_be_text(self, admin_client, make_client):
        cid = make_client()
        r = admin_client.put(f"/api/clients/{cid}/stages", json={"stage_number": 1, "notes": 42})
        assert r.status_code == 400
