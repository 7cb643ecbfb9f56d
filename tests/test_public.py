"""Tests for the public lead/feedback forms and the portals."""
import pytest

from app.studio import create_app
from app.studio.constants import MSG_SAVE_FAILED, MSG_TIMEOUT_FEEDBACK
from app.studio.notifications import add_notification
from app.studio.service import DataService
from conftest import studio_env

LEAD_FORM = {
    "name": "Budi",
    "whatsapp": "0812-3456-7890",
    "eventType": "Wedding",
    "eventDate": "2024-06-15",
    "eventLocation": "Bandung",
}


@pytest.fixture()
def client(supabase_store, monkeypatch):
    studio_env(monkeypatch)
    monkeypatch.setenv("CREATE_TIMEOUT_SECONDS", "0.1")
    app = create_app()
    return app.test_client()


def test_lead_form_creates_lead_and_notification(client, supabase_store):
    supabase_store.seed("profiles", company_name="Studio", email="owner@example.com")

    r = client.post("/public/leads", json=LEAD_FORM)
    assert r.status_code == 201
    assert r.json["contactChannel"] == "Website"
    assert r.json["status"] == "Discussion"

    lead = supabase_store.rows("leads")[0]
    assert lead["whatsapp"] == "081234567890"
    assert lead["location"] == "Bandung"
    assert lead["notes"] == "Jenis Acara: Wedding\nTanggal Acara: 15/06/2024\nLokasi Acara: Bandung"

    notif = supabase_store.rows("notifications")[0]
    assert notif["title"] == "Prospek Baru Diterima!"
    assert notif["message"] == "Prospek baru dari Budi telah masuk melalui formulir web."
    assert notif["icon"] == "lead"
    assert notif["link_view"] == "Prospek"
    assert notif["is_read"] is False
    assert notif["timestamp"]


def test_lead_kept_when_notification_fails(client, supabase_store):
    supabase_store.failing_tables["notifications"] = "insert failed"
    r = client.post("/public/leads", json=LEAD_FORM)
    assert r.status_code == 201
    assert len(supabase_store.rows("leads")) == 1


def test_lead_form_validation(client, supabase_store):
    r = client.post("/public/leads", json={**LEAD_FORM, "whatsapp": "123"})
    assert r.status_code == 400
    r = client.post("/public/leads", json={"name": "Budi"})
    assert r.status_code == 400
    assert "whatsapp wajib diisi" in r.json["errors"]
    assert supabase_store.rows("leads") == []


def test_lead_form_is_rate_limited(client, supabase_store):
    for _ in range(5):
        assert client.post("/public/leads", json=LEAD_FORM).status_code == 201
    assert client.post("/public/leads", json=LEAD_FORM).status_code == 429


def test_lead_form_remote_failure(client, supabase_store):
    supabase_store.failing_tables["leads"] = "boom"
    r = client.post("/public/leads", json=LEAD_FORM)
    assert r.status_code == 502
    assert r.json["error"] == MSG_SAVE_FAILED


def test_feedback(client, supabase_store):
    r = client.post(
        "/public/feedback",
        json={"clientName": "Ayu", "satisfaction": "Sangat Puas", "rating": "5", "feedback": "Mantap"},
    )
    assert r.status_code == 201
    row = supabase_store.rows("client_feedback")[0]
    assert row["client_name"] == "Ayu"
    assert row["rating"] == 5.0


def test_feedback_timeout(client, supabase_store):
    supabase_store.insert_delay["client_feedback"] = 0.5
    r = client.post("/public/feedback", json={"clientName": "Ayu", "satisfaction": "Puas", "rating": 4})
    assert r.status_code == 504
    assert r.json["error"] == MSG_TIMEOUT_FEEDBACK


def test_packages_expose_public_profile_only(client, supabase_store):
    supabase_store.seed("profiles", company_name="Studio", bank_account="123-secret")
    supabase_store.seed("packages", name="Basic", price=1000)
    r = client.get("/public/packages")
    assert r.status_code == 200
    assert [p["name"] for p in r.json["packages"]] == ["Basic"]
    assert r.json["profile"]["companyName"] == "Studio"
    assert "bankAccount" not in r.json["profile"]


def test_client_portal(client, supabase_store):
    c = supabase_store.seed("clients", name="Ayu", portal_access_id="portal-1")
    supabase_store.seed("projects", project_name="Wedding", client_id=c["id"])
    supabase_store.seed("contracts", contract_number="C-1", client_id=c["id"])

    r = client.get("/public/portal/portal-1")
    assert r.status_code == 200
    assert r.json["client"]["name"] == "Ayu"
    assert [p["projectName"] for p in r.json["projects"]] == ["Wedding"]
    assert [k["contractNumber"] for k in r.json["contracts"]] == ["C-1"]


def test_client_portal_unknown_or_invalid_id(client, supabase_store):
    assert client.get("/public/portal/missing").status_code == 404
    assert client.get("/public/portal/bad%20id").status_code == 404


def test_freelancer_portal(client, supabase_store):
    m = supabase_store.seed("team_members", name="Rudi", portal_access_id="fl-1")
    supabase_store.seed("team_project_payments", team_member_id=m["id"], fee=500000)
    supabase_store.seed("reward_ledger_entries", team_member_id=m["id"], amount=25000)
    supabase_store.seed("reward_ledger_entries", team_member_id="other", amount=1)

    r = client.get("/public/freelancer-portal/fl-1")
    assert r.status_code == 200
    assert r.json["teamMember"]["name"] == "Rudi"
    assert [p["fee"] for p in r.json["projectPayments"]] == [500000]
    assert [e["amount"] for e in r.json["rewardLedger"]] == [25000]


class TestAddNotification:
    def test_never_raises(self, fake_client, supabase_store):
        supabase_store.failing_tables["notifications"] = "down"
        n = add_notification(DataService(fake_client), {"title": "t", "message": "m", "icon": "lead"})
        assert n["id"]
        assert n["isRead"] is False
        assert supabase_store.rows("notifications") == []

    def test_logs_simulated_email(self, fake_client, supabase_store, caplog):
        caplog.set_level("INFO", logger="app.studio.notifications")
        add_notification(DataService(fake_client), {"title": "Halo"}, {"email": "owner@example.com"})
        assert "owner@example.com" in caplog.text
        assert "Halo" in caplog.text
