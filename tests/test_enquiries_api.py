"""Public enquiry intake and the protected list/detail endpoints"""
from datetime import datetime, timedelta, timezone

from models import Enquiry, EnquiryContext, PartEx, db

from conftest import FLEET_ENQUIRY, GENERAL_ENQUIRY, PART_EX_ENQUIRY


def _parse(ts):
    return datetime.fromisoformat(ts)


def _minutes_until(ts):
    return (_parse(ts) - datetime.now(timezone.utc)).total_seconds() / 60


def test_general_enquiry_created(client, flask_app):
    resp = client.post("/api/enquiries", json=GENERAL_ENQUIRY)
    assert resp.status_code == 201

    enquiry = resp.get_json()["enquiry"]
    assert enquiry["status"] == "NEW"
    assert enquiry["priority"] == "NORMAL"
    assert enquiry["queue"] == "GENERAL"
    assert enquiry["firstRespondedAt"] is None
    assert 58 <= _minutes_until(enquiry["slaDueAt"]) <= 60
    assert enquiry["context"]["pageUrl"] == "unknown"
    assert enquiry["partEx"] is None

    with flask_app.app_context():
        assert Enquiry.query.count() == 1
        assert EnquiryContext.query.count() == 1
        assert PartEx.query.count() == 0


def test_fleet_enquiry_is_high_priority(client, flask_app):
    resp = client.post("/api/enquiries", json=FLEET_ENQUIRY)
    assert resp.status_code == 201

    enquiry = resp.get_json()["enquiry"]
    assert enquiry["priority"] == "HIGH"
    assert enquiry["queue"] == "FLEET"
    assert enquiry["email"] is None
    assert 13 <= _minutes_until(enquiry["slaDueAt"]) <= 15


def test_part_exchange_creates_part_ex_record(client, flask_app):
    resp = client.post("/api/enquiries", json={
        **PART_EX_ENQUIRY,
        "pageUrl": "https://dealer.example.com/part-exchange",
        "utmSource": "newsletter",
        "device": "mobile",
    })
    assert resp.status_code == 201

    enquiry = resp.get_json()["enquiry"]
    assert enquiry["priority"] == "HIGH"
    assert enquiry["queue"] == "VALUATIONS"
    assert enquiry["partEx"] == {"reg": "AB12 CDE", "mileage": 84000}
    assert enquiry["context"]["pageUrl"] == "https://dealer.example.com/part-exchange"
    assert enquiry["context"]["utmSource"] == "newsletter"

    with flask_app.app_context():
        assert PartEx.query.count() == 1


def test_page_url_falls_back_to_referer(client, flask_app):
    resp = client.post(
        "/api/enquiries",
        json=GENERAL_ENQUIRY,
        headers={"Referer": "https://dealer.example.com/contact"},
    )
    assert resp.get_json()["enquiry"]["context"]["pageUrl"] == "https://dealer.example.com/contact"


def test_oversized_mileage_is_a_validation_error(client, flask_app):
    resp = client.post("/api/enquiries", json={**PART_EX_ENQUIRY, "mileage": 10**20})
    assert resp.status_code == 400
    assert [e["field"] for e in resp.get_json()["errors"]] == ["mileage"]

    with flask_app.app_context():
        assert Enquiry.query.count() == 0
        assert PartEx.query.count() == 0


def test_long_referer_is_trimmed_to_column(client, flask_app):
    referer = "https://dealer.example.com/" + "p" * 3000
    resp = client.post("/api/enquiries", json=GENERAL_ENQUIRY, headers={"Referer": referer})
    assert resp.status_code == 201
    assert resp.get_json()["enquiry"]["context"]["pageUrl"] == referer[:2048]


def test_invalid_submission_not_saved(client, flask_app):
    resp = client.post("/api/enquiries", json={**PART_EX_ENQUIRY, "reg": "", "email": ""})
    assert resp.status_code == 400

    body = resp.get_json()
    assert body["success"] is False
    fields = {e["field"] for e in body["errors"]}
    assert "reg" in fields
    assert "email" in fields

    with flask_app.app_context():
        assert Enquiry.query.count() == 0
        assert EnquiryContext.query.count() == 0


def test_non_json_body_rejected(client, flask_app):
    resp = client.post("/api/enquiries", data="name=Jane", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "JSON body required"


def test_storage_failure_leaves_nothing_behind(client, flask_app, monkeypatch):
    def failing_commit():
        db.session.flush()
        raise RuntimeError("disk full")

    monkeypatch.setattr(db.session, "commit", failing_commit)
    resp = client.post("/api/enquiries", json=PART_EX_ENQUIRY)

    assert resp.status_code == 500
    assert "disk full" not in resp.get_data(as_text=True)
    with flask_app.app_context():
        assert Enquiry.query.count() == 0
        assert PartEx.query.count() == 0


def test_list_requires_session(client, flask_app):
    resp = client.get("/api/enquiries")
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Unauthorized"}


def test_list_newest_first(client, flask_app, login_as):
    client.post("/api/enquiries", json={**GENERAL_ENQUIRY, "name": "First"})
    client.post("/api/enquiries", json={**GENERAL_ENQUIRY, "name": "Second"})
    client.post("/api/enquiries", json={**GENERAL_ENQUIRY, "name": "Third"})

    login_as("VIEWER")
    resp = client.get("/api/enquiries")
    assert resp.status_code == 200
    names = [e["name"] for e in resp.get_json()["enquiries"]]
    assert names == ["Third", "Second", "First"]


def test_list_filters(client, flask_app, login_as):
    client.post("/api/enquiries", json=GENERAL_ENQUIRY)
    client.post("/api/enquiries", json=FLEET_ENQUIRY)
    client.post("/api/enquiries", json=PART_EX_ENQUIRY)

    login_as("ANALYST")
    by_mode = client.get("/api/enquiries?mode=FLEET").get_json()["enquiries"]
    assert [e["name"] for e in by_mode] == ["Bob"]

    by_queue = client.get("/api/enquiries?queue=VALUATIONS").get_json()["enquiries"]
    assert [e["name"] for e in by_queue] == ["Priya"]
    assert by_queue[0]["partEx"]["mileage"] == 84000

    by_status = client.get("/api/enquiries?status=NEW&queue=GENERAL").get_json()["enquiries"]
    assert [e["name"] for e in by_status] == ["Jane"]

    assert client.get("/api/enquiries?status=CLOSED").get_json()["enquiries"] == []


def test_detail(client, flask_app, login_as, create_enquiry):
    created = create_enquiry()
    login_as("VIEWER")

    resp = client.get(f"/api/enquiries/{created['id']}")
    assert resp.status_code == 200
    assert resp.get_json()["enquiry"]["id"] == created["id"]

    resp = client.get("/api/enquiries/does-not-exist")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Enquiry not found"


def test_sla_due_at_fixed_at_creation(client, flask_app, login_as, create_enquiry):
    created = create_enquiry()
    created_at = _parse(created["createdAt"])
    assert _parse(created["slaDueAt"]) - created_at == timedelta(minutes=60)
