from __future__ import annotations

from uuid import uuid4

from backstage.models import DownloadGate, DownloadGateAnalytics
from backstage.services.analytics import AnalyticsRecorder
from backstage.use_cases.analytics import record_gate_view_task
from funnel_fakes import make_gate, make_owner


def test_recorder_counts_views_on_the_gate(db) -> None:
    gate = make_gate(db, make_owner(db))
    recorder = AnalyticsRecorder()

    assert recorder.record(db, gate_id=gate.id, event_type="view", country="es") is True
    assert recorder.record(db, gate_id=gate.id, event_type="verify_follow") is True

    db.expire_all()
    assert db.get(DownloadGate, gate.id).view_count == 1
    view = db.query(DownloadGateAnalytics).filter(DownloadGateAnalytics.event_type == "view").one()
    assert view.country == "ES"


def test_recorder_drops_unknown_event_type_and_unknown_gate(db) -> None:
    gate = make_gate(db, make_owner(db))
    recorder = AnalyticsRecorder()

    assert recorder.record(db, gate_id=gate.id, event_type="click") is False
    assert recorder.record(db, gate_id=uuid4(), event_type="view") is False
    assert db.query(DownloadGateAnalytics).count() == 0


def test_view_task_uses_its_own_session(db, session_factory) -> None:
    gate = make_gate(db, make_owner(db))

    record_gate_view_task(
        session_factory,
        AnalyticsRecorder(),
        gate_id=gate.id,
        referrer="https://instagram.com/",
        ip_address="203.0.113.7",
        user_agent="pytest",
    )

    row = db.query(DownloadGateAnalytics).one()
    assert (row.event_type, row.referrer) == ("view", "https://instagram.com/")


def test_analytics_endpoint_records_public_event(client, db) -> None:
    gate = make_gate(db, make_owner(db))

    response = client.post(
        "/api/gate/analytics",
        json={"gateId": str(gate.id), "eventType": "view", "utmSource": "ig", "sessionId": "s-1"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    row = db.query(DownloadGateAnalytics).one()
    assert (row.utm_source, row.session_id) == ("ig", "s-1")


def test_analytics_endpoint_requires_gate_id(client) -> None:
    response = client.post("/api/gate/analytics", json={"eventType": "view"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_analytics_endpoint_answers_false_instead_of_failing(client, db) -> None:
    gate = make_gate(db, make_owner(db))

    bad_json = client.post(
        "/api/gate/analytics", content=b"{not json", headers={"content-type": "application/json"}
    )
    server_only_type = client.post(
        "/api/gate/analytics", json={"gateId": str(gate.id), "eventType": "verify_repost"}
    )
    unknown_gate = client.post("/api/gate/analytics", json={"gateId": str(uuid4()), "eventType": "view"})
    malformed_gate = client.post("/api/gate/analytics", json={"gateId": "not-a-uuid", "eventType": "view"})

    for response in (bad_json, server_only_type, unknown_gate, malformed_gate):
        assert response.status_code == 200
        assert response.json() == {"success": False}
    assert db.query(DownloadGateAnalytics).count() == 0
