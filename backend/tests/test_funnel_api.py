from __future__ import annotations

from uuid import uuid4

from backstage.models import DownloadGate, DownloadGateAnalytics, DownloadSubmission, OAuthState
from funnel_fakes import make_gate, make_owner, make_submission, query_param


def _start_soundcloud(client, submission_id, gate_id) -> str:
    response = client.get(
        "/api/auth/soundcloud",
        params={"submissionId": str(submission_id), "gateId": str(gate_id)},
        follow_redirects=False,
    )
    assert response.status_code == 302
    return query_param(response.headers["location"], "state")


def test_summer_drop_funnel_end_to_end(client, db, soundcloud) -> None:
    gate = make_gate(db, make_owner(db))

    page = client.get("/api/gate/summer-drop")
    assert page.status_code == 200
    public_gate = page.json()["gate"]
    assert public_gate["requirements"] == {
        "email": True,
        "soundcloudRepost": True,
        "soundcloudFollow": False,
        "spotifyConnect": False,
    }
    assert "fileUrl" not in public_gate

    submitted = client.post(
        "/api/gate/summer-drop/submit",
        json={"email": "Fan@X.com", "firstName": "Fan", "consentMarketing": True},
    )
    assert submitted.status_code == 201
    body = submitted.json()
    assert body["requiresVerification"] is True
    assert body["verificationsSent"]["soundcloudRepost"] is True
    submission_id = body["submissionId"]

    withheld = client.post("/api/gate/summer-drop/download-token", json={"submissionId": submission_id})
    assert withheld.status_code == 403
    assert withheld.json()["code"] == "VERIFICATION_INCOMPLETE"
    assert withheld.json()["details"] == {"missing": ["soundcloud_repost"]}

    state = _start_soundcloud(client, submission_id, public_gate["id"])
    callback = client.get(
        "/api/auth/soundcloud/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )
    assert callback.status_code == 302
    assert callback.headers["location"] == "https://backstage.test/gate/summer-drop?soundcloud=success"

    issued = client.post("/api/gate/summer-drop/download-token", json={"submissionId": submission_id})
    assert issued.status_code == 200
    token = issued.json()["token"]
    assert len(token) == 64
    assert issued.headers["cache-control"] == "no-store"

    download = client.get(f"/api/download/{token}", follow_redirects=False)
    assert download.status_code == 302
    assert download.headers["location"] == "https://files.backstage.test/summer-drop.wav"

    replay = client.get(f"/api/download/{token}", follow_redirects=False)
    assert replay.status_code == 409
    assert replay.json()["code"] == "TOKEN_ALREADY_USED"

    db.expire_all()
    stored_gate = db.get(DownloadGate, gate.id)
    assert (stored_gate.view_count, stored_gate.submission_count, stored_gate.download_count) == (1, 1, 1)
    event_types = sorted(row.event_type for row in db.query(DownloadGateAnalytics))
    assert event_types == ["download", "submit", "verify_repost", "view"]


def test_gate_page_returns_problem_for_unknown_inactive_and_expired_gates(client, db, clock) -> None:
    owner = make_owner(db)
    make_gate(db, owner, slug="off-drop", active=False)
    make_gate(db, owner, slug="old-drop", expires_at=clock())

    missing = client.get("/api/gate/nope")
    inactive = client.get("/api/gate/off-drop")
    expired = client.get("/api/gate/old-drop")

    assert (missing.status_code, missing.json()["code"]) == (404, "GATE_NOT_FOUND")
    assert (inactive.status_code, inactive.json()["code"]) == (403, "GATE_INACTIVE")
    assert (expired.status_code, expired.json()["code"]) == (403, "GATE_EXPIRED")
    assert missing.headers["content-type"].startswith("application/problem+json")


def test_repeat_submit_answers_200_with_same_submission(client, db) -> None:
    make_gate(db, make_owner(db))
    payload = {"email": "fan@x.com", "consentMarketing": False}

    first = client.post("/api/gate/summer-drop/submit", json=payload)
    second = client.post("/api/gate/summer-drop/submit", json=payload)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["submissionId"] == first.json()["submissionId"]


def test_submit_validation_errors_use_problem_details(client, db) -> None:
    make_gate(db, make_owner(db))

    no_consent = client.post("/api/gate/summer-drop/submit", json={"email": "fan@x.com"})
    bad_email = client.post("/api/gate/summer-drop/submit", json={"email": "nope", "consentMarketing": True})
    bad_body = client.post("/api/gate/summer-drop/submit", json={"email": ["x"], "consentMarketing": True})

    assert (no_consent.status_code, no_consent.json()["code"]) == (400, "VALIDATION_ERROR")
    assert (bad_email.status_code, bad_email.json()["code"]) == (400, "VALIDATION_ERROR")
    assert (bad_body.status_code, bad_body.json()["code"]) == (400, "VALIDATION_ERROR")
    assert db.query(DownloadSubmission).count() == 0


def test_soundcloud_callback_replay_redirects_with_error(client, db) -> None:
    gate = make_gate(db, make_owner(db))
    submission = make_submission(db, gate)
    state = _start_soundcloud(client, submission.id, gate.id)
    client.get("/api/auth/soundcloud/callback", params={"code": "c", "state": state}, follow_redirects=False)

    replay = client.get("/api/auth/soundcloud/callback", params={"code": "c", "state": state}, follow_redirects=False)

    assert replay.status_code == 302
    assert replay.headers["location"] == (
        "https://backstage.test/gate/summer-drop?soundcloud=error&error=token_already_used"
    )


def test_soundcloud_callback_with_missing_follow_redirects_to_retry(client, db, soundcloud) -> None:
    soundcloud.following = False
    gate = make_gate(db, make_owner(db), require_soundcloud_follow=True)
    submission = make_submission(db, gate)
    state = _start_soundcloud(client, submission.id, gate.id)

    response = client.get(
        "/api/auth/soundcloud/callback", params={"code": "c", "state": state}, follow_redirects=False
    )

    location = response.headers["location"]
    assert query_param(location, "soundcloud") == "retry"
    assert query_param(location, "missing") == "soundcloud_follow"


def test_provider_denial_redirects_without_burning_state(client, db) -> None:
    gate = make_gate(db, make_owner(db))
    submission = make_submission(db, gate)
    state = _start_soundcloud(client, submission.id, gate.id)

    response = client.get(
        "/api/auth/soundcloud/callback",
        params={"error": "access_denied", "state": state},
        follow_redirects=False,
    )

    assert response.headers["location"] == "https://backstage.test/gate/summer-drop?soundcloud=error&error=access_denied"
    assert db.query(OAuthState).filter(OAuthState.state_token == state).one().used is False


def test_callback_with_unknown_state_redirects_to_home(client) -> None:
    response = client.get(
        "/api/auth/spotify/callback", params={"code": "c", "state": "forged"}, follow_redirects=False
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://backstage.test/?error=invalid_token"


def test_callback_without_code_reports_missing_params(client) -> None:
    response = client.get("/api/auth/soundcloud/callback", follow_redirects=False)

    assert response.headers["location"] == "https://backstage.test/?error=missing_params"


def test_start_oauth_for_unknown_submission_returns_404(client, db) -> None:
    gate = make_gate(db, make_owner(db))

    response = client.get(
        "/api/auth/soundcloud",
        params={"submissionId": str(uuid4()), "gateId": str(gate.id)},
        follow_redirects=False,
    )

    assert response.status_code == 404
    assert response.json()["code"] == "SUBMISSION_NOT_FOUND"


def test_spotify_start_carries_auto_save_opt_in(client, db) -> None:
    gate = make_gate(db, make_owner(db), require_spotify_connect=True)
    submission = make_submission(db, gate)

    response = client.get(
        "/api/auth/spotify",
        params={"submissionId": str(submission.id), "gateId": str(gate.id), "autoSaveOptIn": "true"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"].startswith("https://spotify.test/authorize?")
    state = db.query(OAuthState).one()
    assert state.provider == "spotify"
    assert state.auto_save_opt_in is True


def test_download_unknown_and_expired_tokens(client, db, clock) -> None:
    gate = make_gate(db, make_owner(db))
    submission = make_submission(db, gate, soundcloud_repost_verified=True)
    token = client.post(
        "/api/gate/summer-drop/download-token", json={"submissionId": str(submission.id)}
    ).json()["token"]
    clock.advance(hours=25)

    unknown = client.get("/api/download/" + "0" * 64, follow_redirects=False)
    expired = client.get(f"/api/download/{token}", follow_redirects=False)

    assert (unknown.status_code, unknown.json()["code"]) == (404, "INVALID_TOKEN")
    assert (expired.status_code, expired.json()["code"]) == (410, "TOKEN_EXPIRED")


def test_health_check_reports_database(client) -> None:
    response = client.get("/api/system/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "ok"
