from __future__ import annotations

from datetime import timedelta

from backstage import celery_app as jobs
from backstage.models import OAuthState
from backstage.services.gate_rules import now_utc
from funnel_fakes import FakeSpotifyClient, make_gate, make_owner, make_submission


def test_beat_schedule_runs_release_check_and_state_purge() -> None:
    schedule = jobs.celery_app.conf.beat_schedule

    assert schedule["check-spotify-releases-every-6h"]["schedule"] == 6 * 3600.0
    assert schedule["purge-expired-oauth-states-hourly"]["task"] == "purge_expired_oauth_states"


def test_purge_task_deletes_expired_states(monkeypatch, session_factory, db) -> None:
    gate = make_gate(db, make_owner(db))
    submission = make_submission(db, gate)
    for token, offset in (("stale", -1), ("live", 1)):
        db.add(
            OAuthState(
                state_token=token,
                provider="soundcloud",
                submission_id=submission.id,
                gate_id=gate.id,
                code_verifier="v",
                expires_at=now_utc() + timedelta(hours=offset),
            )
        )
    db.commit()
    monkeypatch.setattr(jobs, "SessionLocal", session_factory)

    deleted = jobs.purge_expired_oauth_states()

    assert deleted == 1
    assert [row.state_token for row in db.query(OAuthState)] == ["live"]


def test_release_check_task_skips_when_spotify_is_not_configured(monkeypatch) -> None:
    monkeypatch.setattr(jobs, "get_spotify_client", lambda: FakeSpotifyClient(configured=False))

    assert jobs.check_spotify_releases() == {"checked": 0, "succeeded": 0, "failed": 0, "saved": 0}


def test_release_check_task_returns_run_summary(monkeypatch, session_factory) -> None:
    monkeypatch.setattr(jobs, "get_spotify_client", lambda: FakeSpotifyClient())
    monkeypatch.setattr(jobs, "SessionLocal", session_factory)

    assert jobs.check_spotify_releases() == {"checked": 0, "succeeded": 0, "failed": 0, "saved": 0}
