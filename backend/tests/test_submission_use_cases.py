from __future__ import annotations

from datetime import timedelta

import pytest

from backstage.domain_errors import GateExpiredError, GateInactiveError, GateNotFoundError, ValidationError
from backstage.models import ConsentEvent, Contact, DownloadGate, DownloadGateAnalytics, DownloadSubmission
from backstage.use_cases.gate_resolver import resolve_gate_use_case
from backstage.use_cases.submissions import submit_email_use_case
from funnel_fakes import make_gate, make_owner


def _submit(db, hooks, **overrides):
    values = {
        "db": db,
        "slug": "summer-drop",
        "email": "Fan@X.com",
        "first_name": "Fan",
        "consent_marketing": True,
        "ip_address": "203.0.113.7",
        "user_agent": "pytest",
        "hooks": hooks,
    }
    values.update(overrides)
    return submit_email_use_case(**values)


def test_resolve_gate_returns_active_gate_by_slug(db, clock) -> None:
    gate = make_gate(db, make_owner(db))

    resolved = resolve_gate_use_case(db=db, slug="summer-drop", now=clock())

    assert resolved.id == gate.id


def test_resolve_gate_raises_not_found_for_unknown_slug(db, clock) -> None:
    with pytest.raises(GateNotFoundError):
        resolve_gate_use_case(db=db, slug="nope", now=clock())


def test_submit_creates_submission_with_normalized_email_and_counts_it(db, hooks) -> None:
    gate = make_gate(db, make_owner(db))

    result = _submit(db, hooks)

    assert result.created is True
    assert result.requires_verification is True
    assert result.verifications_sent == {
        "email": True,
        "soundcloud_repost": True,
        "soundcloud_follow": False,
        "spotify_connect": False,
    }
    assert result.submission.email == "fan@x.com"
    db.expire_all()
    assert db.get(DownloadGate, gate.id).submission_count == 1
    events = db.query(DownloadGateAnalytics).filter(DownloadGateAnalytics.event_type == "submit").all()
    assert [event.submission_id for event in events] == [result.submission.id]


def test_repeat_submission_returns_existing_row_without_recounting(db, hooks) -> None:
    gate = make_gate(db, make_owner(db))

    first = _submit(db, hooks)
    second = _submit(db, hooks, email="  FAN@x.com ")

    assert second.created is False
    assert second.submission.id == first.submission.id
    db.expire_all()
    assert db.query(DownloadSubmission).count() == 1
    assert db.get(DownloadGate, gate.id).submission_count == 1
    assert db.query(ConsentEvent).count() == 2


def test_submit_with_consent_adds_owner_contact_once(db, hooks) -> None:
    owner = make_owner(db)
    make_gate(db, owner)

    _submit(db, hooks)
    _submit(db, hooks)

    contacts = db.query(Contact).filter(Contact.user_id == owner.id).all()
    assert [(contact.email, contact.name, contact.source) for contact in contacts] == [
        ("fan@x.com", "Fan", "download_gate")
    ]


def test_submit_without_marketing_consent_records_audit_but_no_contact(db, hooks) -> None:
    make_gate(db, make_owner(db))

    result = _submit(db, hooks, consent_marketing=False)

    assert result.submission.consent_marketing is False
    assert db.query(Contact).count() == 0
    consent = db.query(ConsentEvent).one()
    assert consent.consent_marketing is False
    assert consent.ip_address == "203.0.113.7"


def test_submit_requires_explicit_consent_answer(db, hooks) -> None:
    make_gate(db, make_owner(db))

    with pytest.raises(ValidationError):
        _submit(db, hooks, consent_marketing=None)

    assert db.query(DownloadSubmission).count() == 0


def test_submit_rejects_invalid_email(db, hooks) -> None:
    make_gate(db, make_owner(db))

    with pytest.raises(ValidationError):
        _submit(db, hooks, email="not-an-email")


def test_submit_to_inactive_gate_creates_nothing(db, hooks) -> None:
    make_gate(db, make_owner(db), active=False)

    with pytest.raises(GateInactiveError):
        _submit(db, hooks)

    assert db.query(DownloadSubmission).count() == 0


def test_submit_to_expired_gate_creates_nothing(db, hooks, clock) -> None:
    make_gate(db, make_owner(db), expires_at=clock() - timedelta(minutes=1))

    with pytest.raises(GateExpiredError):
        _submit(db, hooks)

    assert db.query(DownloadSubmission).count() == 0


def test_email_only_gate_does_not_require_verification(db, hooks) -> None:
    make_gate(db, make_owner(db), require_soundcloud_repost=False)

    result = _submit(db, hooks)

    assert result.requires_verification is False
