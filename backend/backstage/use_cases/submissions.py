"""Email submission (first funnel step) use-case."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import DuplicateSubmissionError, ValidationError
from ..models import ConsentEvent, Contact, DownloadGate, DownloadSubmission
from ..services.gate_rules import normalize_email, requires_verification
from .funnel_hooks import FunnelHooks, record_event_safely
from .gate_resolver import resolve_gate_use_case

logger = logging.getLogger(__name__)

FIRST_NAME_MAX_LENGTH = 255


@dataclass(frozen=True)
class SubmissionResult:
    submission: DownloadSubmission
    created: bool
    requires_verification: bool
    verifications_sent: dict[str, bool] = field(default_factory=dict)


def _verifications_sent(gate: DownloadGate) -> dict[str, bool]:
    return {
        "email": True,
        "soundcloud_repost": bool(gate.require_soundcloud_repost),
        "soundcloud_follow": bool(gate.require_soundcloud_follow),
        "spotify_connect": bool(gate.require_spotify_connect),
    }


def _find_submission(db: Session, *, gate_id, email: str) -> DownloadSubmission | None:
    return (
        db.query(DownloadSubmission)
        .filter(DownloadSubmission.gate_id == gate_id, DownloadSubmission.email == email)
        .first()
    )


def _add_contact_if_missing(db: Session, *, gate: DownloadGate, email: str, first_name: str | None) -> None:
    existing = (
        db.query(Contact.id)
        .filter(Contact.user_id == gate.user_id, Contact.email == email)
        .first()
    )
    if existing is not None:
        return
    db.add(Contact(user_id=gate.user_id, email=email, name=first_name, subscribed=True, source="download_gate"))


def submit_email_use_case(
    *,
    db: Session,
    slug: str,
    email: str | None,
    first_name: str | None,
    consent_marketing: bool | None,
    ip_address: str | None,
    user_agent: str | None,
    hooks: FunnelHooks,
) -> SubmissionResult:
    if consent_marketing is None:
        raise ValidationError("Marketing consent is required")
    normalized_email = normalize_email(email)
    first_name = (first_name or "").strip()[:FIRST_NAME_MAX_LENGTH] or None

    gate = resolve_gate_use_case(db=db, slug=slug, now=hooks.now_utc())

    submission = _find_submission(db, gate_id=gate.id, email=normalized_email)
    created = submission is None
    if created:
        submission = DownloadSubmission(
            gate_id=gate.id,
            email=normalized_email,
            first_name=first_name,
            consent_marketing=bool(consent_marketing),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(submission)
        try:
            db.flush()
        except IntegrityError:
            # Lost the (gate_id, email) race to a concurrent request.
            db.rollback()
            submission = _find_submission(db, gate_id=gate.id, email=normalized_email)
            if submission is None:
                raise DuplicateSubmissionError()
            created = False

    db.add(
        ConsentEvent(
            gate_id=gate.id,
            submission_id=submission.id,
            email=normalized_email,
            consent_marketing=bool(consent_marketing),
            source="download_gate",
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    if created:
        if consent_marketing:
            _add_contact_if_missing(db, gate=gate, email=normalized_email, first_name=first_name)
        db.query(DownloadGate).filter(DownloadGate.id == gate.id).update(
            {DownloadGate.submission_count: DownloadGate.submission_count + 1},
            synchronize_session=False,
        )
    db.commit()
    db.refresh(submission)

    if created:
        logger.info(f"✅ Submission {submission.id} created for gate {gate.slug}")
        record_event_safely(
            hooks,
            db,
            gate_id=gate.id,
            event_type="submit",
            submission_id=submission.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    else:
        logger.info(f"Repeat submission for gate {gate.slug} returned existing {submission.id}")

    return SubmissionResult(
        submission=submission,
        created=created,
        requires_verification=requires_verification(gate),
        verifications_sent=_verifications_sent(gate),
    )
