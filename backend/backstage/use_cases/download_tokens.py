"""Download token issuance and single-use redemption."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import (
    ExpiredTokenError,
    GateNotFoundError,
    InvalidTokenError,
    MaxDownloadsExceededError,
    SubmissionNotFoundError,
    TokenAlreadyUsedError,
    VerificationIncompleteError,
)
from ..models import DownloadGate, DownloadSubmission, DownloadToken
from ..services.gate_rules import as_utc, ensure_gate_available, max_downloads_reached, missing_requirements
from .funnel_hooks import FunnelHooks, record_event_safely
from .gate_resolver import resolve_gate_use_case

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedeemedDownload:
    file_url: str
    gate_id: UUID
    submission_id: UUID


def issue_download_token_use_case(
    *,
    db: Session,
    slug: str,
    submission_id: UUID,
    hooks: FunnelHooks,
) -> DownloadToken:
    now = hooks.now_utc()
    gate = resolve_gate_use_case(db=db, slug=slug, now=now)

    submission = (
        db.query(DownloadSubmission)
        .filter(DownloadSubmission.id == submission_id, DownloadSubmission.gate_id == gate.id)
        .first()
    )
    if submission is None:
        raise SubmissionNotFoundError()

    if max_downloads_reached(gate):
        raise MaxDownloadsExceededError()

    missing = missing_requirements(gate, submission)
    if missing:
        raise VerificationIncompleteError(details={"missing": missing})

    existing = (
        db.query(DownloadToken)
        .filter(
            DownloadToken.submission_id == submission.id,
            DownloadToken.used == False,  # noqa: E712
            DownloadToken.expires_at > now,
        )
        .order_by(DownloadToken.expires_at.desc())
        .first()
    )
    if existing is not None:
        return existing

    token = DownloadToken(
        token=hooks.token_hex(settings.DOWNLOAD_TOKEN_BYTES),
        submission_id=submission.id,
        gate_id=gate.id,
        expires_at=now + timedelta(hours=settings.DOWNLOAD_TOKEN_TTL_HOURS),
        used=False,
    )
    db.add(token)
    db.commit()
    db.refresh(token)
    logger.info(f"Download token issued for submission {submission.id}: {token.token[:8]}...")
    return token


def _classify_unredeemable(token: DownloadToken | None, *, now: datetime) -> Exception:
    if token is None:
        return InvalidTokenError("Invalid download token")
    if as_utc(token.expires_at) <= as_utc(now):
        return ExpiredTokenError("Download token has expired")
    return TokenAlreadyUsedError("Download token has already been used")


def redeem_download_token_use_case(*, db: Session, token: str, hooks: FunnelHooks) -> RedeemedDownload:
    now = hooks.now_utc()

    record = db.query(DownloadToken).filter(DownloadToken.token == token).first()
    if record is None or record.used or as_utc(record.expires_at) <= as_utc(now):
        raise _classify_unredeemable(record, now=now)

    gate = db.query(DownloadGate).filter(DownloadGate.id == record.gate_id).first()
    if gate is None:
        raise GateNotFoundError()
    ensure_gate_available(gate, now=now)
    if max_downloads_reached(gate):
        raise MaxDownloadsExceededError()

    consumed = (
        db.query(DownloadToken)
        .filter(
            DownloadToken.id == record.id,
            DownloadToken.used == False,  # noqa: E712
            DownloadToken.expires_at > now,
        )
        .update({DownloadToken.used: True, DownloadToken.used_at: now}, synchronize_session=False)
    )
    if not consumed:
        db.rollback()
        logger.warning(f"❌ Download token lost redemption race: {token[:8]}...")
        fresh = db.query(DownloadToken).filter(DownloadToken.token == token).first()
        raise _classify_unredeemable(fresh, now=now)

    gate_filter = [DownloadGate.id == gate.id]
    if gate.max_downloads is not None:
        gate_filter.append(DownloadGate.download_count < gate.max_downloads)
    bumped = (
        db.query(DownloadGate)
        .filter(*gate_filter)
        .update({DownloadGate.download_count: DownloadGate.download_count + 1}, synchronize_session=False)
    )
    if not bumped:
        db.rollback()
        raise MaxDownloadsExceededError()

    db.query(DownloadSubmission).filter(
        DownloadSubmission.id == record.submission_id,
        DownloadSubmission.download_completed == False,  # noqa: E712
    ).update(
        {DownloadSubmission.download_completed: True, DownloadSubmission.download_completed_at: now},
        synchronize_session=False,
    )
    db.commit()

    redeemed = RedeemedDownload(file_url=gate.file_url, gate_id=gate.id, submission_id=record.submission_id)
    logger.info(f"✅ Download token redeemed for submission {redeemed.submission_id}")
    record_event_safely(hooks, db, gate_id=redeemed.gate_id, event_type="download", submission_id=redeemed.submission_id)
    return redeemed
