"""Owner-side download gate management (CRUD, stats, submissions)."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain_errors import GateHasSubmissionsError, GateNotFoundError, GateSlugTakenError, ValidationError
from ..models import DownloadGate, DownloadSubmission, User
from ..schemas import GateCreate, GateStatsOut, GateUpdate
from ..services.gate_rules import slugify, validate_slug

logger = logging.getLogger(__name__)


def calculate_conversion_rate(conversions: int, total: int) -> float:
    """Percentage with two decimals; 0 when there is nothing to convert."""
    if total <= 0:
        return 0.0
    return round(conversions / total * 100, 2)


def _ensure_slug_free(db: Session, slug: str, *, exclude_gate_id: UUID | None = None) -> None:
    query = db.query(DownloadGate.id).filter(DownloadGate.slug == slug)
    if exclude_gate_id is not None:
        query = query.filter(DownloadGate.id != exclude_gate_id)
    if query.first() is not None:
        raise GateSlugTakenError(details={"slug": slug})


def _ensure_verification_targets(gate: DownloadGate) -> None:
    if gate.require_soundcloud_repost and not gate.soundcloud_track_id:
        raise ValidationError("soundcloudTrackId is required when a repost is required")
    if gate.require_soundcloud_follow and not gate.soundcloud_user_id:
        raise ValidationError("soundcloudUserId is required when a follow is required")


def _commit_gate(db: Session, gate: DownloadGate) -> DownloadGate:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise GateSlugTakenError(details={"slug": gate.slug}) from exc
    db.refresh(gate)
    return gate


def get_owned_gate(db: Session, *, owner: User, gate_id: UUID) -> DownloadGate:
    gate = (
        db.query(DownloadGate)
        .filter(DownloadGate.id == gate_id, DownloadGate.user_id == owner.id)
        .first()
    )
    if gate is None:
        raise GateNotFoundError()
    return gate


def list_gates_use_case(*, db: Session, owner: User) -> list[DownloadGate]:
    return (
        db.query(DownloadGate)
        .filter(DownloadGate.user_id == owner.id)
        .order_by(DownloadGate.created_at.desc())
        .all()
    )


def create_gate_use_case(*, db: Session, owner: User, data: GateCreate) -> DownloadGate:
    slug = validate_slug(data.slug) if data.slug else slugify(data.title)
    if not slug:
        raise ValidationError("Could not derive a slug from the title; provide one explicitly")
    _ensure_slug_free(db, slug)

    gate = DownloadGate(user_id=owner.id, slug=slug, **data.model_dump(exclude={"slug"}))
    _ensure_verification_targets(gate)
    db.add(gate)
    _commit_gate(db, gate)
    logger.info(f"✅ Gate {gate.slug} created by {owner.email}")
    return gate


def update_gate_use_case(*, db: Session, owner: User, gate_id: UUID, data: GateUpdate) -> DownloadGate:
    gate = get_owned_gate(db, owner=owner, gate_id=gate_id)
    changes = data.model_dump(exclude_unset=True)

    if "slug" in changes:
        slug = validate_slug(changes.pop("slug"))
        if slug != gate.slug:
            _ensure_slug_free(db, slug, exclude_gate_id=gate.id)
            gate.slug = slug
    for key in ("title", "file_url"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be empty")
    for key, value in changes.items():
        setattr(gate, key, value)

    _ensure_verification_targets(gate)
    return _commit_gate(db, gate)


def delete_gate_use_case(*, db: Session, owner: User, gate_id: UUID) -> None:
    gate = get_owned_gate(db, owner=owner, gate_id=gate_id)
    has_submissions = (
        db.query(DownloadSubmission.id).filter(DownloadSubmission.gate_id == gate.id).first() is not None
    )
    if has_submissions:
        raise GateHasSubmissionsError()
    db.delete(gate)
    db.commit()
    logger.info(f"Gate {gate_id} deleted by {owner.email}")


def gate_stats_use_case(*, db: Session, owner: User, gate_id: UUID) -> GateStatsOut:
    gate = get_owned_gate(db, owner=owner, gate_id=gate_id)
    reposts, follows, spotify = (
        db.query(
            func.count(DownloadSubmission.id).filter(DownloadSubmission.soundcloud_repost_verified == True),  # noqa: E712
            func.count(DownloadSubmission.id).filter(DownloadSubmission.soundcloud_follow_verified == True),  # noqa: E712
            func.count(DownloadSubmission.id).filter(DownloadSubmission.spotify_connected == True),  # noqa: E712
        )
        .filter(DownloadSubmission.gate_id == gate.id)
        .one()
    )
    return GateStatsOut(
        gate_id=gate.id,
        total_views=gate.view_count or 0,
        total_submissions=gate.submission_count or 0,
        total_downloads=gate.download_count or 0,
        conversion_rate=calculate_conversion_rate(gate.download_count or 0, gate.view_count or 0),
        soundcloud_reposts=int(reposts or 0),
        soundcloud_follows=int(follows or 0),
        spotify_connects=int(spotify or 0),
    )


def list_submissions_use_case(
    *,
    db: Session,
    owner: User,
    gate_id: UUID,
    limit: int,
    offset: int,
) -> tuple[list[DownloadSubmission], int]:
    gate = get_owned_gate(db, owner=owner, gate_id=gate_id)
    query = db.query(DownloadSubmission).filter(DownloadSubmission.gate_id == gate.id)
    total = query.count()
    items = query.order_by(DownloadSubmission.created_at.desc()).offset(offset).limit(limit).all()
    return items, total
