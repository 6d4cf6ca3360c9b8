"""Download-gate invariant helpers (availability, requirements, input normalisation)."""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone

from ..domain_errors import GateExpiredError, GateInactiveError, ValidationError


EMAIL_MAX_LENGTH = 255
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MAX_LENGTH = 100

# Requirement flag on the gate -> verified flag on the submission.
REQUIREMENT_FLAGS: dict[str, str] = {
    "soundcloud_repost": "soundcloud_repost_verified",
    "soundcloud_follow": "soundcloud_follow_verified",
    "spotify_connect": "spotify_connected",
}
PROVIDER_REQUIREMENTS: dict[str, tuple[str, ...]] = {
    "soundcloud": ("soundcloud_repost", "soundcloud_follow"),
    "spotify": ("spotify_connect",),
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_email(email: str | None) -> str:
    if email is None or not email.strip():
        raise ValidationError("Email is required")
    value = email.strip().lower()
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValidationError(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    if not _EMAIL_RE.match(value):
        raise ValidationError("Invalid email format")
    return value


def ensure_gate_available(gate, *, now: datetime) -> None:
    if not gate.active:
        raise GateInactiveError()
    expires_at = as_utc(gate.expires_at)
    if expires_at is not None and expires_at <= as_utc(now):
        raise GateExpiredError()


def max_downloads_reached(gate) -> bool:
    return gate.max_downloads is not None and (gate.download_count or 0) >= gate.max_downloads


def required_requirements(gate) -> list[str]:
    required = []
    if gate.require_soundcloud_repost:
        required.append("soundcloud_repost")
    if gate.require_soundcloud_follow:
        required.append("soundcloud_follow")
    if gate.require_spotify_connect:
        required.append("spotify_connect")
    return required


def missing_requirements(gate, submission, *, provider: str | None = None) -> list[str]:
    """Required requirements not yet verified on the submission (optionally for one provider)."""
    missing = []
    for requirement in required_requirements(gate):
        if provider is not None and requirement not in PROVIDER_REQUIREMENTS[provider]:
            continue
        if not getattr(submission, REQUIREMENT_FLAGS[requirement]):
            missing.append(requirement)
    return missing


def requires_verification(gate) -> bool:
    return bool(required_requirements(gate))


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].strip("-")


def validate_slug(slug: str | None) -> str:
    value = (slug or "").strip().lower()
    if not value or len(value) > SLUG_MAX_LENGTH or not _SLUG_RE.match(value):
        raise ValidationError("Slug must contain only lowercase letters, numbers and hyphens")
    return value


def normalize_country(country: str | None) -> str | None:
    if not country:
        return None
    value = country.strip().upper()
    if len(value) != 2 or not value.isalpha():
        return None
    return value
