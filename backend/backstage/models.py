"""SQLAlchemy models for download gates, funnel progress and single-use credentials."""
from sqlalchemy import (
    JSON, Boolean, Column, String, Integer, Numeric, DateTime, Text, Uuid,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text
import uuid
from .database import Base

OAUTH_PROVIDERS = ("soundcloud", "spotify")
ANALYTICS_EVENT_TYPES = ("view", "submit", "verify_repost", "verify_follow", "connect_spotify", "download")

JSONType = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    """Gate owner (artist / label account)."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    # Artist profile on Spotify; fans connecting Spotify follow it.
    spotify_artist_id = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    gates = relationship("DownloadGate", back_populates="owner")


class DownloadGate(Base):
    """Artist-configured funnel gating a file behind email capture and social actions."""
    __tablename__ = "download_gates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    artist_name = Column(String(255), nullable=True)
    genre = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    artwork_url = Column(Text, nullable=True)

    # Verification targets
    soundcloud_track_id = Column(String(255), nullable=True, index=True)
    soundcloud_track_url = Column(Text, nullable=True)
    soundcloud_user_id = Column(String(255), nullable=True)

    file_url = Column(Text, nullable=False)
    file_size_mb = Column(Numeric(10, 2), nullable=True)
    file_type = Column(String(50), nullable=True)

    require_email = Column(Boolean, default=True, nullable=False)
    require_soundcloud_repost = Column(Boolean, default=False, nullable=False)
    require_soundcloud_follow = Column(Boolean, default=False, nullable=False)
    require_spotify_connect = Column(Boolean, default=False, nullable=False)

    active = Column(Boolean, default=True, nullable=False, index=True)
    max_downloads = Column(Integer, nullable=True)  # NULL = unlimited
    expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = never

    pixel_config = Column(JSONType, nullable=True)

    view_count = Column(Integer, default=0, nullable=False)
    submission_count = Column(Integer, default=0, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="gates")
    submissions = relationship("DownloadSubmission", back_populates="gate")


class DownloadSubmission(Base):
    """One visitor's progress through a gate."""
    __tablename__ = "download_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gate_id = Column(Uuid, ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(255), nullable=True)

    soundcloud_user_id = Column(String(255), nullable=True, index=True)
    soundcloud_username = Column(String(255), nullable=True)
    soundcloud_permalink = Column(Text, nullable=True)

    spotify_user_id = Column(String(255), nullable=True)
    spotify_display_name = Column(String(255), nullable=True)

    soundcloud_repost_verified = Column(Boolean, default=False, nullable=False)
    soundcloud_repost_verified_at = Column(DateTime(timezone=True), nullable=True)
    soundcloud_follow_verified = Column(Boolean, default=False, nullable=False)
    soundcloud_follow_verified_at = Column(DateTime(timezone=True), nullable=True)
    spotify_connected = Column(Boolean, default=False, nullable=False)
    spotify_connected_at = Column(DateTime(timezone=True), nullable=True)

    download_completed = Column(Boolean, default=False, nullable=False)
    download_completed_at = Column(DateTime(timezone=True), nullable=True)

    consent_marketing = Column(Boolean, nullable=False)

    # GDPR audit trail
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    gate = relationship("DownloadGate", back_populates="submissions")

    __table_args__ = (
        UniqueConstraint("gate_id", "email", name="uq_download_submissions_gate_email"),
    )


class OAuthState(Base):
    """Single-use CSRF/PKCE state for a SoundCloud or Spotify connect round-trip."""
    __tablename__ = "oauth_states"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    state_token = Column(String(255), unique=True, nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    submission_id = Column(
        Uuid, ForeignKey("download_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    gate_id = Column(Uuid, ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False)
    code_verifier = Column(String(255), nullable=True)
    auto_save_opt_in = Column(Boolean, default=False, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("provider IN ('soundcloud', 'spotify')", name="chk_oauth_state_provider"),
    )


class DownloadToken(Base):
    """Single-use, expiring credential redeemable once for the gate file URL."""
    __tablename__ = "download_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(128), unique=True, nullable=False, index=True)
    submission_id = Column(
        Uuid, ForeignKey("download_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    gate_id = Column(Uuid, ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_download_tokens_unused", "submission_id", "expires_at", postgresql_where=text("used = false")),
    )


class DownloadGateAnalytics(Base):
    """Funnel event row (view / submit / verification / download)."""
    __tablename__ = "download_gate_analytics"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gate_id = Column(Uuid, ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    session_id = Column(String(255), nullable=True, index=True)
    submission_id = Column(Uuid, ForeignKey("download_submissions.id", ondelete="SET NULL"), nullable=True)
    referrer = Column(Text, nullable=True)
    utm_source = Column(String(255), nullable=True)
    utm_medium = Column(String(255), nullable=True)
    utm_campaign = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    country = Column(String(2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('view', 'submit', 'verify_repost', 'verify_follow', 'connect_spotify', 'download')",
            name="chk_gate_analytics_event_type",
        ),
    )


class Contact(Base):
    """Owner's contact captured from a gate with marketing consent."""
    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    subscribed = Column(Boolean, default=True, nullable=False)
    source = Column(String(50), nullable=False, default="download_gate")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_contacts_user_email"),
    )


class ConsentEvent(Base):
    """GDPR audit row, written for every consent decision."""
    __tablename__ = "consent_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gate_id = Column(Uuid, ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False, index=True)
    submission_id = Column(Uuid, ForeignKey("download_submissions.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    consent_marketing = Column(Boolean, nullable=False)
    source = Column(String(50), nullable=False, default="download_gate")
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class AutoSaveSubscription(Base):
    """Fan opt-in to have an artist's new Spotify releases saved to their library."""
    __tablename__ = "spotify_auto_save_subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id = Column(Uuid, ForeignKey("download_submissions.id", ondelete="SET NULL"), nullable=True)
    spotify_user_id = Column(String(255), nullable=False)
    artist_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    artist_spotify_id = Column(String(255), nullable=False)
    access_token_encrypted = Column(Text, nullable=False)
    refresh_token_encrypted = Column(Text, nullable=False)
    token_expires_at = Column(DateTime(timezone=True), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    last_check_at = Column(DateTime(timezone=True), nullable=True)
    next_check_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("spotify_user_id", "artist_spotify_id", name="uq_auto_save_user_artist"),
    )
