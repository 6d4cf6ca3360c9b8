"""Download gate funnel: owners, gates, submissions, OAuth states, download tokens, analytics.

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("spotify_artist_id", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "download_gates",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("artist_name", sa.String(length=255), nullable=True),
        sa.Column("genre", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("artwork_url", sa.Text(), nullable=True),
        sa.Column("soundcloud_track_id", sa.String(length=255), nullable=True),
        sa.Column("soundcloud_track_url", sa.Text(), nullable=True),
        sa.Column("soundcloud_user_id", sa.String(length=255), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_size_mb", sa.Numeric(10, 2), nullable=True),
        sa.Column("file_type", sa.String(length=50), nullable=True),
        sa.Column("require_email", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("require_soundcloud_repost", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("require_soundcloud_follow", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("require_spotify_connect", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("max_downloads", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pixel_config", postgresql.JSONB(), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("submission_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_download_gates_user_id", "download_gates", ["user_id"])
    op.create_index("ix_download_gates_slug", "download_gates", ["slug"], unique=True)
    op.create_index("ix_download_gates_soundcloud_track_id", "download_gates", ["soundcloud_track_id"])
    op.create_index("ix_download_gates_active", "download_gates", ["active"])

    op.create_table(
        "download_submissions",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("gate_id", UUID, sa.ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("soundcloud_user_id", sa.String(length=255), nullable=True),
        sa.Column("soundcloud_username", sa.String(length=255), nullable=True),
        sa.Column("soundcloud_permalink", sa.Text(), nullable=True),
        sa.Column("spotify_user_id", sa.String(length=255), nullable=True),
        sa.Column("spotify_display_name", sa.String(length=255), nullable=True),
        sa.Column("soundcloud_repost_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("soundcloud_repost_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("soundcloud_follow_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("soundcloud_follow_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("spotify_connected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("spotify_connected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("download_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("download_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consent_marketing", sa.Boolean(), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("gate_id", "email", name="uq_download_submissions_gate_email"),
    )
    op.create_index("ix_download_submissions_gate_id", "download_submissions", ["gate_id"])
    op.create_index("ix_download_submissions_email", "download_submissions", ["email"])
    op.create_index("ix_download_submissions_soundcloud_user_id", "download_submissions", ["soundcloud_user_id"])
    op.create_index("ix_download_submissions_created_at", "download_submissions", ["created_at"])

    op.create_table(
        "oauth_states",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("state_token", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column(
            "submission_id",
            UUID,
            sa.ForeignKey("download_submissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("gate_id", UUID, sa.ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code_verifier", sa.String(length=255), nullable=True),
        sa.Column("auto_save_opt_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.CheckConstraint("provider IN ('soundcloud', 'spotify')", name="chk_oauth_state_provider"),
    )
    op.create_index("ix_oauth_states_state_token", "oauth_states", ["state_token"], unique=True)
    op.create_index("ix_oauth_states_submission_id", "oauth_states", ["submission_id"])
    op.create_index("ix_oauth_states_expires_at", "oauth_states", ["expires_at"])

    op.create_table(
        "download_tokens",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column(
            "submission_id",
            UUID,
            sa.ForeignKey("download_submissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("gate_id", UUID, sa.ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_download_tokens_token", "download_tokens", ["token"], unique=True)
    op.create_index("ix_download_tokens_submission_id", "download_tokens", ["submission_id"])
    op.create_index(
        "idx_download_tokens_unused",
        "download_tokens",
        ["submission_id", "expires_at"],
        postgresql_where=sa.text("used = false"),
    )

    op.create_table(
        "download_gate_analytics",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("gate_id", UUID, sa.ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("session_id", sa.String(length=255), nullable=True),
        sa.Column(
            "submission_id",
            UUID,
            sa.ForeignKey("download_submissions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("utm_source", sa.String(length=255), nullable=True),
        sa.Column("utm_medium", sa.String(length=255), nullable=True),
        sa.Column("utm_campaign", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("country", sa.String(length=2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.CheckConstraint(
            "event_type IN ('view', 'submit', 'verify_repost', 'verify_follow', 'connect_spotify', 'download')",
            name="chk_gate_analytics_event_type",
        ),
    )
    op.create_index("ix_download_gate_analytics_gate_id", "download_gate_analytics", ["gate_id"])
    op.create_index("ix_download_gate_analytics_event_type", "download_gate_analytics", ["event_type"])
    op.create_index("ix_download_gate_analytics_session_id", "download_gate_analytics", ["session_id"])
    op.create_index("ix_download_gate_analytics_created_at", "download_gate_analytics", ["created_at"])


def downgrade() -> None:
    op.drop_table("download_gate_analytics")
    op.drop_table("download_tokens")
    op.drop_table("oauth_states")
    op.drop_table("download_submissions")
    op.drop_table("download_gates")
    op.drop_table("users")
