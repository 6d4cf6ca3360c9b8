"""Contacts captured from gates, GDPR consent audit, Spotify auto-save subscriptions.

Revision ID: 002
Revises: 001
Create Date: 2026-10-14
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "contacts",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("subscribed", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="download_gate"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("user_id", "email", name="uq_contacts_user_email"),
    )
    op.create_index("ix_contacts_user_id", "contacts", ["user_id"])

    op.create_table(
        "consent_events",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("gate_id", UUID, sa.ForeignKey("download_gates.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "submission_id",
            UUID,
            sa.ForeignKey("download_submissions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("consent_marketing", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="download_gate"),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
    )
    op.create_index("ix_consent_events_gate_id", "consent_events", ["gate_id"])
    op.create_index("ix_consent_events_email", "consent_events", ["email"])
    op.create_index("ix_consent_events_created_at", "consent_events", ["created_at"])

    op.create_table(
        "spotify_auto_save_subscriptions",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column(
            "submission_id",
            UUID,
            sa.ForeignKey("download_submissions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("spotify_user_id", sa.String(length=255), nullable=False),
        sa.Column("artist_user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("artist_spotify_id", sa.String(length=255), nullable=False),
        sa.Column("access_token_encrypted", sa.Text(), nullable=False),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_check_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.UniqueConstraint("spotify_user_id", "artist_spotify_id", name="uq_auto_save_user_artist"),
    )
    op.create_index(
        "ix_spotify_auto_save_subscriptions_artist_user_id",
        "spotify_auto_save_subscriptions",
        ["artist_user_id"],
    )
    op.create_index(
        "ix_spotify_auto_save_subscriptions_next_check_at",
        "spotify_auto_save_subscriptions",
        ["next_check_at"],
    )


def downgrade() -> None:
    op.drop_table("spotify_auto_save_subscriptions")
    op.drop_table("consent_events")
    op.drop_table("contacts")
