"""Spotify auto-save: store encrypted fan tokens and save an artist's new releases periodically."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients.errors import PlatformAPIError
from ..clients.spotify import SpotifyClient, SpotifyTokens
from ..config import settings
from ..models import AutoSaveSubscription
from ..services.gate_rules import as_utc
from ..token_encryption import TokenEncryptionError, decrypt_token, encrypt_token
from .funnel_hooks import FunnelHooks, required_hook

logger = logging.getLogger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(minutes=1)
RELEASES_PER_CHECK = 10
# Spotify rejects a dead refresh token with 400 invalid_grant (401 on some revocations).
_REVOKED_REFRESH_STATUSES = {400, 401}


class SubscriptionRevokedError(Exception):
    """Spotify refused the stored refresh token; the fan has to reconnect."""


@dataclass
class AutoSaveRunSummary:
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    saved: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"checked": self.checked, "succeeded": self.succeeded, "failed": self.failed, "saved": self.saved}


def _store_tokens(subscription: AutoSaveSubscription, tokens: SpotifyTokens, *, now: datetime) -> None:
    subscription.access_token_encrypted = encrypt_token(tokens.access_token)
    if tokens.refresh_token:
        subscription.refresh_token_encrypted = encrypt_token(tokens.refresh_token)
    subscription.token_expires_at = now + timedelta(seconds=tokens.expires_in)


def create_auto_save_subscription_use_case(
    *,
    db: Session,
    submission_id: UUID | None,
    spotify_user_id: str,
    artist_user_id: UUID,
    artist_spotify_id: str,
    tokens: SpotifyTokens,
    now: datetime,
) -> tuple[AutoSaveSubscription, bool]:
    """Create (or refresh and re-activate) the subscription for (fan, artist). Returns (row, created)."""
    subscription = (
        db.query(AutoSaveSubscription)
        .filter(
            AutoSaveSubscription.spotify_user_id == spotify_user_id,
            AutoSaveSubscription.artist_spotify_id == artist_spotify_id,
        )
        .first()
    )
    created = subscription is None
    if created:
        subscription = AutoSaveSubscription(
            submission_id=submission_id,
            spotify_user_id=spotify_user_id,
            artist_user_id=artist_user_id,
            artist_spotify_id=artist_spotify_id,
            last_check_at=now,
            next_check_at=now + timedelta(hours=settings.AUTO_SAVE_CHECK_INTERVAL_HOURS),
        )
    _store_tokens(subscription, tokens, now=now)
    subscription.active = True
    if created:
        db.add(subscription)
    db.commit()
    db.refresh(subscription)
    logger.info(
        f"Auto-save subscription {'created' if created else 'refreshed'}: "
        f"{subscription.id} fan={spotify_user_id} artist={artist_spotify_id}"
    )
    return subscription, created


def _fresh_access_token(
    client: SpotifyClient, subscription: AutoSaveSubscription, *, now: datetime
) -> str:
    expires_at = as_utc(subscription.token_expires_at)
    if expires_at is not None and expires_at - TOKEN_REFRESH_MARGIN > now:
        return decrypt_token(subscription.access_token_encrypted)

    try:
        tokens = client.refresh_access_token(decrypt_token(subscription.refresh_token_encrypted))
    except PlatformAPIError as exc:
        if exc.status in _REVOKED_REFRESH_STATUSES:
            raise SubscriptionRevokedError(str(exc)) from exc
        raise
    _store_tokens(subscription, tokens, now=now)
    return tokens.access_token


def _check_subscription(
    db: Session, client: SpotifyClient, subscription: AutoSaveSubscription, *, now: datetime
) -> int:
    access_token = _fresh_access_token(client, subscription, now=now)
    since = as_utc(subscription.last_check_at) or as_utc(subscription.created_at) or now
    releases = client.get_artist_releases(access_token, subscription.artist_spotify_id, limit=RELEASES_PER_CHECK)
    new_ids = [release.id for release in releases if release.released_on_or_after(since)]
    if new_ids:
        client.save_albums(access_token, new_ids)

    subscription.last_check_at = now
    subscription.next_check_at = now + timedelta(hours=settings.AUTO_SAVE_CHECK_INTERVAL_HOURS)
    db.commit()
    return len(new_ids)


def check_new_releases_use_case(
    *,
    db: Session,
    hooks: FunnelHooks,
    batch_size: int | None = None,
) -> AutoSaveRunSummary:
    client = required_hook("spotify", hooks.spotify)
    now = hooks.now_utc()
    limit = batch_size or settings.AUTO_SAVE_BATCH_SIZE

    subscriptions = (
        db.query(AutoSaveSubscription)
        .filter(
            AutoSaveSubscription.active == True,  # noqa: E712
            or_(AutoSaveSubscription.next_check_at.is_(None), AutoSaveSubscription.next_check_at <= now),
        )
        .order_by(AutoSaveSubscription.next_check_at.asc().nullsfirst(), AutoSaveSubscription.created_at.asc())
        .limit(limit)
        .all()
    )

    summary = AutoSaveRunSummary()
    for index, subscription in enumerate(subscriptions):
        if index:
            hooks.sleep(settings.AUTO_SAVE_RATE_LIMIT_DELAY_SECONDS)
        summary.checked += 1
        subscription_id = subscription.id
        try:
            saved = _check_subscription(db, client, subscription, now=now)
        except SubscriptionRevokedError as exc:
            db.rollback()
            summary.failed += 1
            db.query(AutoSaveSubscription).filter(AutoSaveSubscription.id == subscription_id).update(
                {AutoSaveSubscription.active: False}, synchronize_session=False
            )
            db.commit()
            logger.warning(f"❌ Auto-save subscription {subscription_id} deactivated: {exc}")
            continue
        except (PlatformAPIError, TokenEncryptionError, SQLAlchemyError) as exc:
            db.rollback()
            summary.failed += 1
            logger.error(f"❌ Auto-save check failed for {subscription_id}: {exc}")
            continue
        summary.succeeded += 1
        summary.saved += saved
        if saved:
            logger.info(f"✅ Saved {saved} new releases for subscription {subscription_id}")

    logger.info(f"Auto-save run finished: {summary.as_dict()}")
    return summary
