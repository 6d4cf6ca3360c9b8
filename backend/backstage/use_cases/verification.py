"""OAuth callback use-cases: connect the platform account and run the gate's verification checks."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients.errors import PlatformAPIError
from ..clients.soundcloud import SoundCloudClient
from ..clients.spotify import SpotifyProfile, SpotifyTokens
from ..domain_errors import GateNotFoundError, OAuthExchangeError, SubmissionNotFoundError
from ..models import DownloadGate, DownloadSubmission, OAuthState, User
from ..services.gate_rules import missing_requirements
from .. import token_encryption
from ..token_encryption import TokenEncryptionError
from .auto_save import create_auto_save_subscription_use_case
from .funnel_hooks import FunnelHooks, record_event_safely, required_hook
from .oauth_states import consume_oauth_state_use_case

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    provider: str
    gate: DownloadGate
    submission: DownloadSubmission
    # Requirements of this provider the gate still wants verified.
    missing: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def _load_bound_rows(db: Session, state: OAuthState) -> tuple[DownloadGate, DownloadSubmission]:
    gate = db.query(DownloadGate).filter(DownloadGate.id == state.gate_id).first()
    if gate is None:
        raise GateNotFoundError()
    submission = (
        db.query(DownloadSubmission)
        .filter(DownloadSubmission.id == state.submission_id, DownloadSubmission.gate_id == gate.id)
        .first()
    )
    if submission is None:
        raise SubmissionNotFoundError()
    return gate, submission


def _check_soundcloud_repost(
    client: SoundCloudClient, *, access_token: str, user_id: str, gate: DownloadGate
) -> bool:
    if not gate.soundcloud_track_id:
        logger.warning(f"Gate {gate.slug} requires a repost but has no SoundCloud track id")
        return False
    try:
        return client.has_reposted(access_token, user_id, gate.soundcloud_track_id)
    except PlatformAPIError as exc:
        logger.warning(f"SoundCloud repost check failed for gate {gate.slug} (treated as not verified): {exc}")
        return False
    except Exception:
        logger.exception(f"SoundCloud repost check crashed for gate {gate.slug} (treated as not verified)")
        return False


def _check_soundcloud_follow(
    client: SoundCloudClient, *, access_token: str, user_id: str, gate: DownloadGate
) -> bool:
    if not gate.soundcloud_user_id:
        logger.warning(f"Gate {gate.slug} requires a follow but has no SoundCloud user id")
        return False
    try:
        return client.is_following(access_token, user_id, gate.soundcloud_user_id)
    except PlatformAPIError as exc:
        logger.warning(f"SoundCloud follow check failed for gate {gate.slug} (treated as not verified): {exc}")
        return False
    except Exception:
        logger.exception(f"SoundCloud follow check crashed for gate {gate.slug} (treated as not verified)")
        return False


def soundcloud_callback_use_case(
    *,
    db: Session,
    code: str,
    state_token: str,
    hooks: FunnelHooks,
) -> VerificationResult:
    client = required_hook("soundcloud", hooks.soundcloud)
    now = hooks.now_utc()
    state = consume_oauth_state_use_case(db=db, state_token=state_token, provider="soundcloud", now=now)

    try:
        access_token = client.exchange_code(code, state.code_verifier)
        profile = client.get_profile(access_token)
    except PlatformAPIError as exc:
        logger.error(f"❌ SoundCloud exchange failed for submission {state.submission_id}: {exc}")
        raise OAuthExchangeError(details={"provider": "soundcloud"}) from exc

    gate, submission = _load_bound_rows(db, state)
    submission.soundcloud_user_id = profile.id
    submission.soundcloud_username = profile.username
    submission.soundcloud_permalink = profile.permalink_url

    events: list[str] = []
    if gate.require_soundcloud_repost and not submission.soundcloud_repost_verified:
        if _check_soundcloud_repost(client, access_token=access_token, user_id=profile.id, gate=gate):
            submission.soundcloud_repost_verified = True
            submission.soundcloud_repost_verified_at = now
            events.append("verify_repost")
    if gate.require_soundcloud_follow and not submission.soundcloud_follow_verified:
        if _check_soundcloud_follow(client, access_token=access_token, user_id=profile.id, gate=gate):
            submission.soundcloud_follow_verified = True
            submission.soundcloud_follow_verified_at = now
            events.append("verify_follow")

    db.commit()
    db.refresh(submission)

    for event_type in events:
        record_event_safely(hooks, db, gate_id=gate.id, event_type=event_type, submission_id=submission.id)

    missing = missing_requirements(gate, submission, provider="soundcloud")
    logger.info(
        f"SoundCloud connected: submission={submission.id} user={profile.username} "
        f"verified={events or 'none'} missing={missing or 'none'}"
    )
    return VerificationResult(provider="soundcloud", gate=gate, submission=submission, missing=missing)


def _spotify_side_channel(
    db: Session,
    *,
    gate: DownloadGate,
    submission: DownloadSubmission,
    state: OAuthState,
    tokens: SpotifyTokens,
    profile: SpotifyProfile,
    hooks: FunnelHooks,
    now: datetime,
) -> None:
    """Follow the gate owner's artist profile and set up auto-save; failures are logged only."""
    owner = db.query(User).filter(User.id == gate.user_id).first()
    if owner is None or not owner.spotify_artist_id:
        logger.info(f"Gate {gate.slug} owner has no Spotify artist id, skipping follow and auto-save")
        return

    try:
        hooks.spotify.follow_artist(tokens.access_token, owner.spotify_artist_id)
    except PlatformAPIError as exc:
        logger.warning(f"Spotify follow artist failed (non-critical): {exc}")

    if not (state.auto_save_opt_in and tokens.refresh_token):
        return
    if not token_encryption.is_configured():
        logger.warning(f"TOKEN_ENCRYPTION_KEY not set, auto-save skipped for submission {submission.id}")
        return
    try:
        create_auto_save_subscription_use_case(
            db=db,
            submission_id=submission.id,
            spotify_user_id=profile.id,
            artist_user_id=owner.id,
            artist_spotify_id=owner.spotify_artist_id,
            tokens=tokens,
            now=now,
        )
    except (TokenEncryptionError, SQLAlchemyError) as exc:
        db.rollback()
        logger.warning(f"Auto-save subscription not created (non-critical): {exc}")


def spotify_callback_use_case(
    *,
    db: Session,
    code: str,
    state_token: str,
    hooks: FunnelHooks,
) -> VerificationResult:
    client = required_hook("spotify", hooks.spotify)
    now = hooks.now_utc()
    state = consume_oauth_state_use_case(db=db, state_token=state_token, provider="spotify", now=now)

    try:
        tokens = client.exchange_code(code, state.code_verifier)
        profile = client.get_profile(tokens.access_token)
    except PlatformAPIError as exc:
        logger.error(f"❌ Spotify exchange failed for submission {state.submission_id}: {exc}")
        raise OAuthExchangeError(details={"provider": "spotify"}) from exc

    gate, submission = _load_bound_rows(db, state)
    newly_connected = not submission.spotify_connected
    submission.spotify_user_id = profile.id
    submission.spotify_display_name = profile.display_name
    if newly_connected:
        submission.spotify_connected = True
        submission.spotify_connected_at = now
    db.commit()
    db.refresh(submission)

    if newly_connected:
        record_event_safely(hooks, db, gate_id=gate.id, event_type="connect_spotify", submission_id=submission.id)

    _spotify_side_channel(
        db,
        gate=gate,
        submission=submission,
        state=state,
        tokens=tokens,
        profile=profile,
        hooks=hooks,
        now=now,
    )

    missing = missing_requirements(gate, submission, provider="spotify")
    logger.info(f"Spotify connected: submission={submission.id} user={profile.id}")
    return VerificationResult(provider="spotify", gate=gate, submission=submission, missing=missing)
