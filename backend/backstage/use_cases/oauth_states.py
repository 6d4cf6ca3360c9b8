"""Single-use OAuth state tokens (CSRF + PKCE) for SoundCloud / Spotify connect."""
from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import (
    ExpiredTokenError,
    InvalidTokenError,
    MissingPKCEVerifierError,
    OAuthProviderMismatchError,
    ProviderNotConfiguredError,
    SubmissionNotFoundError,
    TokenAlreadyUsedError,
)
from ..models import OAUTH_PROVIDERS, DownloadSubmission, OAuthState
from ..services.gate_rules import as_utc
from .funnel_hooks import FunnelHooks
from .gate_resolver import resolve_gate_by_id_use_case

logger = logging.getLogger(__name__)

PKCE_VERIFIER_BYTES = 64
STATE_TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedOAuthState:
    state: OAuthState
    authorize_url: str


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_pkce_pair(random_bytes: Callable[[int], bytes]) -> tuple[str, str]:
    """Return (code_verifier, S256 code_challenge)."""
    verifier = _b64url(random_bytes(PKCE_VERIFIER_BYTES))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return verifier, challenge


def _provider_client(provider: str, hooks: FunnelHooks):
    if provider not in OAUTH_PROVIDERS:
        raise OAuthProviderMismatchError()
    client = hooks.soundcloud if provider == "soundcloud" else hooks.spotify
    if client is None or not client.is_configured():
        raise ProviderNotConfiguredError(f"{provider} is not configured")
    return client


def issue_oauth_state_use_case(
    *,
    db: Session,
    provider: str,
    submission_id: UUID,
    gate_id: UUID,
    auto_save_opt_in: bool = False,
    hooks: FunnelHooks,
) -> IssuedOAuthState:
    client = _provider_client(provider, hooks)
    now = hooks.now_utc()

    gate = resolve_gate_by_id_use_case(db=db, gate_id=gate_id, now=now)
    submission = (
        db.query(DownloadSubmission)
        .filter(DownloadSubmission.id == submission_id, DownloadSubmission.gate_id == gate.id)
        .first()
    )
    if submission is None:
        raise SubmissionNotFoundError()

    verifier, challenge = generate_pkce_pair(hooks.random_bytes)
    state = OAuthState(
        state_token=hooks.token_urlsafe(STATE_TOKEN_BYTES),
        provider=provider,
        submission_id=submission.id,
        gate_id=gate.id,
        code_verifier=verifier,
        auto_save_opt_in=bool(auto_save_opt_in and provider == "spotify"),
        used=False,
        expires_at=now + timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES),
    )
    db.add(state)
    db.commit()
    db.refresh(state)
    logger.info(f"OAuth state issued: provider={provider} submission={submission.id} state={state.state_token[:8]}...")
    return IssuedOAuthState(state=state, authorize_url=client.authorization_url(state.state_token, challenge))


def consume_oauth_state_use_case(*, db: Session, state_token: str, provider: str, now: datetime) -> OAuthState:
    """Burn the state in one conditional UPDATE, then classify why it could not be burned."""
    consumed = (
        db.query(OAuthState)
        .filter(
            OAuthState.state_token == state_token,
            OAuthState.used == False,  # noqa: E712
            OAuthState.expires_at > now,
        )
        .update({OAuthState.used: True, OAuthState.used_at: now}, synchronize_session=False)
    )
    db.commit()

    state = db.query(OAuthState).filter(OAuthState.state_token == state_token).first()
    if not consumed:
        if state is None:
            raise InvalidTokenError("Invalid OAuth state")
        if state.used:
            logger.warning(f"❌ OAuth state replay rejected: {state_token[:8]}...")
            raise TokenAlreadyUsedError("OAuth state has already been used")
        if as_utc(state.expires_at) <= as_utc(now):
            raise ExpiredTokenError("OAuth state has expired")
        # Consumed by a concurrent callback between the UPDATE and the read.
        raise TokenAlreadyUsedError("OAuth state has already been used")

    if state.provider != provider:
        raise OAuthProviderMismatchError()
    if not state.code_verifier:
        raise MissingPKCEVerifierError()
    return state


def purge_expired_oauth_states_use_case(*, db: Session, now: datetime) -> int:
    deleted = db.query(OAuthState).filter(OAuthState.expires_at < now).delete(synchronize_session=False)
    db.commit()
    return int(deleted or 0)
