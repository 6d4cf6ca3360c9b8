"""SoundCloud / Spotify connect flow: start (redirect to provider) and callback (redirect to gate page)."""
import logging
from typing import Callable, Optional
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_funnel_hooks
from ..domain_errors import DomainError
from ..models import DownloadGate, OAuthState
from ..use_cases.funnel_hooks import FunnelHooks
from ..use_cases.oauth_states import issue_oauth_state_use_case
from ..use_cases.verification import VerificationResult, soundcloud_callback_use_case, spotify_callback_use_case

router = APIRouter(prefix="/auth", tags=["oauth"])
logger = logging.getLogger(__name__)


def _redirect(url: str) -> RedirectResponse:
    response = RedirectResponse(url=url, status_code=302)
    response.headers["Cache-Control"] = "no-store"
    return response


def _gate_page_url(slug: str | None, params: dict[str, str]) -> str:
    base = settings.APP_BASE_URL.rstrip("/")
    if slug is None:
        # Unknown gate: only the error code is meaningful.
        return f"{base}/?{urlencode({'error': params['error']})}"
    return f"{base}/gate/{slug}?{urlencode(params)}"


def _slug_for_state(db: Session, state_token: str | None) -> str | None:
    if not state_token:
        return None
    row = (
        db.query(DownloadGate.slug)
        .join(OAuthState, OAuthState.gate_id == DownloadGate.id)
        .filter(OAuthState.state_token == state_token)
        .first()
    )
    return row[0] if row else None


def _success_or_retry_url(provider: str, result: VerificationResult) -> str:
    if result.complete:
        params = {provider: "success"}
    else:
        params = {provider: "retry", "missing": ",".join(result.missing)}
    return _gate_page_url(result.gate.slug, params)


def _start(provider: str, *, db: Session, hooks: FunnelHooks, submission_id: UUID, gate_id: UUID, auto_save_opt_in: bool):
    issued = issue_oauth_state_use_case(
        db=db,
        provider=provider,
        submission_id=submission_id,
        gate_id=gate_id,
        auto_save_opt_in=auto_save_opt_in,
        hooks=hooks,
    )
    return _redirect(issued.authorize_url)


def _callback(
    provider: str,
    use_case: Callable[..., VerificationResult],
    *,
    db: Session,
    hooks: FunnelHooks,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
) -> RedirectResponse:
    if error:
        logger.warning(f"{provider} authorization denied: {error}")
        return _redirect(_gate_page_url(_slug_for_state(db, state), {provider: "error", "error": error}))
    if not code or not state:
        return _redirect(_gate_page_url(_slug_for_state(db, state), {provider: "error", "error": "missing_params"}))

    try:
        result = use_case(db=db, code=code, state_token=state, hooks=hooks)
    except DomainError as exc:
        logger.warning(f"{provider} callback rejected: {exc.code} ({exc.message})")
        db.rollback()
        slug = _slug_for_state(db, state)
        return _redirect(_gate_page_url(slug, {provider: "error", "error": exc.code.lower()}))
    return _redirect(_success_or_retry_url(provider, result))


@router.get("/soundcloud")
def start_soundcloud(
    submission_id: UUID = Query(..., alias="submissionId"),
    gate_id: UUID = Query(..., alias="gateId"),
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    return _start("soundcloud", db=db, hooks=hooks, submission_id=submission_id, gate_id=gate_id, auto_save_opt_in=False)


@router.get("/soundcloud/callback")
def soundcloud_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    return _callback("soundcloud", soundcloud_callback_use_case, db=db, hooks=hooks, code=code, state=state, error=error)


@router.get("/spotify")
def start_spotify(
    submission_id: UUID = Query(..., alias="submissionId"),
    gate_id: UUID = Query(..., alias="gateId"),
    auto_save_opt_in: bool = Query(False, alias="autoSaveOptIn"),
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    return _start(
        "spotify", db=db, hooks=hooks, submission_id=submission_id, gate_id=gate_id, auto_save_opt_in=auto_save_opt_in
    )


@router.get("/spotify/callback")
def spotify_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    return _callback("spotify", spotify_callback_use_case, db=db, hooks=hooks, code=code, state=state, error=error)
