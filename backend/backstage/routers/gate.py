"""Public download-gate funnel endpoints."""
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..database import get_db, get_session_factory
from ..dependencies import get_analytics_recorder, get_funnel_hooks
from ..domain_errors import ValidationError
from ..models import DownloadGate
from ..rate_limit import get_client_ip, get_user_agent, limit_download_tokens, limit_submissions
from ..schemas import (
    AnalyticsEventRequest,
    AnalyticsResponse,
    DownloadTokenRequest,
    DownloadTokenResponse,
    GateRequirements,
    PublicGateOut,
    PublicGateResponse,
    SubmitRequest,
    SubmitResponse,
    VerificationsSent,
)
from ..services.analytics import AnalyticsRecorder
from ..services.gate_rules import as_utc
from ..use_cases.analytics import record_gate_view_task, track_public_event_use_case
from ..use_cases.download_tokens import issue_download_token_use_case
from ..use_cases.funnel_hooks import FunnelHooks
from ..use_cases.gate_resolver import resolve_gate_use_case
from ..use_cases.submissions import submit_email_use_case

router = APIRouter(prefix="/gate", tags=["gate"])
logger = logging.getLogger(__name__)


def _public_gate_out(gate: DownloadGate) -> PublicGateOut:
    return PublicGateOut(
        id=gate.id,
        slug=gate.slug,
        title=gate.title,
        artist_name=gate.artist_name,
        genre=gate.genre,
        description=gate.description,
        artwork_url=gate.artwork_url,
        soundcloud_track_url=gate.soundcloud_track_url,
        file_size_mb=float(gate.file_size_mb) if gate.file_size_mb is not None else None,
        file_type=gate.file_type,
        expires_at=as_utc(gate.expires_at),
        pixel_config=gate.pixel_config,
        requirements=GateRequirements(
            email=gate.require_email,
            soundcloud_repost=gate.require_soundcloud_repost,
            soundcloud_follow=gate.require_soundcloud_follow,
            spotify_connect=gate.require_spotify_connect,
        ),
    )


@router.post("/analytics", response_model=AnalyticsResponse)
async def track_analytics(
    request: Request,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    """Client-side funnel events. Only a missing gateId is an error; everything else answers 200."""
    try:
        payload = json.loads(await request.body() or b"null")
    except (ValueError, UnicodeDecodeError):
        logger.warning("Analytics: request body is not valid JSON")
        return AnalyticsResponse(success=False)
    if not isinstance(payload, dict):
        return AnalyticsResponse(success=False)
    if not payload.get("gateId"):
        raise ValidationError("gateId is required")

    try:
        event = AnalyticsEventRequest.model_validate(payload)
    except PydanticValidationError:
        logger.warning("Analytics: malformed event payload")
        return AnalyticsResponse(success=False)

    recorded = await run_in_threadpool(
        track_public_event_use_case,
        db=db,
        gate_id=event.gate_id,
        event_type=event.event_type,
        session_id=event.session_id,
        referrer=event.referrer,
        utm_source=event.utm_source,
        utm_medium=event.utm_medium,
        utm_campaign=event.utm_campaign,
        country=event.country,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        hooks=hooks,
    )
    return AnalyticsResponse(success=recorded)


@router.get("/{slug}", response_model=PublicGateResponse)
def get_gate(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
    session_factory=Depends(get_session_factory),
    recorder: AnalyticsRecorder = Depends(get_analytics_recorder),
):
    """Resolve an available gate and count the view after the response is sent."""
    gate = resolve_gate_use_case(db=db, slug=slug, now=hooks.now_utc())
    background_tasks.add_task(
        record_gate_view_task,
        session_factory,
        recorder,
        gate_id=gate.id,
        referrer=request.headers.get("referer"),
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return PublicGateResponse(gate=_public_gate_out(gate))


@router.post(
    "/{slug}/submit",
    response_model=SubmitResponse,
    status_code=201,
    dependencies=[Depends(limit_submissions)],
)
def submit_email(
    slug: str,
    data: SubmitRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    result = submit_email_use_case(
        db=db,
        slug=slug,
        email=data.email,
        first_name=data.first_name,
        consent_marketing=data.consent_marketing,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        hooks=hooks,
    )
    if not result.created:
        response.status_code = 200
    return SubmitResponse(
        submission_id=result.submission.id,
        created=result.created,
        requires_verification=result.requires_verification,
        verifications_sent=VerificationsSent(**result.verifications_sent),
    )


@router.post(
    "/{slug}/download-token",
    response_model=DownloadTokenResponse,
    dependencies=[Depends(limit_download_tokens)],
)
def create_download_token(
    slug: str,
    data: DownloadTokenRequest,
    response: Response,
    db: Session = Depends(get_db),
    hooks: FunnelHooks = Depends(get_funnel_hooks),
):
    token = issue_download_token_use_case(db=db, slug=slug, submission_id=data.submission_id, hooks=hooks)
    response.headers["Cache-Control"] = "no-store"
    return DownloadTokenResponse(token=token.token, expires_at=as_utc(token.expires_at))
