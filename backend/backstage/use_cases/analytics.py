"""Public analytics tracking; every failure is reported as False instead of raised."""
from __future__ import annotations

import logging
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ..services.analytics import AnalyticsRecorder
from .funnel_hooks import FunnelHooks, record_event_safely

logger = logging.getLogger(__name__)

PUBLIC_EVENT_TYPES: tuple[str, ...] = ("view", "submit", "download")


def track_public_event_use_case(
    *,
    db: Session,
    gate_id: str,
    event_type: str | None,
    session_id: str | None = None,
    referrer: str | None = None,
    utm_source: str | None = None,
    utm_medium: str | None = None,
    utm_campaign: str | None = None,
    country: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    hooks: FunnelHooks,
) -> bool:
    try:
        gate_uuid = UUID(str(gate_id))
    except ValueError:
        logger.warning(f"Analytics: malformed gate id {gate_id!r}")
        return False
    if event_type not in PUBLIC_EVENT_TYPES:
        logger.warning(f"Analytics: event type {event_type!r} is not accepted from clients")
        return False
    return record_event_safely(
        hooks,
        db,
        gate_id=gate_uuid,
        event_type=event_type,
        session_id=session_id,
        referrer=referrer,
        utm_source=utm_source,
        utm_medium=utm_medium,
        utm_campaign=utm_campaign,
        country=country,
        ip_address=ip_address,
        user_agent=user_agent,
    )


def record_gate_view_task(
    session_factory: Callable[[], Session],
    recorder: AnalyticsRecorder,
    *,
    gate_id: UUID,
    referrer: str | None,
    ip_address: str | None,
    user_agent: str | None,
) -> None:
    """Background-task entry point: the request session is closed by the time this runs."""
    db = session_factory()
    try:
        recorder.record(
            db,
            gate_id=gate_id,
            event_type="view",
            referrer=referrer,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    finally:
        db.close()
