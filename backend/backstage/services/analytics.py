"""Best-effort funnel analytics: never raises, never blocks the primary flow."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import ANALYTICS_EVENT_TYPES, DownloadGate, DownloadGateAnalytics
from .gate_rules import normalize_country

logger = logging.getLogger(__name__)


def _clip(value: str | None, size: int) -> str | None:
    return value[:size] if value else None


class AnalyticsRecorder:
    """Writes analytics rows in their own commit; failures are logged and reported as False."""

    def record(
        self,
        db: Session,
        *,
        gate_id: UUID,
        event_type: str,
        submission_id: UUID | None = None,
        session_id: str | None = None,
        referrer: str | None = None,
        utm_source: str | None = None,
        utm_medium: str | None = None,
        utm_campaign: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        country: str | None = None,
    ) -> bool:
        if event_type not in ANALYTICS_EVENT_TYPES:
            logger.warning(f"Analytics: unknown event type {event_type!r} for gate {gate_id}")
            return False
        try:
            exists = db.query(DownloadGate.id).filter(DownloadGate.id == gate_id).first()
            if exists is None:
                logger.warning(f"Analytics: gate {gate_id} not found, dropping {event_type} event")
                return False

            db.add(
                DownloadGateAnalytics(
                    gate_id=gate_id,
                    event_type=event_type,
                    submission_id=submission_id,
                    session_id=_clip(session_id, 255),
                    referrer=referrer,
                    utm_source=_clip(utm_source, 255),
                    utm_medium=_clip(utm_medium, 255),
                    utm_campaign=_clip(utm_campaign, 255),
                    ip_address=_clip(ip_address, 64),
                    user_agent=_clip(user_agent, 512),
                    country=normalize_country(country),
                )
            )
            if event_type == "view":
                db.query(DownloadGate).filter(DownloadGate.id == gate_id).update(
                    {DownloadGate.view_count: DownloadGate.view_count + 1},
                    synchronize_session=False,
                )
            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Analytics: failed to record {event_type} event for gate {gate_id}")
            return False
