"""
Celery worker for the periodic funnel jobs (Spotify auto-save, OAuth state cleanup).
"""
from celery import Celery
import logging
from .config import settings
from .database import SessionLocal
from .dependencies import get_spotify_client
from .services.gate_rules import now_utc
from .use_cases.auto_save import check_new_releases_use_case
from .use_cases.funnel_hooks import FunnelHooks
from .use_cases.oauth_states import purge_expired_oauth_states_use_case

logger = logging.getLogger(__name__)

celery_app = Celery(
    "backstage",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


@celery_app.task(name="check_spotify_releases")
def check_spotify_releases(batch_size: int | None = None):
    """Save new releases of followed artists to subscribed fans' Spotify libraries."""
    spotify = get_spotify_client()
    if not spotify.is_configured():
        logger.warning("Spotify is not configured; skipping release check")
        return {"checked": 0, "succeeded": 0, "failed": 0, "saved": 0}

    db = SessionLocal()
    try:
        summary = check_new_releases_use_case(
            db=db,
            hooks=FunnelHooks(spotify=spotify),
            batch_size=batch_size,
        )
        return summary.as_dict()
    finally:
        db.close()


@celery_app.task(name="purge_expired_oauth_states")
def purge_expired_oauth_states():
    db = SessionLocal()
    try:
        deleted = purge_expired_oauth_states_use_case(db=db, now=now_utc())
        if deleted:
            logger.info(f"🧹 Purged {deleted} expired OAuth states")
        return deleted
    finally:
        db.close()


# Beat schedule
celery_app.conf.beat_schedule = {
    'check-spotify-releases-every-6h': {
        'task': 'check_spotify_releases',
        'schedule': settings.AUTO_SAVE_CHECK_INTERVAL_HOURS * 3600.0,
    },
    'purge-expired-oauth-states-hourly': {
        'task': 'purge_expired_oauth_states',
        'schedule': 3600.0,
    },
}
