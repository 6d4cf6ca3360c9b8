"""FastAPI dependency providers for funnel collaborators (overridden in tests)."""
from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends

from .clients.soundcloud import SoundCloudClient
from .clients.spotify import SpotifyClient
from .services.analytics import AnalyticsRecorder
from .services.gate_rules import now_utc
from .use_cases.funnel_hooks import FunnelHooks


@lru_cache()
def get_soundcloud_client() -> SoundCloudClient:
    return SoundCloudClient()


@lru_cache()
def get_spotify_client() -> SpotifyClient:
    return SpotifyClient()


@lru_cache()
def get_analytics_recorder() -> AnalyticsRecorder:
    return AnalyticsRecorder()


def get_clock() -> Callable[[], datetime]:
    return now_utc


def get_funnel_hooks(
    clock: Callable[[], datetime] = Depends(get_clock),
    soundcloud: SoundCloudClient = Depends(get_soundcloud_client),
    spotify: SpotifyClient = Depends(get_spotify_client),
    analytics: AnalyticsRecorder = Depends(get_analytics_recorder),
) -> FunnelHooks:
    return FunnelHooks(now_utc=clock, soundcloud=soundcloud, spotify=spotify, analytics=analytics)
