"""Collaborators shared by the download-gate funnel use-cases."""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..clients.soundcloud import SoundCloudClient
from ..clients.spotify import SpotifyClient
from ..services.analytics import AnalyticsRecorder
from ..services.gate_rules import now_utc


@dataclass(frozen=True)
class FunnelHooks:
    """Swappable clock, randomness, platform clients and analytics channel."""

    now_utc: Callable[[], datetime] = now_utc
    token_hex: Callable[[int], str] = secrets.token_hex
    token_urlsafe: Callable[[int], str] = secrets.token_urlsafe
    random_bytes: Callable[[int], bytes] = secrets.token_bytes
    sleep: Callable[[float], None] = time.sleep
    analytics: AnalyticsRecorder | None = None
    soundcloud: SoundCloudClient | None = None
    spotify: SpotifyClient | None = None


def required_hook(name: str, hook: object):
    if hook is None:
        raise RuntimeError(f"Missing funnel use-case hook: {name}")
    return hook


def record_event_safely(hooks: FunnelHooks, db, **kwargs) -> bool:
    """Record an analytics event when a recorder is wired; the recorder itself never raises."""
    if hooks.analytics is None:
        return False
    return hooks.analytics.record(db, **kwargs)
