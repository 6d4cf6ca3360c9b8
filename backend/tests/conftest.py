from __future__ import annotations

import os

# Settings are read at import time; configure the test environment first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("APP_BASE_URL", "https://backstage.test")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "YWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWE=")


import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backstage.database import Base, get_db, get_session_factory  # noqa: E402
from backstage.dependencies import get_clock, get_soundcloud_client, get_spotify_client  # noqa: E402
from backstage.main import app  # noqa: E402
from backstage.services.analytics import AnalyticsRecorder  # noqa: E402
from backstage.use_cases.funnel_hooks import FunnelHooks  # noqa: E402
from funnel_fakes import FakeSoundCloudClient, FakeSpotifyClient, FixedClock  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def soundcloud() -> FakeSoundCloudClient:
    return FakeSoundCloudClient()


@pytest.fixture
def spotify() -> FakeSpotifyClient:
    return FakeSpotifyClient()


@pytest.fixture
def hooks(clock, soundcloud, spotify) -> FunnelHooks:
    return FunnelHooks(
        now_utc=clock,
        soundcloud=soundcloud,
        spotify=spotify,
        analytics=AnalyticsRecorder(),
        sleep=lambda _seconds: None,
    )


@pytest.fixture
def client(session_factory, clock, soundcloud, spotify):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_soundcloud_client] = lambda: soundcloud
    app.dependency_overrides[get_spotify_client] = lambda: spotify
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
