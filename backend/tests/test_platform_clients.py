from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from backstage.clients.errors import PlatformAPIError
from backstage.clients.soundcloud import SoundCloudClient
from backstage.clients.spotify import SpotifyClient, SpotifyRelease
from funnel_fakes import RecordingSession, StubResponse


def _soundcloud(session) -> SoundCloudClient:
    return SoundCloudClient(
        client_id="sc-id",
        client_secret="sc-secret",
        redirect_uri="https://api.backstage.test/api/auth/soundcloud/callback",
        timeout=5,
        session=session,
    )


def _spotify(session) -> SpotifyClient:
    return SpotifyClient(
        client_id="sp-id",
        client_secret="sp-secret",
        redirect_uri="https://api.backstage.test/api/auth/spotify/callback",
        timeout=5,
        session=session,
    )


def test_soundcloud_authorization_url_carries_state_and_s256_challenge() -> None:
    url = _soundcloud(RecordingSession()).authorization_url("state-1", "challenge-1")

    params = parse_qs(urlparse(url).query)
    assert url.startswith("https://api.soundcloud.com/connect?")
    assert params["state"] == ["state-1"]
    assert params["code_challenge"] == ["challenge-1"]
    assert params["code_challenge_method"] == ["S256"]


def test_soundcloud_exchange_sends_verifier_and_returns_access_token() -> None:
    session = RecordingSession(StubResponse(payload={"access_token": "tok"}))

    token = _soundcloud(session).exchange_code("code-1", "verifier-1")

    method, url, kwargs = session.calls[0]
    assert token == "tok"
    assert (method, url) == ("POST", "https://api.soundcloud.com/oauth2/token")
    assert kwargs["data"]["code_verifier"] == "verifier-1"
    assert kwargs["timeout"] == 5


def test_soundcloud_has_reposted_matches_track_id_as_string() -> None:
    session = RecordingSession(
        StubResponse(payload={"collection": [{"track": {"id": 1}}, {"track": {"id": 123456}}]}),
        StubResponse(payload={"collection": [{"track": {"id": 1}}]}),
    )
    client = _soundcloud(session)

    assert client.has_reposted("tok", "9001", "123456") is True
    assert client.has_reposted("tok", "9001", "123456") is False
    assert session.calls[0][2]["params"]["limit"] == 50
    assert session.calls[0][2]["headers"]["Authorization"] == "OAuth tok"


def test_soundcloud_is_following_accepts_collection_and_bare_list() -> None:
    session = RecordingSession(
        StubResponse(payload={"collection": [{"id": 777}]}),
        StubResponse(payload=[{"id": 778}]),
    )
    client = _soundcloud(session)

    assert client.is_following("tok", "9001", "777") is True
    assert client.is_following("tok", "9001", "777") is False


@pytest.mark.parametrize(
    ("method", "payload"),
    [
        ("has_reposted", ValueError("Expecting value")),
        ("has_reposted", [{"track": {"id": 123}}]),
        ("is_following", "<html>"),
        ("get_profile", {"username": "fan"}),
    ],
)
def test_soundcloud_malformed_payload_raises_platform_error(method: str, payload) -> None:
    client = _soundcloud(RecordingSession(StubResponse(payload=payload)))
    args = ("tok",) if method == "get_profile" else ("tok", "9001", "123")

    with pytest.raises(PlatformAPIError) as excinfo:
        getattr(client, method)(*args)

    assert excinfo.value.status == 200


def test_soundcloud_non_list_collection_reads_as_not_reposted() -> None:
    session = RecordingSession(StubResponse(payload={"collection": "nope"}))

    assert _soundcloud(session).has_reposted("tok", "9001", "123") is False


def test_soundcloud_non_2xx_raises_platform_error_with_status() -> None:
    session = RecordingSession(StubResponse(status_code=429, text="slow down"))

    with pytest.raises(PlatformAPIError) as exc_info:
        _soundcloud(session).get_profile("tok")

    assert exc_info.value.status == 429
    assert str(exc_info.value).startswith("HTTP_429:")


def test_soundcloud_transport_failure_raises_platform_error_without_status() -> None:
    session = RecordingSession(requests.ConnectionError("boom"))

    with pytest.raises(PlatformAPIError) as exc_info:
        _soundcloud(session).has_reposted("tok", "9001", "123456")

    assert exc_info.value.status is None


def test_soundcloud_is_not_configured_without_secret() -> None:
    client = SoundCloudClient(client_id="sc-id", client_secret="", session=RecordingSession())

    assert client.is_configured() is False


def test_spotify_refresh_keeps_old_refresh_token_when_omitted() -> None:
    session = RecordingSession(StubResponse(payload={"access_token": "new", "expires_in": 1800}))

    tokens = _spotify(session).refresh_access_token("old-refresh")

    assert (tokens.access_token, tokens.refresh_token, tokens.expires_in) == ("new", "old-refresh", 1800)
    assert session.calls[0][2]["data"]["grant_type"] == "refresh_token"
    assert session.calls[0][2]["auth"] == ("sp-id", "sp-secret")


def test_spotify_authorization_url_requests_follow_and_library_scopes() -> None:
    url = _spotify(RecordingSession()).authorization_url("state-1", "challenge-1")

    scopes = parse_qs(urlparse(url).query)["scope"][0].split(" ")
    assert "user-follow-modify" in scopes
    assert "user-library-modify" in scopes


def test_spotify_save_albums_sends_chunks_of_twenty() -> None:
    session = RecordingSession(StubResponse(), StubResponse())

    _spotify(session).save_albums("tok", [f"album-{index}" for index in range(25)])

    assert [len(call[2]["params"]["ids"].split(",")) for call in session.calls] == [20, 5]
    assert all(call[:2] == ("PUT", "https://api.spotify.com/v1/me/albums") for call in session.calls)


def test_spotify_artist_releases_are_parsed() -> None:
    session = RecordingSession(
        StubResponse(payload={"items": [{"id": "a1", "name": "EP", "album_type": "single", "release_date": "2026-05"}]})
    )

    releases = _spotify(session).get_artist_releases("tok", "artist-42", limit=5)

    assert releases == [SpotifyRelease(id="a1", name="EP", album_type="single", release_date="2026-05")]
    assert session.calls[0][2]["params"] == {"include_groups": "album,single", "limit": 5}


@pytest.mark.parametrize(
    "payload",
    [ValueError("Expecting value"), {"items": [{"name": "no id"}]}, {"items": ["a1"]}, {"items": {"id": "a1"}}, []],
)
def test_spotify_malformed_release_payload_raises_platform_error(payload) -> None:
    session = RecordingSession(StubResponse(payload=payload))

    with pytest.raises(PlatformAPIError) as excinfo:
        _spotify(session).get_artist_releases("tok", "artist-42")

    assert excinfo.value.status == 200


def test_spotify_profile_without_id_raises_platform_error() -> None:
    session = RecordingSession(StubResponse(payload={"display_name": "Fan"}))

    with pytest.raises(PlatformAPIError):
        _spotify(session).get_profile("tok")


def test_spotify_token_with_bad_expires_in_raises_platform_error() -> None:
    session = RecordingSession(StubResponse(payload={"access_token": "tok", "expires_in": "soon"}))

    with pytest.raises(PlatformAPIError):
        _spotify(session).exchange_code("code-1", "verifier-1")


@pytest.mark.parametrize(
    ("release_date", "expected"),
    [("2026-06-01", True), ("2026-05-31", False), ("2026-06", True), ("2026", False), ("2027", True), ("", False)],
)
def test_release_date_precision_is_respected(release_date: str, expected: bool) -> None:
    release = SpotifyRelease(id="a1", name="EP", album_type="single", release_date=release_date)

    assert release.released_on_or_after(datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)) is expected
