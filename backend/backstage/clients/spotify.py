"""Spotify Web API client (authorization code + PKCE)."""
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode

import requests

from ..config import settings
from .errors import PlatformAPIError, raise_for_platform_status, read_json


SPOTIFY_AUTH_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"

SPOTIFY_SCOPES = (
    "user-read-email",
    "user-read-private",
    "user-follow-modify",
    "user-library-modify",
)
# PUT /me/albums accepts at most 20 ids per call.
SAVE_ALBUMS_CHUNK = 20


@dataclass(frozen=True)
class SpotifyTokens:
    access_token: str
    refresh_token: str | None
    expires_in: int


@dataclass(frozen=True)
class SpotifyProfile:
    id: str
    display_name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class SpotifyRelease:
    id: str
    name: str
    album_type: str
    release_date: str
    release_date_precision: str = "day"

    def released_on_or_after(self, moment: datetime) -> bool:
        # Spotify release dates have year / month / day precision.
        parts = self.release_date.split("-")
        try:
            year = int(parts[0])
            month = int(parts[1]) if len(parts) > 1 else 1
            day = int(parts[2]) if len(parts) > 2 else 1
        except (ValueError, IndexError):
            return False
        return (year, month, day) >= (moment.year, moment.month, moment.day)


class SpotifyClient:
    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.SPOTIFY_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SPOTIFY_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.spotify_redirect_uri
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.client_id)

    def authorization_url(self, state: str, code_challenge: str) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "state": state,
            "scope": " ".join(SPOTIFY_SCOPES),
            "code_challenge_method": "S256",
            "code_challenge": code_challenge,
        }
        return f"{SPOTIFY_AUTH_URL}?{urlencode(params)}"

    def _send(self, method: str, url: str, what: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise PlatformAPIError(None, f"{what} failed: {exc}") from exc
        raise_for_platform_status(response, what)
        return response

    def _token_request(self, data: dict, what: str) -> SpotifyTokens:
        data = {**data, "client_id": self.client_id}
        auth = (self.client_id, self.client_secret) if self.client_secret else None
        response = self._send("POST", SPOTIFY_TOKEN_URL, what, data=data, auth=auth)
        payload = read_json(response, what)
        if not payload.get("access_token"):
            raise PlatformAPIError(response.status_code, f"{what} returned no access_token")
        try:
            expires_in = int(payload.get("expires_in") or 3600)
        except (TypeError, ValueError) as exc:
            raise PlatformAPIError(response.status_code, f"{what} returned an invalid expires_in") from exc
        return SpotifyTokens(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
        )

    def exchange_code(self, code: str, code_verifier: str) -> SpotifyTokens:
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "code_verifier": code_verifier,
            },
            "Spotify token exchange",
        )

    def refresh_access_token(self, refresh_token: str) -> SpotifyTokens:
        tokens = self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            "Spotify token refresh",
        )
        # Spotify may omit refresh_token on refresh; the old one stays valid then.
        if not tokens.refresh_token:
            tokens = SpotifyTokens(tokens.access_token, refresh_token, tokens.expires_in)
        return tokens

    def _bearer(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}

    def get_profile(self, access_token: str) -> SpotifyProfile:
        response = self._send(
            "GET", f"{SPOTIFY_API_BASE}/me", "Spotify profile fetch", headers=self._bearer(access_token)
        )
        data = read_json(response, "Spotify profile fetch")
        if data.get("id") is None:
            raise PlatformAPIError(response.status_code, "Spotify profile has no id")
        return SpotifyProfile(id=str(data["id"]), display_name=data.get("display_name"), email=data.get("email"))

    def follow_artist(self, access_token: str, artist_id: str) -> None:
        self._send(
            "PUT",
            f"{SPOTIFY_API_BASE}/me/following",
            "Spotify follow artist",
            params={"type": "artist", "ids": artist_id},
            headers=self._bearer(access_token),
        )

    def get_artist_releases(self, access_token: str, artist_id: str, limit: int = 10) -> list[SpotifyRelease]:
        """Latest albums and singles of an artist (no compilations / appears_on)."""
        response = self._send(
            "GET",
            f"{SPOTIFY_API_BASE}/artists/{artist_id}/albums",
            "Spotify artist albums",
            params={"include_groups": "album,single", "limit": limit},
            headers=self._bearer(access_token),
        )
        items = read_json(response, "Spotify artist albums").get("items") or []
        if not isinstance(items, list) or not all(isinstance(item, dict) and item.get("id") for item in items):
            raise PlatformAPIError(response.status_code, "Spotify artist albums returned malformed items")
        releases = []
        for item in items:
            releases.append(
                SpotifyRelease(
                    id=item["id"],
                    name=item.get("name") or "",
                    album_type=item.get("album_type") or "album",
                    release_date=item.get("release_date") or "",
                    release_date_precision=item.get("release_date_precision") or "day",
                )
            )
        return releases

    def save_albums(self, access_token: str, album_ids: list[str]) -> None:
        for start in range(0, len(album_ids), SAVE_ALBUMS_CHUNK):
            chunk = album_ids[start:start + SAVE_ALBUMS_CHUNK]
            self._send(
                "PUT",
                f"{SPOTIFY_API_BASE}/me/albums",
                "Spotify save albums",
                params={"ids": ",".join(chunk)},
                headers=self._bearer(access_token),
            )
