"""SoundCloud API client: OAuth connect, profile and repost / follow checks."""
from dataclasses import dataclass
from urllib.parse import urlencode

import requests

from ..config import settings
from .errors import PlatformAPIError, raise_for_platform_status, read_json


SOUNDCLOUD_API_BASE = "https://api.soundcloud.com"
SOUNDCLOUD_API_V2_BASE = "https://api-v2.soundcloud.com"
REPOST_PAGE_LIMIT = 50


def _items(collection) -> list[dict]:
    if not isinstance(collection, list):
        return []
    return [item for item in collection if isinstance(item, dict)]


@dataclass(frozen=True)
class SoundCloudProfile:
    id: str
    username: str
    permalink_url: str | None = None


class SoundCloudClient:
    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.SOUNDCLOUD_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.SOUNDCLOUD_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.soundcloud_redirect_uri
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str, code_challenge: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "non-expiring",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{SOUNDCLOUD_API_BASE}/connect?{urlencode(params)}"

    def _send(self, method: str, url: str, what: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise PlatformAPIError(None, f"{what} failed: {exc}") from exc
        raise_for_platform_status(response, what)
        return response

    def exchange_code(self, code: str, code_verifier: str) -> str:
        """Exchange an authorization code for an access token."""
        response = self._send(
            "POST",
            f"{SOUNDCLOUD_API_BASE}/oauth2/token",
            "SoundCloud token exchange",
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
                "code": code,
                "code_verifier": code_verifier,
            },
        )
        access_token = read_json(response, "SoundCloud token exchange").get("access_token")
        if not access_token:
            raise PlatformAPIError(response.status_code, "SoundCloud token response has no access_token")
        return access_token

    def _auth_headers(self, access_token: str) -> dict:
        return {"Accept": "application/json", "Authorization": f"OAuth {access_token}"}

    def get_profile(self, access_token: str) -> SoundCloudProfile:
        response = self._send(
            "GET", f"{SOUNDCLOUD_API_BASE}/me", "SoundCloud profile fetch",
            headers=self._auth_headers(access_token),
        )
        data = read_json(response, "SoundCloud profile fetch")
        if data.get("id") is None:
            raise PlatformAPIError(response.status_code, "SoundCloud profile has no id")
        return SoundCloudProfile(
            id=str(data["id"]),
            username=data.get("username") or "",
            permalink_url=data.get("permalink_url"),
        )

    def has_reposted(self, access_token: str, user_id: str, track_id: str) -> bool:
        """True when `track_id` is among the user's most recent track reposts."""
        response = self._send(
            "GET",
            f"{SOUNDCLOUD_API_V2_BASE}/users/{user_id}/track_reposts",
            "SoundCloud repost check",
            params={"client_id": self.client_id, "limit": REPOST_PAGE_LIMIT},
            headers=self._auth_headers(access_token),
        )
        for repost in _items(read_json(response, "SoundCloud repost check").get("collection")):
            track = repost.get("track")
            if isinstance(track, dict) and str(track.get("id")) == str(track_id):
                return True
        return False

    def is_following(self, access_token: str, user_id: str, target_user_id: str) -> bool:
        response = self._send(
            "GET",
            f"{SOUNDCLOUD_API_BASE}/users/{user_id}/followings",
            "SoundCloud follow check",
            params={"client_id": self.client_id},
            headers=self._auth_headers(access_token),
        )
        data = read_json(response, "SoundCloud follow check", expected=(dict, list))
        # Linked-partitioning responses wrap users in `collection`; legacy ones are a bare list.
        followings = _items(data.get("collection") if isinstance(data, dict) else data)
        return any(str(user.get("id")) == str(target_user_id) for user in followings)
