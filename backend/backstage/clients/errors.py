"""Errors raised by the SoundCloud / Spotify HTTP clients."""


class PlatformAPIError(Exception):
    """Non-2xx response (status set) or transport failure (status None) from a music platform."""

    def __init__(self, status: int | None, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"HTTP_{self.status}: {self.message}"


def raise_for_platform_status(response, what: str) -> None:
    if 200 <= response.status_code < 300:
        return
    raise PlatformAPIError(response.status_code, f"{what} failed: {response.text[:200]}")


def read_json(response, what: str, expected: tuple[type, ...] = (dict,)):
    """Decode a 2xx body; undecodable or unexpectedly shaped payloads become PlatformAPIError."""
    try:
        data = response.json()
    except ValueError as exc:
        raise PlatformAPIError(response.status_code, f"{what} returned invalid JSON") from exc
    if not isinstance(data, expected):
        raise PlatformAPIError(response.status_code, f"{what} returned an unexpected {type(data).__name__} payload")
    return data
