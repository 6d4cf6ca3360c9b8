"""Per-client-IP fixed-window rate limits for the public funnel (Redis)."""
import ipaddress
import logging
from typing import Callable

import redis
from redis.exceptions import RedisError
from fastapi import Request

from .config import settings
from .domain_errors import RateLimitExceededError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

_redis_client = None


def _get_redis():
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def get_client_ip(request: Request) -> str:
    if settings.TRUST_PROXY_HEADERS:
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            try:
                ipaddress.ip_address(real_ip)
                return real_ip
            except ValueError:
                pass

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For may contain a list: client, proxy1, proxy2
            candidate = forwarded.split(",")[0].strip()
            try:
                ipaddress.ip_address(candidate)
                return candidate
            except ValueError:
                pass

    if request.client:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str | None:
    ua = request.headers.get("user-agent")
    return ua[:512] if ua else None


def _incr_with_ttl(key: str, ttl_seconds: int) -> tuple[int, int]:
    """
    Increment a Redis counter and ensure it has an expiry.
    Returns (value, ttl_remaining_seconds).
    """
    r = _get_redis()
    value = r.incr(key)
    if value == 1:
        r.expire(key, ttl_seconds)
    ttl = r.ttl(key)
    if ttl is None or ttl < 0:
        ttl = ttl_seconds
    return int(value), int(ttl)


def enforce_rate_limit(*, scope: str, client_ip: str, limit: int) -> None:
    if not settings.RATE_LIMIT_ENABLED or limit <= 0:
        return
    try:
        hits, ttl = _incr_with_ttl(f"gate:rl:{scope}:ip:{client_ip}", WINDOW_SECONDS)
    except RedisError:
        # Fail open if Redis is down; the funnel must keep working.
        logger.exception(f"Redis error during {scope} rate limiting (fail-open)")
        return
    if hits > limit:
        logger.warning(f"Rate limit hit: scope={scope} ip={client_ip} hits={hits}")
        raise RateLimitExceededError(details={"retry_after": ttl})


def rate_limiter(scope: str, limit_getter: Callable[[], int]):
    """Build a FastAPI dependency enforcing `limit_getter()` requests per minute for `scope`."""

    def _dependency(request: Request) -> None:
        enforce_rate_limit(scope=scope, client_ip=get_client_ip(request), limit=limit_getter())

    return _dependency


limit_submissions = rate_limiter("submit", lambda: settings.RATE_LIMIT_SUBMIT_PER_MINUTE)
limit_download_tokens = rate_limiter("download_token", lambda: settings.RATE_LIMIT_DOWNLOAD_TOKEN_PER_MINUTE)
