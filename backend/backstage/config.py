"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "The Backstage"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:3000"
    # Public site that hosts /gate/{slug}; OAuth callbacks redirect there.
    APP_BASE_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Proxy / client IP handling
    # Only trust X-Forwarded-* headers when running behind a trusted reverse proxy (e.g. nginx).
    TRUST_PROXY_HEADERS: bool = False

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # JWT (owner dashboard)
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_LEEWAY_SECONDS: int = 30  # clock skew tolerance for exp validation

    # Public funnel rate limits (per client IP, enforced with Redis)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_SUBMIT_PER_MINUTE: int = 10
    RATE_LIMIT_DOWNLOAD_TOKEN_PER_MINUTE: int = 20
    RATE_LIMIT_LOGIN_PER_MINUTE: int = 10

    # SoundCloud OAuth
    SOUNDCLOUD_CLIENT_ID: str | None = None
    SOUNDCLOUD_CLIENT_SECRET: str | None = None
    SOUNDCLOUD_REDIRECT_URI: str | None = None

    # Spotify OAuth (PKCE)
    SPOTIFY_CLIENT_ID: str | None = None
    SPOTIFY_CLIENT_SECRET: str | None = None
    SPOTIFY_REDIRECT_URI: str | None = None

    # Fernet key for OAuth tokens stored at rest (auto-save subscriptions).
    TOKEN_ENCRYPTION_KEY: str | None = None

    # Funnel lifetimes
    OAUTH_STATE_TTL_MINUTES: int = 15
    DOWNLOAD_TOKEN_TTL_HOURS: int = 24
    DOWNLOAD_TOKEN_BYTES: int = 32

    # Outbound HTTP to SoundCloud / Spotify
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Spotify auto-save job
    AUTO_SAVE_CHECK_INTERVAL_HOURS: int = 6
    AUTO_SAVE_BATCH_SIZE: int = 100
    AUTO_SAVE_RATE_LIMIT_DELAY_SECONDS: float = 0.1

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def soundcloud_redirect_uri(self) -> str:
        return self.SOUNDCLOUD_REDIRECT_URI or f"{self.APP_BASE_URL.rstrip('/')}/api/auth/soundcloud/callback"

    @property
    def spotify_redirect_uri(self) -> str:
        return self.SPOTIFY_REDIRECT_URI or f"{self.APP_BASE_URL.rstrip('/')}/api/auth/spotify/callback"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
