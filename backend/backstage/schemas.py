"""Pydantic schemas for API (camelCase on the wire)."""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from uuid import UUID


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Auth schemas
class LoginRequest(CamelModel):
    email: str
    password: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# Public gate
class GateRequirements(CamelModel):
    email: bool
    soundcloud_repost: bool
    soundcloud_follow: bool
    spotify_connect: bool


class PublicGateOut(CamelModel):
    """Gate as shown to visitors; the file URL is only revealed through a download token."""
    id: UUID
    slug: str
    title: str
    artist_name: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None
    artwork_url: Optional[str] = None
    soundcloud_track_url: Optional[str] = None
    file_size_mb: Optional[float] = None
    file_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    pixel_config: Optional[dict] = None
    requirements: GateRequirements


class PublicGateResponse(CamelModel):
    gate: PublicGateOut


class SubmitRequest(CamelModel):
    # Presence is validated by the submission use-case so the error carries its domain code.
    email: Optional[str] = None
    first_name: Optional[str] = None
    consent_marketing: Optional[bool] = None


class VerificationsSent(CamelModel):
    email: bool
    soundcloud_repost: bool
    soundcloud_follow: bool
    spotify_connect: bool


class SubmitResponse(CamelModel):
    success: bool = True
    submission_id: UUID
    created: bool
    requires_verification: bool
    verifications_sent: VerificationsSent


class DownloadTokenRequest(CamelModel):
    submission_id: UUID


class DownloadTokenResponse(CamelModel):
    token: str
    expires_at: datetime


class AnalyticsEventRequest(CamelModel):
    gate_id: str
    event_type: Optional[str] = None
    session_id: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    country: Optional[str] = None


class AnalyticsResponse(CamelModel):
    success: bool


# Owner dashboard
class GateBase(CamelModel):
    title: str = Field(min_length=1, max_length=500)
    artist_name: Optional[str] = Field(default=None, max_length=255)
    genre: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    artwork_url: Optional[str] = None
    soundcloud_track_id: Optional[str] = Field(default=None, max_length=255)
    soundcloud_track_url: Optional[str] = None
    soundcloud_user_id: Optional[str] = Field(default=None, max_length=255)
    file_url: str = Field(min_length=1)
    file_size_mb: Optional[float] = Field(default=None, ge=0)
    file_type: Optional[str] = Field(default=None, max_length=50)
    require_email: bool = True
    require_soundcloud_repost: bool = False
    require_soundcloud_follow: bool = False
    require_spotify_connect: bool = False
    active: bool = True
    max_downloads: Optional[int] = Field(default=None, ge=1)
    expires_at: Optional[datetime] = None
    pixel_config: Optional[dict] = None


class GateCreate(GateBase):
    slug: Optional[str] = Field(default=None, max_length=100)


class GateUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    slug: Optional[str] = Field(default=None, max_length=100)
    artist_name: Optional[str] = Field(default=None, max_length=255)
    genre: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    artwork_url: Optional[str] = None
    soundcloud_track_id: Optional[str] = Field(default=None, max_length=255)
    soundcloud_track_url: Optional[str] = None
    soundcloud_user_id: Optional[str] = Field(default=None, max_length=255)
    file_url: Optional[str] = Field(default=None, min_length=1)
    file_size_mb: Optional[float] = Field(default=None, ge=0)
    file_type: Optional[str] = Field(default=None, max_length=50)
    require_email: Optional[bool] = None
    require_soundcloud_repost: Optional[bool] = None
    require_soundcloud_follow: Optional[bool] = None
    require_spotify_connect: Optional[bool] = None
    active: Optional[bool] = None
    max_downloads: Optional[int] = Field(default=None, ge=1)
    expires_at: Optional[datetime] = None
    pixel_config: Optional[dict] = None


class GateOut(GateBase):
    id: UUID
    slug: str
    view_count: int
    submission_count: int
    download_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GateStatsOut(CamelModel):
    gate_id: UUID
    total_views: int
    total_submissions: int
    total_downloads: int
    conversion_rate: float
    soundcloud_reposts: int
    soundcloud_follows: int
    spotify_connects: int


class SubmissionOut(CamelModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    consent_marketing: bool
    soundcloud_username: Optional[str] = None
    soundcloud_permalink: Optional[str] = None
    spotify_display_name: Optional[str] = None
    soundcloud_repost_verified: bool
    soundcloud_follow_verified: bool
    spotify_connected: bool
    download_completed: bool
    download_completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# Pagination
class PaginationResponse(CamelModel):
    total: int
    limit: int
    offset: int


class SubmissionPage(CamelModel):
    data: list[SubmissionOut]
    pagination: PaginationResponse
