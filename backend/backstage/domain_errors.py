"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class _FixedDomainError(DomainError):
    """DomainError whose code and status are fixed by the subclass."""

    CODE = "DOMAIN_ERROR"
    HTTP_STATUS = 400
    DEFAULT_MESSAGE = "Request failed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=self.CODE,
            http_status=self.HTTP_STATUS,
            message=message or self.DEFAULT_MESSAGE,
            details=details,
        )


class GateNotFoundError(_FixedDomainError):
    CODE = "GATE_NOT_FOUND"
    HTTP_STATUS = 404
    DEFAULT_MESSAGE = "Download gate not found"


class GateInactiveError(_FixedDomainError):
    CODE = "GATE_INACTIVE"
    HTTP_STATUS = 403
    DEFAULT_MESSAGE = "Download gate is no longer active"


class GateExpiredError(_FixedDomainError):
    CODE = "GATE_EXPIRED"
    HTTP_STATUS = 403
    DEFAULT_MESSAGE = "Download gate has expired"


class SubmissionNotFoundError(_FixedDomainError):
    CODE = "SUBMISSION_NOT_FOUND"
    HTTP_STATUS = 404
    DEFAULT_MESSAGE = "Submission not found"


class InvalidTokenError(_FixedDomainError):
    CODE = "INVALID_TOKEN"
    HTTP_STATUS = 404
    DEFAULT_MESSAGE = "Invalid token"


class ExpiredTokenError(_FixedDomainError):
    CODE = "TOKEN_EXPIRED"
    HTTP_STATUS = 410
    DEFAULT_MESSAGE = "Token has expired"


class TokenAlreadyUsedError(_FixedDomainError):
    CODE = "TOKEN_ALREADY_USED"
    HTTP_STATUS = 409
    DEFAULT_MESSAGE = "Token has already been used"


class DuplicateSubmissionError(_FixedDomainError):
    CODE = "DUPLICATE_SUBMISSION"
    HTTP_STATUS = 409
    DEFAULT_MESSAGE = "You have already submitted to this gate"


class ValidationError(_FixedDomainError):
    CODE = "VALIDATION_ERROR"
    HTTP_STATUS = 400
    DEFAULT_MESSAGE = "Invalid request"


class VerificationIncompleteError(_FixedDomainError):
    CODE = "VERIFICATION_INCOMPLETE"
    HTTP_STATUS = 403
    DEFAULT_MESSAGE = "Required verifications not completed"


class MaxDownloadsExceededError(_FixedDomainError):
    CODE = "MAX_DOWNLOADS_EXCEEDED"
    HTTP_STATUS = 429
    DEFAULT_MESSAGE = "Maximum download limit reached"


class OAuthProviderMismatchError(_FixedDomainError):
    CODE = "OAUTH_PROVIDER_MISMATCH"
    HTTP_STATUS = 400
    DEFAULT_MESSAGE = "Invalid OAuth provider"


class MissingPKCEVerifierError(_FixedDomainError):
    CODE = "OAUTH_PKCE_MISSING"
    HTTP_STATUS = 400
    DEFAULT_MESSAGE = "Invalid authorization request (missing PKCE)"


class ProviderNotConfiguredError(_FixedDomainError):
    CODE = "PROVIDER_NOT_CONFIGURED"
    HTTP_STATUS = 503
    DEFAULT_MESSAGE = "Authentication provider is not configured"


class OAuthExchangeError(_FixedDomainError):
    CODE = "OAUTH_EXCHANGE_FAILED"
    HTTP_STATUS = 502
    DEFAULT_MESSAGE = "Failed to complete authorization with provider"


class GateSlugTakenError(_FixedDomainError):
    CODE = "GATE_SLUG_TAKEN"
    HTTP_STATUS = 409
    DEFAULT_MESSAGE = "Slug is already in use"


class RateLimitExceededError(_FixedDomainError):
    CODE = "RATE_LIMITED"
    HTTP_STATUS = 429
    DEFAULT_MESSAGE = "Too many requests. Try again later."


class GateHasSubmissionsError(_FixedDomainError):
    CODE = "GATE_HAS_SUBMISSIONS"
    HTTP_STATUS = 409
    DEFAULT_MESSAGE = "Download gate has submissions and cannot be deleted"
