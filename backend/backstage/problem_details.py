"""RFC 7807 Problem Details helpers."""
from __future__ import annotations

from http import HTTPStatus

from fastapi.responses import JSONResponse

from .domain_errors import DomainError

PROBLEM_TYPE_BASE = "https://api.thebackstage.app/problems"


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code."""
    try:
        title = HTTPStatus(exc.http_status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}/{exc.code.lower()}",
        "title": title,
        "status": exc.http_status,
        "detail": exc.message,
        "code": exc.code,
    }
    if exc.details is not None:
        payload["details"] = exc.details

    headers = None
    if exc.http_status == 429 and exc.details and "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
        media_type="application/problem+json",
        headers=headers,
    )


def build_internal_error_response() -> JSONResponse:
    """Generic 500 problem; never carries exception text."""
    return JSONResponse(
        status_code=500,
        content={
            "type": f"{PROBLEM_TYPE_BASE}/internal_error",
            "title": HTTPStatus.INTERNAL_SERVER_ERROR.phrase,
            "status": 500,
            "detail": "Internal server error",
            "code": "INTERNAL_ERROR",
        },
        media_type="application/problem+json",
    )
