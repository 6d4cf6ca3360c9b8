from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from backstage.domain_errors import (
    DomainError,
    ExpiredTokenError,
    RateLimitExceededError,
    TokenAlreadyUsedError,
    VerificationIncompleteError,
)
from backstage.problem_details import build_internal_error_response, build_problem_details_response


def test_problem_details_payload_contains_stable_code_and_rfc7807_fields() -> None:
    response = build_problem_details_response(
        DomainError(
            code="PROBE_ERROR",
            http_status=409,
            message="probe failed",
            details={"probe": True},
        )
    )

    assert response.status_code == 409
    assert response.media_type == "application/problem+json"

    body = response.body.decode("utf-8")
    assert '"type":"https://api.thebackstage.app/problems/probe_error"' in body
    assert '"title":"Conflict"' in body
    assert '"status":409' in body
    assert '"detail":"probe failed"' in body
    assert '"code":"PROBE_ERROR"' in body
    assert '"details":{"probe":true}' in body


def test_fixed_domain_errors_carry_their_code_status_and_default_message() -> None:
    used = TokenAlreadyUsedError()
    expired = ExpiredTokenError("OAuth state has expired")

    assert (used.code, used.http_status) == ("TOKEN_ALREADY_USED", 409)
    assert used.message == "Token has already been used"
    assert (expired.code, expired.http_status) == ("TOKEN_EXPIRED", 410)
    assert str(expired) == "OAuth state has expired"


def test_problem_details_omits_details_when_none() -> None:
    response = build_problem_details_response(ExpiredTokenError())

    body = response.body.decode("utf-8")
    assert response.status_code == 410
    assert '"code":"TOKEN_EXPIRED"' in body
    assert '"title":"Gone"' in body
    assert '"details"' not in body


def test_rate_limit_problem_sets_retry_after_header() -> None:
    response = build_problem_details_response(RateLimitExceededError(details={"retry_after": 42}))

    assert response.status_code == 429
    assert response.headers["retry-after"] == "42"


def test_internal_error_response_hides_exception_text() -> None:
    response = build_internal_error_response()

    body = response.body.decode("utf-8")
    assert response.status_code == 500
    assert '"code":"INTERNAL_ERROR"' in body
    assert '"detail":"Internal server error"' in body


def test_fastapi_exception_handler_maps_domain_error_to_problem_details() -> None:
    app = FastAPI()

    async def _handle_domain_error(_: Request, exc: DomainError):
        return build_problem_details_response(exc)

    app.add_exception_handler(DomainError, _handle_domain_error)

    @app.get("/boom")
    def _boom():
        raise VerificationIncompleteError(details={"missing": ["soundcloud_follow"]})

    client = TestClient(app)
    response = client.get("/boom")

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    payload = response.json()
    assert payload["code"] == "VERIFICATION_INCOMPLETE"
    assert payload["details"] == {"missing": ["soundcloud_follow"]}
