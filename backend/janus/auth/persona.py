# janus/auth/persona.py
"""
Identity assertion verification.

Sends a signed assertion and its audience to the remote verifier and turns the
reply into one of two explicit outcomes. Callers only ever see a single
failure type: the reason a verification failed is logged, never surfaced.
Assertions are single-use, so nothing here retries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

import httpx

from janus.core.config import settings

logger = logging.getLogger(__name__)


class AssertionVerificationError(Exception):
    """Raised when an assertion cannot be verified for any reason."""


@dataclass(frozen=True)
class VerifiedAssertion:
    email: str
    audience: str | None = None
    issuer: str | None = None


@dataclass(frozen=True)
class RejectedAssertion:
    reason: str


VerifierResult = Union[VerifiedAssertion, RejectedAssertion]


def parse_verifier_response(payload: Any) -> VerifierResult:
    """Map the verifier's JSON body onto :class:`VerifiedAssertion` or :class:`RejectedAssertion`."""
    if not isinstance(payload, dict):
        return RejectedAssertion(reason="malformed response")

    if payload.get("status") != "okay":
        return RejectedAssertion(reason=str(payload.get("reason") or "status not okay"))

    email = str(payload.get("email") or "").strip()
    if not email:
        return RejectedAssertion(reason="response missing email")

    return VerifiedAssertion(
        email=email,
        audience=payload.get("audience"),
        issuer=payload.get("issuer"),
    )


def verify_assertion(assertion: str, audience: str) -> VerifiedAssertion:
    """
    Verify ``assertion`` for ``audience`` with the remote verifier.

    Raises:
        AssertionVerificationError: on transport errors, timeouts, malformed
            replies, or a rejected assertion.
    """
    candidate = (assertion or "").strip()
    audience = (audience or "").strip()
    if not candidate or not audience:
        raise AssertionVerificationError("Missing assertion or audience.")

    logger.info("Verifying assertion")
    try:
        response = httpx.post(
            settings.ASSERT_URL,
            data={"assertion": candidate, "audience": audience},
            timeout=settings.ASSERT_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as exc:
        logger.warning("Assertion verifier unreachable: %s", type(exc).__name__)
        raise AssertionVerificationError("Unable to verify assertion.") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise AssertionVerificationError("Invalid verifier response.") from exc

    result = parse_verifier_response(payload)
    if isinstance(result, RejectedAssertion):
        logger.info("Assertion rejected: %s", result.reason)
        raise AssertionVerificationError("Assertion verification failed.")

    return result
