"""Caller identity from LINE access tokens.

Clients (the LIFF frontend) send the user's LINE access token as a Bearer
token. It is resolved against LINE's userinfo endpoint; ``sub`` is the LINE
user id used for ownership checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import requests
from fastapi import Request

from calbot.errors.taxonomy import authentication_error
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

if TYPE_CHECKING:
    from calbot.line.client import LineClient

    from .policy import AuthPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class LineIdentity:
    """Verified caller."""

    user_id: str
    display_name: str | None = None


def extract_bearer_token(request: Request) -> str | None:
    """Bearer token from the Authorization header.

    Returns:
        Token string, or None if the header is missing.

    Raises:
        NormalizedError: authentication, if the header is malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise authentication_error("Invalid authorization header", code="AUTH_INVALID_HEADER")
    return parts[1]


def verify_access_token(line: LineClient, token: str) -> LineIdentity:
    """Resolve a LINE access token to an identity.

    Raises:
        NormalizedError: authentication, if LINE rejects the token.
        requests.RequestException: If LINE is unreachable or fails (5xx).
    """
    try:
        info = line.get_userinfo(token)
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        if status in (400, 401, 403):
            raise authentication_error(
                f"LINE rejected access token (status={status})",
                code="INVALID_ACCESS_TOKEN",
            ) from exc
        raise

    user_id = info.get("sub")
    if not user_id:
        raise authentication_error("userinfo response has no subject", code="INVALID_ACCESS_TOKEN")
    return LineIdentity(user_id=user_id, display_name=info.get("name"))


def resolve_identity(request: Request, line: LineClient, policy: AuthPolicy) -> LineIdentity | None:
    """Apply a procedure's policy to the request's credentials.

    Returns:
        The caller's identity, or None for NONE policy and for anonymous or
        failed OPTIONAL resolution.

    Raises:
        NormalizedError: authentication, under REQUIRED policy, when the
            token is missing or invalid.
    """
    from .policy import AuthPolicy

    if policy is AuthPolicy.NONE:
        return None

    if policy is AuthPolicy.OPTIONAL:
        try:
            token = extract_bearer_token(request)
            return verify_access_token(line, token) if token else None
        except Exception as exc:
            logger.info(
                "optional identity resolution failed",
                extra={"extra_fields": safe_log_context(error=type(exc).__name__)},
            )
            return None

    token = extract_bearer_token(request)
    if not token:
        raise authentication_error("Missing authorization header", code="AUTH_MISSING_TOKEN")
    return verify_access_token(line, token)
