"""LINE Messaging API client.

Security: NEVER log message text, reply tokens or raw LINE ids. Only log
hashes and lengths.

HTTP failures surface as ``requests.HTTPError`` (with ``.response``) so the
error normalizer can read the platform's message, e.g. "Invalid reply token".
"""

from __future__ import annotations

from typing import Any

import requests

from calbot.observability.logging import get_logger
from calbot.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

API_BASE = "https://api.line.me"
DATA_API_BASE = "https://api-data.line.me"
USERINFO_URL = f"{API_BASE}/oauth2/v2.1/userinfo"

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 10
# Content downloads can be large
CONTENT_TIMEOUT = 60

MAX_TEXT_LENGTH = 5000


class LineClient:
    """Thin wrapper over the Messaging API endpoints the bot uses."""

    def __init__(self, access_token: str, session: requests.Session | None = None):
        self._access_token = access_token
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _post(self, path: str, payload: dict[str, Any]) -> None:
        resp = self._session.post(
            f"{API_BASE}{path}",
            json=payload,
            headers=self._headers(),
            timeout=HTTP_TIMEOUT,
        )
        resp.raise_for_status()

    def _get_json(self, url: str) -> dict[str, Any]:
        resp = self._session.get(url, headers=self._headers(), timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def reply_text(self, reply_token: str, text: str, *, quote_token: str | None = None) -> None:
        """Reply to a message event.

        Args:
            reply_token: Single-use token from the webhook event. NEVER logged.
            text: Message text. NEVER logged.
            quote_token: Quote the triggering message when given.

        Raises:
            requests.HTTPError: On non-2xx responses (e.g. expired reply token).
        """
        message: dict[str, Any] = {"type": "text", "text": text[:MAX_TEXT_LENGTH]}
        if quote_token:
            message["quoteToken"] = quote_token

        self._post("/v2/bot/message/reply", {"replyToken": reply_token, "messages": [message]})
        logger.info(
            "reply sent",
            extra={"extra_fields": safe_log_context(text_len=len(text), quoted=bool(quote_token))},
        )

    def push_text(self, to: str, text: str) -> None:
        """Push a message to a user, group or room id."""
        self._post(
            "/v2/bot/message/push",
            {"to": to, "messages": [{"type": "text", "text": text[:MAX_TEXT_LENGTH]}]},
        )
        logger.info(
            "push sent",
            extra={"extra_fields": safe_log_context(to_hash=hash_identifier(to), text_len=len(text))},
        )

    def get_message_content(self, message_id: str) -> bytes:
        """Download the binary content of an image/video/audio/file message."""
        resp = self._session.get(
            f"{DATA_API_BASE}/v2/bot/message/{message_id}/content",
            headers=self._headers(),
            timeout=CONTENT_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.content

    def get_group_name(self, group_id: str) -> str | None:
        """Group name from the group summary, or None if the lookup fails."""
        try:
            summary = self._get_json(f"{API_BASE}/v2/bot/group/{group_id}/summary")
        except requests.RequestException as exc:
            logger.warning(
                "group summary lookup failed",
                extra={
                    "extra_fields": safe_log_context(
                        group_hash=hash_identifier(group_id),
                        error=type(exc).__name__,
                    )
                },
            )
            return None
        return summary.get("groupName") or None

    def get_userinfo(self, access_token: str) -> dict[str, Any]:
        """Resolve an end-user access token (LIFF/LINE Login) to its profile.

        Args:
            access_token: The caller's bearer token, not the channel token.

        Returns:
            Userinfo payload; ``sub`` is the LINE user id.

        Raises:
            requests.HTTPError: If LINE rejects the token.
        """
        resp = self._session.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.json()
