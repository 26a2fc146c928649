"""LINE webhook adapter: verify signatures and normalize payloads."""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any

from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

from .models import InboundEvent, InboundMessage, JoinEvent, MessageEvent, Source

logger = get_logger(__name__)


class InvalidPayloadError(Exception):
    """Raised when a webhook body or event has an invalid shape."""


class SignatureVerificationError(Exception):
    """Raised when the X-Line-Signature check fails."""


def verify_signature(payload_bytes: bytes, signature_header: str, channel_secret: str) -> None:
    """Verify a LINE webhook signature.

    LINE signs the raw body with HMAC-SHA256 keyed by the channel secret and
    sends the base64-encoded digest in X-Line-Signature.

    Raises:
        SignatureVerificationError: If the header is missing or does not match.
    """
    if not signature_header:
        raise SignatureVerificationError("missing signature header")

    computed = base64.b64encode(
        hmac.new(
            key=channel_secret.encode("utf-8"),
            msg=payload_bytes,
            digestmod=hashlib.sha256,
        ).digest()
    ).decode("ascii")

    if not hmac.compare_digest(computed, signature_header):
        raise SignatureVerificationError("signature mismatch")


def _parse_source(raw: Any) -> Source:
    if not isinstance(raw, dict) or not raw.get("type"):
        raise InvalidPayloadError("missing source")
    return Source(
        type=str(raw["type"]),
        user_id=raw.get("userId"),
        group_id=raw.get("groupId"),
        room_id=raw.get("roomId"),
    )


def _mentions_bot(message: dict[str, Any]) -> bool:
    mention = message.get("mention")
    if not isinstance(mention, dict):
        return False
    return any(
        isinstance(m, dict) and m.get("isSelf") is True
        for m in mention.get("mentionees") or []
    )


def _parse_message(raw: Any) -> InboundMessage:
    if not isinstance(raw, dict):
        raise InvalidPayloadError("missing message")
    message_id = raw.get("id")
    if not message_id or not isinstance(message_id, str):
        raise InvalidPayloadError("missing or invalid message id")

    file_size = raw.get("fileSize")
    return InboundMessage(
        id=message_id,
        type=str(raw.get("type", "unknown")),
        text=raw.get("text"),
        file_name=raw.get("fileName"),
        file_size=file_size if isinstance(file_size, int) else None,
        quoted_message_id=raw.get("quotedMessageId"),
        quote_token=raw.get("quoteToken"),
        mentions_bot=_mentions_bot(raw),
    )


def parse_event(raw: dict[str, Any]) -> InboundEvent | None:
    """Normalize one webhook event.

    Returns:
        JoinEvent or MessageEvent, or None for event types the bot ignores.

    Raises:
        InvalidPayloadError: If a join/message event is malformed.
    """
    event_type = raw.get("type")
    if event_type == "join":
        return JoinEvent(source=_parse_source(raw.get("source")), reply_token=raw.get("replyToken"))
    if event_type == "message":
        return MessageEvent(
            source=_parse_source(raw.get("source")),
            message=_parse_message(raw.get("message")),
            reply_token=raw.get("replyToken"),
        )
    return None


def parse_events(payload: Any) -> list[InboundEvent]:
    """Normalize a webhook body, keeping batch order.

    Malformed events are logged and dropped; unknown types are skipped.

    Raises:
        InvalidPayloadError: If the body itself has no events list.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise InvalidPayloadError("body must be an object with an events list")

    events: list[InboundEvent] = []
    for index, raw in enumerate(payload["events"]):
        if not isinstance(raw, dict):
            continue
        try:
            event = parse_event(raw)
        except InvalidPayloadError as exc:
            logger.warning(
                "malformed webhook event dropped",
                extra={"extra_fields": safe_log_context(index=index, event_type=raw.get("type"), error=str(exc))},
            )
            continue
        if event is None:
            logger.debug(
                "webhook event ignored",
                extra={"extra_fields": safe_log_context(event_type=raw.get("type"))},
            )
            continue
        events.append(event)
    return events
