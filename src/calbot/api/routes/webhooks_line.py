"""LINE webhook route.

Responds as soon as every event in the batch has been deduplicated and
persisted; extraction, file backup and replies run as a background task
registered with the response.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.responses import PlainTextResponse

from calbot.api.deps import get_services
from calbot.errors.normalizer import normalize_error
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context
from calbot.services.container import Services
from calbot.webhook.adapter import (
    InvalidPayloadError,
    SignatureVerificationError,
    parse_events,
    verify_signature,
)
from calbot.webhook.gate import WebhookGate

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/webhook")
async def line_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_line_signature: str | None = Header(None, alias="X-Line-Signature"),
    services: Services = Depends(get_services),
) -> PlainTextResponse:
    """Receive a LINE webhook batch.

    Returns:
        200 "OK" (or the reply-token sentinel) on success.
        401 on a missing or invalid signature.
        400 on a malformed body.
        500 "Error: <message>" on any other failure, so LINE re-delivers.
    """
    body = await request.body()

    try:
        verify_signature(body, x_line_signature or "", services.settings.line_channel_secret)
    except SignatureVerificationError as exc:
        logger.warning(
            "line signature verification failed",
            extra={"extra_fields": safe_log_context(error=str(exc))},
        )
        return PlainTextResponse("invalid signature", status_code=401)

    try:
        events = parse_events(json.loads(body))
    except (ValueError, InvalidPayloadError) as exc:
        logger.warning(
            "invalid webhook body",
            extra={"extra_fields": safe_log_context(error=type(exc).__name__)},
        )
        return PlainTextResponse("invalid payload", status_code=400)

    gate = WebhookGate(services)
    try:
        acknowledgment = await gate.handle(events, schedule=background_tasks.add_task)
    except Exception as exc:
        normalized = normalize_error(exc, context={"stage": "webhook"})
        return PlainTextResponse(f"Error: {normalized.message}", status_code=500)

    return PlainTextResponse(acknowledgment)
