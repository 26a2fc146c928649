"""Webhook ingestion gate: concurrent dispatch of one batch of events.

Every event in a batch is dispatched at once and the batch settles before
the gate answers. One event failing does not stop its siblings. Afterwards
the first failure is re-raised, unless every failure is the expired/invalid
reply token case, which is reported with a fixed acknowledgment string
instead.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Callable, Sequence

from fastapi.concurrency import run_in_threadpool

from calbot.errors.normalizer import INVALID_REPLY_TOKEN, classify, normalize_error
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context
from calbot.services.container import Services

from .messages import FollowUp, handle_message_event
from .models import InboundEvent, JoinEvent, MessageEvent
from .replies import welcome_message

logger = get_logger(__name__)

WEBHOOK_RESPONSE_SUCCESS = "OK"
WEBHOOK_RESPONSE_INVALID_REPLY_TOKEN = "Reply token has expired or invalid"

# Registers work to run once the acknowledgment has been sent
Scheduler = Callable[[FollowUp], None]


def is_reply_token_error(error: BaseException) -> bool:
    if "invalid reply token" in str(error).lower():
        return True
    return classify(error).code == INVALID_REPLY_TOKEN


async def run_follow_ups(follow_ups: Sequence[FollowUp]) -> None:
    """Run follow-ups concurrently; failures are logged, never raised."""
    results = await asyncio.gather(*(follow_up() for follow_up in follow_ups), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            normalize_error(result, context={"stage": "follow_up"})


class WebhookGate:
    def __init__(self, services: Services):
        self._services = services

    async def handle(self, events: Sequence[InboundEvent], schedule: Scheduler | None = None) -> str:
        """Dispatch a batch and return the acknowledgment text.

        Args:
            events: Parsed events, in delivery order.
            schedule: Background-task registrar. When None, follow-up work is
                awaited before returning.

        Returns:
            WEBHOOK_RESPONSE_SUCCESS, or WEBHOOK_RESPONSE_INVALID_REPLY_TOKEN
            when the only failures were reply-token failures.

        Raises:
            Exception: The first failure that is not a reply-token failure.
        """
        results = await asyncio.gather(
            *(self._dispatch(event) for event in events),
            return_exceptions=True,
        )

        follow_ups: list[FollowUp] = []
        errors: list[BaseException] = []
        for result in results:
            if isinstance(result, BaseException):
                errors.append(result)
            elif result is not None:
                follow_ups.append(result)

        if follow_ups:
            if schedule is not None:
                schedule(partial(run_follow_ups, follow_ups))
            else:
                await run_follow_ups(follow_ups)

        fatal = [error for error in errors if not is_reply_token_error(error)]
        if fatal:
            logger.error(
                "webhook batch failed",
                extra={"extra_fields": safe_log_context(events=len(events), failures=len(fatal))},
            )
            raise fatal[0]
        if errors:
            logger.warning("reply token expired or invalid")
            return WEBHOOK_RESPONSE_INVALID_REPLY_TOKEN

        logger.info(
            "webhook batch processed",
            extra={"extra_fields": safe_log_context(events=len(events), follow_ups=len(follow_ups))},
        )
        return WEBHOOK_RESPONSE_SUCCESS

    async def _dispatch(self, event: InboundEvent) -> FollowUp | None:
        if isinstance(event, JoinEvent):
            await self._handle_join(event)
            return None
        if isinstance(event, MessageEvent):
            return await handle_message_event(self._services, event)
        return None

    async def _handle_join(self, event: JoinEvent) -> None:
        target = event.source.scope_id
        if not target:
            logger.warning("join event without group or room id")
            return
        line = self._services.line
        group_name = None
        if event.source.group_id:
            group_name = await run_in_threadpool(line.get_group_name, event.source.group_id)
        await run_in_threadpool(line.push_text, target, welcome_message(group_name))
        logger.info(
            "welcome sent",
            extra={"extra_fields": safe_log_context(source_type=event.source.type)},
        )
