"""Message events: deduplicate, persist, then hand off follow-up work.

Persistence is on the acknowledgment-critical path: a message is recorded
before LINE gets its 200, so a re-delivery finds it and stops. Extraction,
file download and replies happen in a follow-up that the gate runs after
(or alongside) the acknowledgment.
"""

from __future__ import annotations

import mimetypes
from functools import partial
from typing import Awaitable, Callable

from fastapi.concurrency import run_in_threadpool

from calbot.domain.materialize import materialize_event
from calbot.domain.models import StoredMessage, storage_path_for
from calbot.errors.normalizer import MESSAGE_ALREADY_PROCESSED, classify, normalize_error
from calbot.errors.taxonomy import ErrorType, NormalizedError
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context
from calbot.services.container import Services

from .context import MessageScope, build_ai_input, requires_processing
from .models import MessageEvent
from .replies import (
    FILES_PAGE,
    TODO_PAGE,
    event_confirmation,
    file_confirmation,
    manage_url,
    send_reply,
)

logger = get_logger(__name__)

FollowUp = Callable[[], Awaitable[None]]

# LINE only names "file" messages; the other kinds get a name from their type
_DEFAULTS_BY_TYPE = {
    "image": ("jpg", "image/jpeg"),
    "video": ("mp4", "video/mp4"),
    "audio": ("m4a", "audio/x-m4a"),
    "file": ("bin", "application/octet-stream"),
}


def message_content(event: MessageEvent) -> str:
    """What gets stored as the message's content."""
    message = event.message
    if message.is_text:
        return message.text or ""
    if message.file_name:
        return message.file_name
    return f"檔案訊息: {message.type}"


def file_name_for(event: MessageEvent) -> str:
    message = event.message
    if message.file_name:
        return message.file_name
    extension, _ = _DEFAULTS_BY_TYPE.get(message.type, _DEFAULTS_BY_TYPE["file"])
    return f"{message.id}.{extension}"


def mime_type_for(file_name: str, message_type: str) -> str:
    guessed, _ = mimetypes.guess_type(file_name)
    if guessed:
        return guessed
    return _DEFAULTS_BY_TYPE.get(message_type, _DEFAULTS_BY_TYPE["file"])[1]


async def persist_inbound_message(
    services: Services,
    event: MessageEvent,
    scope: MessageScope,
) -> StoredMessage | None:
    """Record a message unless it was seen before.

    Returns:
        The new StoredMessage, or None if the message id is already recorded.

    Raises:
        NormalizedError: ``conflict`` (MESSAGE_ALREADY_PROCESSED) when a
            concurrent delivery inserted the same id between the lookup and
            the insert.
    """
    message = event.message
    datastore = services.datastore

    existing = await run_in_threadpool(datastore.get_message, message.id)
    if existing is not None:
        logger.info(
            "duplicate message ignored",
            extra={"extra_fields": safe_log_context(message_type=message.type)},
        )
        return None

    try:
        return await run_in_threadpool(
            datastore.insert_message,
            message_id=message.id,
            user_id=scope.user_id,
            content=message_content(event),
            message_type=message.type,
            quoted_message_id=message.quoted_message_id,
            group_id=scope.group_id,
        )
    except Exception as exc:
        normalized = normalize_error(exc, suppress_logging=True)
        if normalized.type is ErrorType.CONFLICT:
            raise normalized from exc
        raise


async def handle_message_event(services: Services, event: MessageEvent) -> FollowUp | None:
    """Persist a message event and return its follow-up, if it needs one.

    Messages without a sender id are skipped. In 1:1 chats that is the bot's
    own echo. In groups and rooms LINE omits the id for senders who have not
    consented to profile access; every stored record needs an owner, so those
    are skipped too.
    """
    source = event.source
    message = event.message

    if not source.user_id:
        reason = "group_sender_unknown" if source.is_shared else "bot_message"
        logger.info(
            "message without sender skipped",
            extra={"extra_fields": safe_log_context(reason=reason)},
        )
        return None
    if not (message.is_text or message.is_file):
        logger.debug(
            "unsupported message type ignored",
            extra={"extra_fields": safe_log_context(message_type=message.type)},
        )
        return None

    scope = MessageScope.from_source(source)
    try:
        stored = await persist_inbound_message(services, event, scope)
    except NormalizedError as exc:
        if exc.code != MESSAGE_ALREADY_PROCESSED:
            raise
        logger.info("concurrent duplicate delivery ignored")
        return None
    if stored is None:
        return None

    if message.is_file:
        return partial(process_file_message, services, event, scope)

    if not requires_processing(source, message):
        logger.debug("group message without mention recorded only")
        return None
    return partial(process_text_message, services, event, scope)


async def process_text_message(services: Services, event: MessageEvent, scope: MessageScope) -> None:
    """Extract an event from a text message, persist it and reply.

    Any failure becomes the reply text (the normalized user message).
    """
    settings = services.settings
    message = event.message
    text = message.text or ""
    timezone = settings.default_timezone

    try:
        quoted = None
        if message.quoted_message_id:
            quoted = await run_in_threadpool(services.datastore.get_message, message.quoted_message_id)
        ai_input = build_ai_input(text, quoted_message_id=message.quoted_message_id, quoted=quoted)

        candidate = await run_in_threadpool(services.extractor.extract, ai_input, timezone=timezone)
        created = await run_in_threadpool(
            materialize_event,
            services.datastore,
            candidate,
            text=text,
            message_id=message.id,
            user_id=scope.user_id,
            group_id=scope.group_id,
            timezone=timezone,
        )
        reply = event_confirmation(
            created,
            timezone=timezone,
            link=manage_url(settings.frontend_url, scope, TODO_PAGE),
        )
    except Exception as exc:
        reply = normalize_error(exc, context={"stage": "text_message"}).user_message

    await send_reply(services.line, event.reply_token, reply, quote_token=message.quote_token)


async def process_file_message(services: Services, event: MessageEvent, scope: MessageScope) -> None:
    """Back up a file/image/video/audio message to object storage and reply."""
    settings = services.settings
    message = event.message

    try:
        data = await run_in_threadpool(services.line.get_message_content, message.id)
        file_name = file_name_for(event)
        mime_type = mime_type_for(file_name, message.type)

        key = storage_path_for(message.id, user_id=scope.user_id, group_id=scope.group_id)
        await run_in_threadpool(services.storage.put, key, data, mime_type)
        try:
            stored = await run_in_threadpool(
                services.datastore.insert_file,
                file_id=message.id,
                user_id=scope.user_id,
                file_name=file_name,
                file_size=len(data),
                mime_type=mime_type,
                group_id=scope.group_id,
            )
        except Exception as exc:
            # on a file_id conflict the existing row still points at this key
            if classify(exc).type is not ErrorType.CONFLICT:
                await run_in_threadpool(services.storage.delete, key)
            raise
        logger.info(
            "file backed up",
            extra={"extra_fields": safe_log_context(mime_type=mime_type, size=len(data))},
        )
        reply = file_confirmation(stored, link=manage_url(settings.frontend_url, scope, FILES_PAGE))
    except Exception as exc:
        reply = normalize_error(exc, context={"stage": "file_message"}).user_message

    await send_reply(services.line, event.reply_token, reply, quote_token=message.quote_token)
