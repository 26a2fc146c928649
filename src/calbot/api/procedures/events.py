"""Calendar event procedures."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from calbot.api.policy import authorize_create, authorize_resource, ensure_self
from calbot.domain.models import CalendarEvent, Page
from calbot.errors.taxonomy import not_found_error, validation_error
from calbot.infra.time import ensure_aware, utc_now
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

from .context import ProcedureContext
from .schemas import (
    CreateEventInput,
    DeleteEventInput,
    GetEventsInput,
    GetGroupEventsInput,
    GroupScopeInput,
    UpdateEventInput,
    UserScopeInput,
)

logger = get_logger(__name__)


def _load_event(ctx: ProcedureContext, event_id: str) -> CalendarEvent:
    # ids are uuids; anything else cannot name a stored event
    try:
        uuid.UUID(event_id)
    except ValueError:
        raise not_found_error("event", code="EVENT_NOT_FOUND")
    event = ctx.services.datastore.get_event(event_id)
    if event is None:
        raise not_found_error("event", code="EVENT_NOT_FOUND")
    return event


def _ensure_ordered(start: datetime, end: datetime) -> None:
    if end < start:
        raise validation_error(
            "end is before start",
            "欄位「end」結束時間不能早於開始時間",
            details={"field": "end"},
        )


def get_events(ctx: ProcedureContext, data: GetEventsInput) -> dict[str, Any]:
    ensure_self(ctx.identity, data.user_id)
    items, total = ctx.services.datastore.list_events(
        user_id=data.user_id,
        start_after=data.start_time,
        end_before=data.end_time,
        limit=data.limit,
        offset=data.offset,
    )
    return Page(items, total, data.page, data.limit).to_api()


def get_group_events(ctx: ProcedureContext, data: GetGroupEventsInput) -> dict[str, Any]:
    items, total = ctx.services.datastore.list_events(
        group_id=data.group_id,
        start_after=data.start_time,
        end_before=data.end_time,
        limit=data.limit,
        offset=data.offset,
    )
    return Page(items, total, data.page, data.limit).to_api()


def create_event(ctx: ProcedureContext, data: CreateEventInput) -> dict[str, Any]:
    authorize_create(ctx.identity, owner_id=data.user_id, group_id=data.group_id)
    tz = ctx.services.settings.default_timezone
    start = ensure_aware(data.start, tz)
    end = ensure_aware(data.end, tz)
    _ensure_ordered(start, end)
    event = ctx.services.datastore.insert_event(
        title=data.title,
        description=data.description,
        start=start,
        end=end,
        all_day=data.all_day,
        color=data.color,
        label=data.label,
        location=data.location,
        user_id=data.user_id,
        group_id=data.group_id,
    )
    logger.info(
        "event created via rpc",
        extra={"extra_fields": safe_log_context(shared=data.group_id is not None)},
    )
    return event.to_api()


def update_event(ctx: ProcedureContext, data: UpdateEventInput) -> dict[str, Any]:
    existing = _load_event(ctx, data.id)
    authorize_resource(
        ctx.identity,
        owner_id=existing.user_id,
        resource_group_id=existing.group_id,
        supplied_group_id=data.group_id,
    )

    fields = data.model_dump(exclude_unset=True, exclude={"id", "group_id"})
    tz = ctx.services.settings.default_timezone
    for key in ("start", "end"):
        if fields.get(key) is not None:
            fields[key] = ensure_aware(fields[key], tz)
    for key in ("title", "start", "end", "all_day", "completed"):
        if key in fields and fields[key] is None:
            raise validation_error(
                f"{key} cannot be null",
                f"欄位「{key}」不能為空",
                details={"field": key},
            )

    _ensure_ordered(fields.get("start", existing.start), fields.get("end", existing.end))

    updated = ctx.services.datastore.update_event(data.id, fields)
    if updated is None:
        raise not_found_error("event", code="EVENT_NOT_FOUND")
    return updated.to_api()


def delete_event(ctx: ProcedureContext, data: DeleteEventInput) -> dict[str, Any]:
    existing = _load_event(ctx, data.id)
    authorize_resource(
        ctx.identity,
        owner_id=existing.user_id,
        resource_group_id=existing.group_id,
        supplied_group_id=data.group_id,
    )
    if not ctx.services.datastore.delete_event(data.id):
        raise not_found_error("event", code="EVENT_NOT_FOUND")
    return {"success": True, "id": data.id}


def get_incomplete_expired_events(ctx: ProcedureContext, data: UserScopeInput) -> list[dict[str, Any]]:
    ensure_self(ctx.identity, data.user_id)
    events = ctx.services.datastore.list_incomplete_expired(now=utc_now(), user_id=data.user_id)
    return [event.to_api() for event in events]


def get_group_incomplete_expired_events(ctx: ProcedureContext, data: GroupScopeInput) -> list[dict[str, Any]]:
    events = ctx.services.datastore.list_incomplete_expired(now=utc_now(), group_id=data.group_id)
    return [event.to_api() for event in events]
