"""Turn an extraction result into a persisted calendar event."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from calbot.ai.extraction import CandidateEvent
from calbot.domain.models import CalendarEvent
from calbot.infra.time import ensure_aware, utc_now
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

if TYPE_CHECKING:
    from calbot.infra.datastore import Datastore

logger = get_logger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)


def fallback_candidate(text: str, *, now: datetime | None = None) -> CandidateEvent:
    """Event used when nothing was extracted: the raw text, now, for one hour."""
    start = now or utc_now()
    return CandidateEvent(title=text, start=start, end=start + DEFAULT_EVENT_DURATION, all_day=False)


def materialize_event(
    datastore: Datastore,
    candidate: CandidateEvent | None,
    *,
    text: str,
    message_id: str,
    user_id: str,
    group_id: str | None,
    timezone: str,
    now: datetime | None = None,
) -> CalendarEvent:
    """Persist the event for one message and link it back to the message.

    Args:
        datastore: Datastore (or compatible).
        candidate: Extraction result, or None to use the fallback event.
        text: Raw message text, title of the fallback event.
        message_id: External message id; at most one event per message.
        user_id: Sender, owner of the event.
        group_id: Group/room id for shared events.
        timezone: Zone used to read naive timestamps.
        now: Current instant for the fallback event.

    Returns:
        The persisted CalendarEvent.
    """
    used_fallback = candidate is None
    if candidate is None:
        candidate = fallback_candidate(text, now=now)

    start = ensure_aware(candidate.start, timezone)
    end = ensure_aware(candidate.end, timezone)
    if end < start:
        end = start + DEFAULT_EVENT_DURATION

    event = datastore.insert_event(
        title=candidate.title,
        description=candidate.description,
        start=start,
        end=end,
        all_day=candidate.all_day,
        color=candidate.color,
        label=candidate.label,
        user_id=user_id,
        group_id=group_id,
        message_id=message_id,
    )

    try:
        datastore.attach_event(message_id, event.id)
    except Exception as exc:  # link is informational only
        logger.warning(
            "failed to link message to event",
            extra={"extra_fields": safe_log_context(error=type(exc).__name__)},
        )

    logger.info(
        "calendar event created",
        extra={
            "extra_fields": safe_log_context(
                fallback=used_fallback,
                shared=group_id is not None,
                all_day=event.all_day,
            )
        },
    )
    return event
