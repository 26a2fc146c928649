"""Domain records shared by the webhook pipeline and the RPC procedures.

Each record knows its scope: ``group_id`` set means the record belongs to a
group or room conversation, otherwise it is personal to ``user_id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class StoredMessage:
    """An inbound chat message, recorded once per external message id."""

    id: str
    message_id: str
    user_id: str
    content: str
    message_type: str
    quoted_message_id: str | None = None
    group_id: str | None = None
    event_id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    user_id: str
    all_day: bool = False
    description: str | None = None
    color: str | None = None
    label: str | None = None
    location: str | None = None
    completed: bool = False
    group_id: str | None = None
    message_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start": _iso(self.start),
            "end": _iso(self.end),
            "allDay": self.all_day,
            "color": self.color,
            "label": self.label,
            "location": self.location,
            "completed": self.completed,
            "userId": self.user_id,
            "groupId": self.group_id,
            "messageId": self.message_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class StoredFile:
    id: str
    file_id: str
    user_id: str
    file_name: str
    file_size: int
    mime_type: str
    group_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def storage_path(self) -> str:
        return storage_path_for(self.file_id, user_id=self.user_id, group_id=self.group_id)

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileId": self.file_id,
            "userId": self.user_id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
            "groupId": self.group_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class Page:
    """One page of a listing plus the total count across all pages."""

    items: list[Any]
    total: int
    page: int
    limit: int

    def to_api(self) -> dict[str, Any]:
        total_pages = (self.total + self.limit - 1) // self.limit if self.limit else 0
        return {
            "data": [item.to_api() for item in self.items],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "totalPages": total_pages,
            },
        }


def storage_path_for(file_id: str, *, user_id: str, group_id: str | None) -> str:
    """Object storage key for a file: group files first, then personal ones."""
    if group_id:
        return f"groups/{group_id}/{file_id}"
    return f"users/{user_id}/{file_id}"
