"""Datastore facade: one short transaction per repository call.

The webhook pipeline and RPC procedures talk to this class rather than to
cursors, so tests can substitute an in-memory implementation with the same
methods. All methods block; async callers go through run_in_threadpool.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from calbot.domain.models import CalendarEvent, StoredFile, StoredMessage
from calbot.infra.db import txn
from calbot.infra.repositories import (
    events_repository,
    files_repository,
    messages_repository,
)


class Datastore:
    def __init__(self, dsn: str):
        self._dsn = dsn

    # Messages

    def get_message(self, message_id: str) -> StoredMessage | None:
        with txn(dsn=self._dsn) as cur:
            return messages_repository.get_message_by_external_id(cur, message_id=message_id)

    def insert_message(self, **fields: Any) -> StoredMessage:
        with txn(dsn=self._dsn) as cur:
            return messages_repository.insert_message(cur, **fields)

    def attach_event(self, message_id: str, event_id: str) -> bool:
        with txn(dsn=self._dsn) as cur:
            return messages_repository.attach_event(cur, message_id=message_id, event_id=event_id)

    # Calendar events

    def insert_event(self, **fields: Any) -> CalendarEvent:
        with txn(dsn=self._dsn) as cur:
            return events_repository.insert_event(cur, **fields)

    def get_event(self, event_id: str) -> CalendarEvent | None:
        with txn(dsn=self._dsn) as cur:
            return events_repository.get_event(cur, event_id=event_id)

    def update_event(self, event_id: str, fields: dict[str, Any]) -> CalendarEvent | None:
        with txn(dsn=self._dsn) as cur:
            return events_repository.update_event(cur, event_id=event_id, fields=fields)

    def delete_event(self, event_id: str) -> bool:
        with txn(dsn=self._dsn) as cur:
            return events_repository.delete_event(cur, event_id=event_id)

    def list_events(self, **filters: Any) -> tuple[list[CalendarEvent], int]:
        with txn(dsn=self._dsn) as cur:
            return events_repository.list_events(cur, **filters)

    def list_incomplete_expired(
        self,
        *,
        now: datetime,
        user_id: str | None = None,
        group_id: str | None = None,
    ) -> list[CalendarEvent]:
        with txn(dsn=self._dsn) as cur:
            return events_repository.list_incomplete_expired(
                cur, now=now, user_id=user_id, group_id=group_id
            )

    # Files

    def insert_file(self, **fields: Any) -> StoredFile:
        with txn(dsn=self._dsn) as cur:
            return files_repository.insert_file(cur, **fields)

    def get_file(self, file_id: str) -> StoredFile | None:
        with txn(dsn=self._dsn) as cur:
            return files_repository.get_file(cur, file_id=file_id)

    def rename_file(self, file_id: str, file_name: str) -> StoredFile | None:
        with txn(dsn=self._dsn) as cur:
            return files_repository.rename_file(cur, file_id=file_id, file_name=file_name)

    def delete_file(self, file_id: str) -> bool:
        with txn(dsn=self._dsn) as cur:
            return files_repository.delete_file(cur, file_id=file_id)

    def list_files(self, **filters: Any) -> tuple[list[StoredFile], int]:
        with txn(dsn=self._dsn) as cur:
            return files_repository.list_files(cur, **filters)
