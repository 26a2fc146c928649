"""Normalized LINE webhook events."""

from __future__ import annotations

from dataclasses import dataclass

TEXT = "text"
FILE_MESSAGE_TYPES = ("image", "video", "audio", "file")


@dataclass(frozen=True)
class Source:
    """Where an event came from: a 1:1 chat, a group, or a multi-person room."""

    type: str
    user_id: str | None = None
    group_id: str | None = None
    room_id: str | None = None

    @property
    def scope_id(self) -> str | None:
        """Group or room id for shared conversations, None for 1:1 chats."""
        return self.group_id or self.room_id

    @property
    def is_shared(self) -> bool:
        return self.type in ("group", "room")


@dataclass(frozen=True)
class InboundMessage:
    id: str
    type: str
    text: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    quoted_message_id: str | None = None
    quote_token: str | None = None
    mentions_bot: bool = False

    @property
    def is_text(self) -> bool:
        return self.type == TEXT

    @property
    def is_file(self) -> bool:
        return self.type in FILE_MESSAGE_TYPES


@dataclass(frozen=True)
class JoinEvent:
    source: Source
    reply_token: str | None = None


@dataclass(frozen=True)
class MessageEvent:
    source: Source
    message: InboundMessage
    reply_token: str | None = None


InboundEvent = JoinEvent | MessageEvent
