"""Conversation context for one message: scope, mention filter, quoted text."""

from __future__ import annotations

from dataclasses import dataclass

from calbot.domain.models import StoredMessage

from .models import InboundMessage, Source

QUOTED_FRAME = "回應訊息：「{quoted}」\n\n當前訊息：{current}"
UNRESOLVED_QUOTE_FRAME = "回應先前的訊息：{current}"


@dataclass(frozen=True)
class MessageScope:
    """Owner and (for shared conversations) group of records derived from a message."""

    user_id: str
    group_id: str | None = None

    @classmethod
    def from_source(cls, source: Source) -> MessageScope:
        if not source.user_id:
            raise ValueError("message source has no user id")
        return cls(user_id=source.user_id, group_id=source.scope_id)


def requires_processing(source: Source, message: InboundMessage) -> bool:
    """Whether a text message should go on to extraction.

    In groups and rooms the bot only acts when mentioned; in 1:1 chats every
    message counts. Non-text messages carry no mentions and are not filtered.
    """
    if not message.is_text or not source.is_shared:
        return True
    return message.mentions_bot


def build_ai_input(text: str, *, quoted_message_id: str | None, quoted: StoredMessage | None) -> str:
    """Frame ``text`` with the message it quotes, if any."""
    if not quoted_message_id:
        return text
    if quoted is not None:
        return QUOTED_FRAME.format(quoted=quoted.content, current=text)
    return UNRESOLVED_QUOTE_FRAME.format(current=text)
