"""Tests for message scope, the mention filter and reply composition."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from calbot.domain.models import CalendarEvent, StoredFile, StoredMessage
from calbot.webhook.context import MessageScope, build_ai_input, requires_processing
from calbot.webhook.models import InboundMessage, Source
from calbot.webhook.replies import (
    FILES_PAGE,
    TODO_PAGE,
    event_confirmation,
    file_confirmation,
    manage_url,
    welcome_message,
)

PERSONAL = Source(type="user", user_id="U1")
GROUP = Source(type="group", user_id="U1", group_id="C1")


def _stored(content: str) -> StoredMessage:
    return StoredMessage(id="1", message_id="m0", user_id="U1", content=content, message_type="text")


class TestScope:
    def test_personal(self):
        assert MessageScope.from_source(PERSONAL) == MessageScope(user_id="U1", group_id=None)

    def test_group(self):
        assert MessageScope.from_source(GROUP) == MessageScope(user_id="U1", group_id="C1")

    def test_room_treated_as_group(self):
        scope = MessageScope.from_source(Source(type="room", user_id="U1", room_id="R1"))
        assert scope.group_id == "R1"

    def test_no_user(self):
        with pytest.raises(ValueError):
            MessageScope.from_source(Source(type="group", group_id="C1"))


class TestRequiresProcessing:
    def test_personal_text_always(self):
        assert requires_processing(PERSONAL, InboundMessage(id="m", type="text", text="hi"))

    def test_group_text_needs_mention(self):
        assert not requires_processing(GROUP, InboundMessage(id="m", type="text", text="hi"))
        assert requires_processing(GROUP, InboundMessage(id="m", type="text", text="hi", mentions_bot=True))

    def test_group_file_is_not_filtered(self):
        assert requires_processing(GROUP, InboundMessage(id="m", type="image"))


class TestBuildAiInput:
    def test_no_quote(self):
        assert build_ai_input("開會", quoted_message_id=None, quoted=None) == "開會"

    def test_resolved_quote(self):
        result = build_ai_input("改到四點", quoted_message_id="m0", quoted=_stored("明天三點開會"))
        assert result == "回應訊息：「明天三點開會」\n\n當前訊息：改到四點"

    def test_unresolved_quote(self):
        assert build_ai_input("改到四點", quoted_message_id="m0", quoted=None) == "回應先前的訊息：改到四點"


class TestManageUrl:
    def test_personal(self):
        scope = MessageScope(user_id="U1")
        assert manage_url("https://cal.example.com", scope, TODO_PAGE) == "https://cal.example.com/U1/todo"

    def test_group(self):
        scope = MessageScope(user_id="U1", group_id="C1")
        assert manage_url("https://cal.example.com", scope, FILES_PAGE) == "https://cal.example.com/group/C1/files"

    def test_unconfigured(self):
        assert manage_url(None, MessageScope(user_id="U1"), TODO_PAGE) is None


class TestMessages:
    def test_timed_event(self):
        event = CalendarEvent(
            id="e1",
            title="開會",
            start=datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc),
            end=datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc),
            user_id="U1",
        )

        text = event_confirmation(event, timezone="Asia/Taipei", link="https://x/U1/todo")

        assert "開始時間：2026/10/19 15:00" in text
        assert "結束時間：2026/10/19 16:00" in text
        assert text.endswith("📅 查看和管理行事曆：https://x/U1/todo")

    def test_all_day_event(self):
        event = CalendarEvent(
            id="e1",
            title="連假",
            start=datetime(2026, 10, 9, 16, 0, tzinfo=timezone.utc),
            end=datetime(2026, 10, 10, 16, 0, tzinfo=timezone.utc),
            user_id="U1",
            all_day=True,
        )

        assert "日期：2026/10/10（全天）" in event_confirmation(event, timezone="Asia/Taipei", link=None)

    def test_file(self):
        stored = StoredFile(
            id="1", file_id="f1", user_id="U1", file_name="a.pdf", file_size=1, mime_type="application/pdf"
        )
        assert file_confirmation(stored, link=None) == "📁 檔案「a.pdf」已成功備份到！"

    def test_welcome_names_group(self):
        assert "「讀書會」" in welcome_message("讀書會")
