"""Tests for the LINE Messaging API client (HTTP mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from calbot.line.client import CONTENT_TIMEOUT, HTTP_TIMEOUT, MAX_TEXT_LENGTH, LineClient


def _response(status: int = 200, json_body=None, content: bytes = b"") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = json_body or {}
    resp.content = content
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error", response=resp)
    else:
        resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestReply:
    def test_reply_with_quote_token(self, session):
        session.post.return_value = _response()
        client = LineClient("channel-token", session=session)

        client.reply_text("rt-1", "hello", quote_token="qt-1")

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "https://api.line.me/v2/bot/message/reply"
        assert kwargs["json"] == {
            "replyToken": "rt-1",
            "messages": [{"type": "text", "text": "hello", "quoteToken": "qt-1"}],
        }
        assert kwargs["headers"] == {"Authorization": "Bearer channel-token"}
        assert kwargs["timeout"] == HTTP_TIMEOUT

    def test_long_text_truncated(self, session):
        session.post.return_value = _response()
        client = LineClient("t", session=session)

        client.reply_text("rt", "x" * (MAX_TEXT_LENGTH + 10))

        sent = session.post.call_args.kwargs["json"]["messages"][0]
        assert len(sent["text"]) == MAX_TEXT_LENGTH
        assert "quoteToken" not in sent

    def test_reply_failure_raises_http_error(self, session):
        session.post.return_value = _response(400)
        client = LineClient("t", session=session)

        with pytest.raises(requests.HTTPError):
            client.reply_text("expired", "hello")


class TestPush:
    def test_push(self, session):
        session.post.return_value = _response()
        LineClient("t", session=session).push_text("C123", "welcome")

        assert session.post.call_args.args[0] == "https://api.line.me/v2/bot/message/push"
        assert session.post.call_args.kwargs["json"]["to"] == "C123"


class TestContent:
    def test_download_uses_data_host(self, session):
        session.get.return_value = _response(content=b"%PDF")
        data = LineClient("t", session=session).get_message_content("m1")

        assert data == b"%PDF"
        assert session.get.call_args.args[0] == "https://api-data.line.me/v2/bot/message/m1/content"
        assert session.get.call_args.kwargs["timeout"] == CONTENT_TIMEOUT


class TestGroupName:
    def test_name(self, session):
        session.get.return_value = _response(json_body={"groupId": "C1", "groupName": "家庭"})

        assert LineClient("t", session=session).get_group_name("C1") == "家庭"

    def test_lookup_failure_returns_none(self, session):
        session.get.return_value = _response(403)

        assert LineClient("t", session=session).get_group_name("C1") is None


class TestUserinfo:
    def test_uses_caller_token(self, session):
        session.get.return_value = _response(json_body={"sub": "U1"})

        info = LineClient("channel-token", session=session).get_userinfo("user-token")

        assert info == {"sub": "U1"}
        assert session.get.call_args.kwargs["headers"] == {"Authorization": "Bearer user-token"}
