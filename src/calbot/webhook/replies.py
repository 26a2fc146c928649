"""Chat replies: message composition and best-effort delivery."""

from __future__ import annotations

from fastapi.concurrency import run_in_threadpool

from calbot.domain.models import CalendarEvent, StoredFile
from calbot.infra.time import format_local
from calbot.line.client import LineClient
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

from .context import MessageScope

logger = get_logger(__name__)

TODO_PAGE = "todo"
FILES_PAGE = "files"


def manage_url(frontend_url: str | None, scope: MessageScope, page: str) -> str | None:
    """Deep link to the personal or group management page, if a frontend is configured."""
    if not frontend_url:
        return None
    if scope.group_id:
        return f"{frontend_url}/group/{scope.group_id}/{page}"
    return f"{frontend_url}/{scope.user_id}/{page}"


def event_confirmation(event: CalendarEvent, *, timezone: str, link: str | None) -> str:
    lines = [
        "✅ 成功建立待辦事項",
        f"標題：{event.title}",
    ]
    if event.all_day:
        lines.append(f"日期：{format_local(event.start, timezone)[:10]}（全天）")
    else:
        lines.append(f"開始時間：{format_local(event.start, timezone)}")
        lines.append(f"結束時間：{format_local(event.end, timezone)}")
    text = "\n".join(lines)
    if link:
        text += f"\n\n📅 查看和管理行事曆：{link}"
    return text


def file_confirmation(stored: StoredFile, *, link: str | None) -> str:
    text = f"📁 檔案「{stored.file_name}」已成功備份到！"
    if link:
        text += f"\n\n查看和管理檔案：{link}"
    return text


def welcome_message(group_name: str | None) -> str:
    greeting = f"大家好！感謝邀請我加入「{group_name}」。" if group_name else "大家好！感謝邀請我加入。"
    return (
        f"{greeting}\n\n"
        "在訊息中標記我並描述活動，例如「@我 明天下午3點開會」，我會幫大家建立群組行事曆。\n"
        "傳到群組的檔案也會自動備份。"
    )


async def send_reply(
    line: LineClient,
    reply_token: str | None,
    text: str,
    *,
    quote_token: str | None = None,
) -> bool:
    """Reply once, logging and swallowing any failure.

    Returns:
        True if the reply was accepted by LINE.
    """
    if not reply_token:
        logger.warning("reply skipped: no reply token")
        return False
    try:
        await run_in_threadpool(line.reply_text, reply_token, text, quote_token=quote_token)
    except Exception as exc:
        logger.warning(
            "reply failed",
            extra={"extra_fields": safe_log_context(error=type(exc).__name__, text_len=len(text))},
        )
        return False
    return True
