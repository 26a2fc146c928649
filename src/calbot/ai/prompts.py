"""Prompt and tool declaration for calendar extraction."""

from __future__ import annotations

CREATE_EVENT_TOOL = {
    "name": "createEvent",
    "description": "建立新的行事曆活動",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING", "description": "活動標題"},
            "description": {"type": "STRING", "description": "活動描述"},
            "start": {
                "type": "STRING",
                "description": "開始時間 (ISO 8601 格式，包含時區偏移，例如: 2024-01-15T10:00:00+08:00)",
            },
            "end": {
                "type": "STRING",
                "description": "結束時間 (ISO 8601 格式，包含時區偏移，例如: 2024-01-15T11:00:00+08:00)",
            },
            "allDay": {"type": "BOOLEAN", "description": "是否為全天活動"},
            "color": {"type": "STRING", "description": "活動顏色"},
            "label": {"type": "STRING", "description": "活動標籤"},
        },
        "required": ["title", "start", "end"],
    },
}


def create_event_prompt(*, timezone: str, local_datetime: str) -> str:
    """System instruction for one extraction call.

    The caller's wall-clock time is included so relative phrases such as
    "明天下午3點" resolve in the caller's zone rather than the server's.
    """
    return f"""你是一個行事曆助理，負責從使用者的訊息中找出待辦事項或活動，並呼叫 createEvent 建立行事曆活動。

目前使用者的當地時間：{local_datetime}
使用者的時區：{timezone}

規則：
1. 訊息描述了活動、約會、提醒或待辦事項時，呼叫 createEvent。
2. 相對日期（今天、明天、下週一等）以上面的當地時間為準計算。
3. start 與 end 必須是 ISO 8601 格式，並包含 {timezone} 的時區偏移。
4. 沒有提到結束時間時，結束時間為開始時間後 1 小時。
5. 只提到日期沒有時間時，設定 allDay 為 true，start 為當天 00:00，end 為隔天 00:00。
6. title 簡短描述活動內容，不要包含日期或時間。
7. 訊息包含「回應訊息」時，以當前訊息修改被回應的內容，例如更改時間。
8. 訊息與行事曆無關時，不要呼叫任何函式。
"""
