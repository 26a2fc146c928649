"""Calendar intent extraction via the Gemini generateContent API.

The model is offered one function, ``createEvent``. A function call in the
response becomes a CandidateEvent; no call (or arguments that fail
validation) means "nothing extracted" and the caller falls back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from calbot.errors.taxonomy import ai_service_error
from calbot.infra.time import local_datetime_string, utc_now
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

from .prompts import CREATE_EVENT_TOOL, create_event_prompt

logger = get_logger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"
HTTP_TIMEOUT = 30


class CandidateEvent(BaseModel):
    """Arguments of a ``createEvent`` function call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = Field(min_length=1)
    description: str | None = None
    start: datetime
    end: datetime
    all_day: bool = Field(default=False, alias="allDay")
    color: str | None = None
    label: str | None = None


def find_create_event_args(response: dict[str, Any]) -> dict[str, Any] | None:
    """Arguments of the first ``createEvent`` call in a generateContent response."""
    for candidate in response.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        for part in parts:
            call = part.get("functionCall")
            if isinstance(call, dict) and call.get("name") == CREATE_EVENT_TOOL["name"]:
                args = call.get("args")
                return args if isinstance(args, dict) else {}
    return None


class CalendarExtractionClient:
    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        session: requests.Session | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._session = session or requests.Session()

    def _request_body(self, text: str, *, timezone: str, local_datetime: str) -> dict[str, Any]:
        return {
            "systemInstruction": {
                "parts": [{"text": create_event_prompt(timezone=timezone, local_datetime=local_datetime)}]
            },
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "tools": [{"functionDeclarations": [CREATE_EVENT_TOOL]}],
            "toolConfig": {"functionCallingConfig": {"mode": "AUTO"}},
        }

    def extract(
        self,
        text: str,
        *,
        timezone: str,
        now: datetime | None = None,
    ) -> CandidateEvent | None:
        """Ask the model for a calendar event in ``text``.

        Args:
            text: AI input (the message, possibly framed with a quoted message).
            timezone: IANA zone of the caller.
            now: Current instant; defaults to utc_now().

        Returns:
            CandidateEvent, or None when the model found nothing usable.

        Raises:
            NormalizedError: ``ai_service`` type when the call itself fails.
        """
        local_datetime = local_datetime_string(now or utc_now(), timezone)
        url = f"{API_BASE}/models/{self._model}:generateContent"

        try:
            resp = self._session.post(
                url,
                json=self._request_body(text, timezone=timezone, local_datetime=local_datetime),
                headers={"x-goog-api-key": self._api_key},
                timeout=HTTP_TIMEOUT,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise ai_service_error(f"Gemini request failed (status={status}): {type(exc).__name__}") from exc
        except ValueError as exc:
            raise ai_service_error("Gemini returned a non-JSON response") from exc

        args = find_create_event_args(payload)
        if args is None:
            logger.info(
                "no event extracted",
                extra={"extra_fields": safe_log_context(model=self._model, text_len=len(text))},
            )
            return None

        try:
            candidate = CandidateEvent.model_validate(args)
        except ValidationError as exc:
            logger.warning(
                "extracted event failed validation",
                extra={"extra_fields": safe_log_context(model=self._model, error_count=exc.error_count())},
            )
            return None

        logger.info(
            "event extracted",
            extra={"extra_fields": safe_log_context(model=self._model, all_day=candidate.all_day)},
        )
        return candidate
