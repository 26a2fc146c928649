"""Classify any exception into exactly one NormalizedError.

Rules run in order, first match wins:

1. Already a NormalizedError: returned unchanged.
2. Schema validation, possibly wrapped (see errors.validation.PROBES).
3. External HTTP API error (requests exceptions).
4. Datastore error (psycopg2, or constraint text from any driver).
5. Errors re-raised with a carried status/code (incl. FastAPI HTTPException).
6. Message heuristics, else a generic internal error.

Every result is logged once. Pass ``suppress_logging=True`` when an earlier
boundary already logged the same failure.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import psycopg2
import requests
from starlette.exceptions import HTTPException as StarletteHTTPException

from calbot.errors import validation
from calbot.errors.taxonomy import (
    STATUS_BY_TYPE,
    ErrorSeverity,
    ErrorType,
    NormalizedError,
    authentication_error,
    authorization_error,
    conflict_error,
    database_error,
    external_api_error,
    internal_error,
    rate_limit_error,
    validation_error,
)
from calbot.observability.correlation import get_correlation_id
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

logger = get_logger(__name__)

MESSAGE_ALREADY_PROCESSED = "MESSAGE_ALREADY_PROCESSED"
INVALID_REPLY_TOKEN = "INVALID_REPLY_TOKEN"

_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Known LINE platform failures, matched on the upstream message
_PLATFORM_MESSAGES: list[tuple[str, Callable[[str], NormalizedError]]] = [
    (
        "invalid reply token",
        lambda msg: external_api_error(
            "LINE", msg, "回覆訊息已過期，請重新傳送訊息", code=INVALID_REPLY_TOKEN
        ),
    ),
    (
        "too many requests",
        lambda msg: rate_limit_error(msg, "訊息發送過於頻繁，請稍後再試"),
    ),
    (
        "invalid access token",
        lambda msg: authentication_error(
            msg, "LINE 存取權杖無效，請重新登入", code="INVALID_ACCESS_TOKEN"
        ),
    ),
]


def normalize_error(
    error: BaseException,
    *,
    context: dict[str, Any] | None = None,
    suppress_logging: bool = False,
) -> NormalizedError:
    """Classify ``error`` and log the result.

    Args:
        error: Any exception.
        context: Extra, non-PII fields for the log line (e.g. procedure name).
        suppress_logging: Skip logging; the caller already logged this failure.

    Returns:
        A NormalizedError with a concrete HTTP status and the current
        correlation ID attached.
    """
    normalized = classify(error)
    if normalized.request_id is None:
        normalized.request_id = get_correlation_id() or None

    if not suppress_logging and not normalized.logged:
        _log(normalized, error, context or {})
        normalized.logged = True
    return normalized


def classify(error: BaseException) -> NormalizedError:
    """Pure classification, no logging."""
    if isinstance(error, NormalizedError):
        return error

    structured = validation.extract_validation(error)
    if structured is None and validation.looks_like_validation(error):
        structured = validation.synthesize_validation(error)
    if structured is not None:
        return _from_validation(structured)

    external = _classify_external_api(error)
    if external is not None:
        return external

    db = _classify_database(error)
    if db is not None:
        return db

    carried = _reconstitute(error)
    if carried is not None:
        return carried

    return _fallback(error)


def _from_validation(structured: validation.StructuredValidationError) -> NormalizedError:
    return validation_error(
        structured.technical_message(),
        structured.first.user_message,
        details=structured.details(),
    )


def _upstream_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(body, dict):
        # LINE: {"message": ...}; Google: {"error": {"message": ...}}
        inner = body.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if body.get("message"):
            return str(body["message"])
    return response.text or ""


def _classify_external_api(error: BaseException) -> NormalizedError | None:
    if not isinstance(error, requests.RequestException):
        return None

    response = error.response
    if response is None:
        return external_api_error(
            _service_name(error),
            str(error),
            "網路連線異常，請稍後再試",
            code="NETWORK_ERROR",
        )

    status = response.status_code
    upstream = _upstream_message(response)
    lowered = upstream.lower()
    for needle, build in _PLATFORM_MESSAGES:
        if needle in lowered:
            return build(upstream)

    service = _service_name(error)
    details = {"service": service, "status": status}
    if status == 429:
        return rate_limit_error(f"{service}: {upstream}")
    if 400 <= status < 500:
        return external_api_error(
            service,
            upstream or f"HTTP {status}",
            f"外部服務拒絕了請求：{upstream}" if upstream else "外部服務拒絕了請求",
            code=f"HTTP_{status}",
            details=details,
        )
    return external_api_error(
        service,
        upstream or f"HTTP {status}",
        code="EXTERNAL_SERVICE_UNAVAILABLE",
        details=details,
    )


def _service_name(error: requests.RequestException) -> str:
    url = getattr(error.request, "url", None) or ""
    if "line.me" in url:
        return "LINE"
    if "googleapis.com" in url:
        return "Gemini"
    return "external"


_CONSTRAINT_MARKERS = (
    # (needle, constraint kind), postgres then sqlite phrasing
    ("unique constraint", "unique"),
    ("foreign key", "foreign_key"),
    ("not-null constraint", "not_null"),
    ("not null constraint failed", "not_null"),
    ("check constraint", "check"),
)


def _constraint_kind(text: str) -> str | None:
    lowered = text.lower()
    for needle, kind in _CONSTRAINT_MARKERS:
        if needle in lowered:
            return kind
    return None


def _chain_text(error: BaseException) -> str:
    """Messages of ``error`` and every exception it was raised from."""
    parts = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))
        current = current.__cause__ or current.__context__
    return "\n".join(part for part in parts if part)


def _classify_database(error: BaseException) -> NormalizedError | None:
    text = _chain_text(error) or type(error).__name__
    kind = _constraint_kind(text)

    if kind == "unique":
        if "message_id" in text:
            return conflict_error(
                text.splitlines()[0],
                "此訊息已經處理過，請勿重複提交",
                code=MESSAGE_ALREADY_PROCESSED,
            )
        return conflict_error(text.splitlines()[0], "資料已存在，請勿重複建立", code="DUPLICATE_RESOURCE")
    if kind == "foreign_key":
        return validation_error(
            text.splitlines()[0], "關聯的資料不存在", code="FOREIGN_KEY_VIOLATION"
        )
    if kind == "not_null":
        return validation_error(
            text.splitlines()[0], "缺少必要的資料欄位", code="NOT_NULL_VIOLATION"
        )
    if kind == "check":
        return validation_error(
            text.splitlines()[0], "資料內容不符合規則", code="CHECK_VIOLATION"
        )
    if isinstance(error, psycopg2.Error):
        return database_error(str(error).strip() or type(error).__name__)
    return None


_TYPE_BY_STATUS: dict[int, ErrorType] = {
    status: error_type
    for error_type, status in STATUS_BY_TYPE.items()
    if error_type is not ErrorType.DATABASE
}


def _reconstitute(error: BaseException) -> NormalizedError | None:
    preserved = getattr(error, "validation_error", None)
    if isinstance(preserved, BaseException):
        structured = validation.extract_validation(preserved)
        if structured is not None:
            return _from_validation(structured)

    status = getattr(error, "status_code", None)
    if not isinstance(status, int):
        return None

    if isinstance(error, StarletteHTTPException):
        code = f"HTTP_{status}"
        message = str(error.detail)
    else:
        code = getattr(error, "code", None)
        if not isinstance(code, str):
            return None
        message = str(error)

    error_type = _TYPE_BY_STATUS.get(status)
    if error_type is None:
        error_type = ErrorType.INTERNAL if status >= 500 else ErrorType.VALIDATION
    user_message = getattr(error, "user_message", None) or (
        "系統發生錯誤，請稍後再試" if status >= 500 else "請求無法處理，請檢查後重試"
    )
    return NormalizedError(
        error_type,
        code,
        message,
        user_message,
        severity=ErrorSeverity.LOW if status < 500 else ErrorSeverity.HIGH,
        status=status,
    )


def _fallback(error: BaseException) -> NormalizedError:
    message = str(error) or type(error).__name__
    lowered = message.lower()
    if "token" in lowered:
        return authentication_error(message)
    if "permission" in lowered or "unauthorized" in lowered:
        return authorization_error(message)
    if "not found" in lowered:
        return NormalizedError(
            ErrorType.NOT_FOUND,
            "RESOURCE_NOT_FOUND",
            message,
            "找不到指定的資源",
            severity=ErrorSeverity.LOW,
        )
    return internal_error(message)


def _log(normalized: NormalizedError, error: BaseException, context: dict[str, Any]) -> None:
    fields = safe_log_context(
        errorType=normalized.type.value,
        errorCode=normalized.code,
        status=normalized.status,
        severity=normalized.severity.value,
        **context,
    )
    if normalized.type is ErrorType.VALIDATION:
        # issue messages are templated from field names, never from input values
        fields["issues"] = (normalized.details or {}).get("allErrors", [])
        logger.info(f"validation failed: {normalized.code}", extra={"extra_fields": fields})
        return

    fields["errorClass"] = type(error).__name__
    logger.log(
        _LOG_LEVELS[normalized.severity],
        f"request failed: {normalized.code}",
        exc_info=(type(error), error, error.__traceback__),
        extra={"extra_fields": fields},
    )
