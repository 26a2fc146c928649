"""Error taxonomy: every failure that reaches a caller is a NormalizedError.

A NormalizedError carries two messages: ``message`` is technical and goes to
logs, ``user_message`` is localized (zh-TW) and safe to show in chat or UI.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from calbot.infra.time import utc_now


class ErrorType(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"
    EXTERNAL_API = "external_api"
    DATABASE = "database"
    AI_SERVICE = "ai_service"
    INTERNAL = "internal"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


STATUS_BY_TYPE: dict[ErrorType, int] = {
    ErrorType.VALIDATION: 400,
    ErrorType.AUTHENTICATION: 401,
    ErrorType.AUTHORIZATION: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.RATE_LIMIT: 429,
    ErrorType.EXTERNAL_API: 502,
    ErrorType.DATABASE: 500,
    ErrorType.AI_SERVICE: 503,
    ErrorType.INTERNAL: 500,
}


class NormalizedError(Exception):
    """A classified failure with a concrete HTTP status.

    Attributes:
        type: Taxonomy bucket.
        severity: Drives the log level.
        code: Machine-readable code, e.g. ``MESSAGE_ALREADY_PROCESSED``.
        message: Technical message (logs only).
        user_message: Localized message safe to show to the end user.
        details: Optional field-level details (JSON-serializable).
        status: HTTP status code.
        timestamp: When the error was classified (UTC).
        request_id: Correlation ID of the request, when known.
        logged: Set once the normalizer has logged this error.
    """

    def __init__(
        self,
        type: ErrorType,
        code: str,
        message: str,
        user_message: str,
        *,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: dict[str, Any] | None = None,
        status: int | None = None,
        request_id: str | None = None,
    ):
        super().__init__(message)
        self.type = type
        self.code = code
        self.message = message
        self.user_message = user_message
        self.severity = severity
        self.details = details
        self.status = status if status is not None else STATUS_BY_TYPE[type]
        self.timestamp = utc_now()
        self.request_id = request_id
        self.logged = False

    def __repr__(self) -> str:
        return f"NormalizedError(type={self.type.value!r}, code={self.code!r}, status={self.status})"

    def to_envelope(self) -> dict[str, Any]:
        """Serialize to the wire envelope returned by the RPC surface."""
        envelope: dict[str, Any] = {
            "type": self.type.value,
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details is not None:
            envelope["details"] = self.details
        if self.request_id:
            envelope["requestId"] = self.request_id
        return envelope


# Constructors, one per bucket


def validation_error(
    message: str,
    user_message: str = "輸入資料格式不正確，請檢查後重試",
    *,
    code: str = "VALIDATION_ERROR",
    details: dict[str, Any] | None = None,
) -> NormalizedError:
    return NormalizedError(
        ErrorType.VALIDATION, code, message, user_message,
        severity=ErrorSeverity.LOW, details=details,
    )


def authentication_error(
    message: str,
    user_message: str = "身份驗證失敗，請重新登入",
    *,
    code: str = "AUTHENTICATION_FAILED",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.AUTHENTICATION, code, message, user_message,
        severity=ErrorSeverity.MEDIUM,
    )


def authorization_error(
    message: str,
    user_message: str = "您沒有權限執行此操作",
    *,
    code: str = "ACCESS_DENIED",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.AUTHORIZATION, code, message, user_message,
        severity=ErrorSeverity.MEDIUM,
    )


def not_found_error(resource: str, *, code: str = "RESOURCE_NOT_FOUND") -> NormalizedError:
    return NormalizedError(
        ErrorType.NOT_FOUND, code, f"{resource} not found", f"找不到指定的{_resource_label(resource)}",
        severity=ErrorSeverity.LOW,
    )


def conflict_error(
    message: str,
    user_message: str = "資料衝突，請重新整理後再試",
    *,
    code: str = "RESOURCE_CONFLICT",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.CONFLICT, code, message, user_message,
        severity=ErrorSeverity.MEDIUM,
    )


def rate_limit_error(
    message: str,
    user_message: str = "請求過於頻繁，請稍後再試",
    *,
    code: str = "RATE_LIMIT",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.RATE_LIMIT, code, message, user_message,
        severity=ErrorSeverity.MEDIUM,
    )


def external_api_error(
    service: str,
    message: str,
    user_message: str = "外部服務暫時無法使用，請稍後再試",
    *,
    code: str = "EXTERNAL_API_ERROR",
    details: dict[str, Any] | None = None,
) -> NormalizedError:
    return NormalizedError(
        ErrorType.EXTERNAL_API, code, f"{service}: {message}", user_message,
        severity=ErrorSeverity.HIGH, details=details,
    )


def database_error(
    message: str,
    user_message: str = "資料處理時發生錯誤，請稍後再試",
    *,
    code: str = "DATABASE_ERROR",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.DATABASE, code, message, user_message,
        severity=ErrorSeverity.HIGH,
    )


def ai_service_error(
    message: str,
    user_message: str = "AI 服務暫時無法使用，請稍後再試",
    *,
    code: str = "AI_SERVICE_ERROR",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.AI_SERVICE, code, message, user_message,
        severity=ErrorSeverity.HIGH,
    )


def internal_error(
    message: str,
    user_message: str = "系統發生錯誤，請稍後再試",
    *,
    code: str = "INTERNAL_ERROR",
) -> NormalizedError:
    return NormalizedError(
        ErrorType.INTERNAL, code, message, user_message,
        severity=ErrorSeverity.CRITICAL,
    )


_RESOURCE_LABELS = {
    "event": "行事曆事件",
    "file": "檔案",
    "message": "訊息",
    "procedure": "功能",
}


def _resource_label(resource: str) -> str:
    return _RESOURCE_LABELS.get(resource.lower(), "資源")
