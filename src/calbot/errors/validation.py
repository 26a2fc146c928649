"""Schema-validation failures: unwrapping and user-facing messages.

Validation errors reach the normalizer in several shapes. pydantic raises
them directly, FastAPI wraps request bodies in RequestValidationError, and
the RPC dispatcher re-raises them with the original attached as
``__cause__``. Other layers may carry plain issue lists in a ``data`` or
``details`` payload. Each shape has one probe in PROBES; the first probe
that recognises the error wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable, Mapping, Sequence

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

# Issue kinds
MISSING = "missing"
WRONG_TYPE = "wrong_type"
FORMAT = "format"
TOO_SMALL = "too_small"
TOO_BIG = "too_big"
INVALID_ENUM = "invalid_enum"
INVALID_DATE = "invalid_date"
CUSTOM = "custom"
OTHER = "other"

# Input fields commonly reported missing by upload/scope procedures
REQUIRED_FIELD_HINTS = ("userId", "groupId", "fileName", "fileType", "fileSize", "fileData")

_REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")

_FORMAT_TYPES = {
    "string_pattern_mismatch",
    "url_parsing",
    "url_syntax_violation",
    "url_scheme",
    "uuid_parsing",
    "uuid_version",
    "json_invalid",
    "invalid_string",
}
_TOO_SMALL_TYPES = {
    "too_small",
    "string_too_short",
    "too_short",
    "bytes_too_short",
    "greater_than",
    "greater_than_equal",
}
_TOO_BIG_TYPES = {
    "too_big",
    "string_too_long",
    "too_long",
    "bytes_too_long",
    "less_than",
    "less_than_equal",
}
_PARSING_TYPES = {"int_parsing", "float_parsing", "bool_parsing", "int_from_float", "decimal_parsing"}


@dataclass(frozen=True)
class ValidationIssue:
    path: tuple[Any, ...]
    kind: str
    raw_message: str = ""
    context: Mapping[str, Any] = dataclass_field(default_factory=dict)
    expected_type: str | None = None

    @property
    def field(self) -> str:
        return ".".join(str(part) for part in self.path) or "input"

    @property
    def user_message(self) -> str:
        return render_issue(self)


@dataclass(frozen=True)
class StructuredValidationError:
    issues: list[ValidationIssue]
    source: str

    @property
    def first(self) -> ValidationIssue:
        return self.issues[0]

    def details(self) -> dict[str, Any]:
        return {
            "field": self.first.field,
            "issues": [
                {"path": list(issue.path), "kind": issue.kind, "message": issue.user_message}
                for issue in self.issues
            ],
            "allErrors": [issue.user_message for issue in self.issues],
        }

    def technical_message(self) -> str:
        parts = [f"{issue.field}: {issue.raw_message or issue.kind}" for issue in self.issues]
        return "Input validation failed: " + "; ".join(parts)


def classify_kind(error_type: str) -> str:
    """Map a pydantic (or generic) error type to an issue kind."""
    if error_type == "missing":
        return MISSING
    if error_type.startswith(("date", "datetime", "time_", "timezone")) or error_type == "invalid_date":
        return INVALID_DATE
    if error_type in _FORMAT_TYPES:
        return FORMAT
    if error_type in _TOO_SMALL_TYPES:
        return TOO_SMALL
    if error_type in _TOO_BIG_TYPES:
        return TOO_BIG
    if error_type in ("enum", "literal_error", "invalid_enum_value"):
        return INVALID_ENUM
    if error_type in ("value_error", "assertion_error", "custom"):
        return CUSTOM
    if error_type.endswith("_type") or error_type in _PARSING_TYPES or error_type == "invalid_type":
        return WRONG_TYPE
    return OTHER


def render_issue(issue: ValidationIssue) -> str:
    """Localized, field-qualified message for one issue."""
    name = issue.field
    ctx = issue.context
    if issue.kind == MISSING:
        return f"必填欄位「{name}」不能為空"
    if issue.kind == WRONG_TYPE:
        if issue.expected_type:
            return f"欄位「{name}」的資料類型錯誤，期望為 {issue.expected_type}"
        return f"欄位「{name}」的資料類型錯誤"
    if issue.kind == FORMAT:
        return f"欄位「{name}」的格式不正確"
    if issue.kind == TOO_SMALL:
        minimum = _first_present(ctx, "min_length", "ge", "gt", "minimum")
        if minimum is not None:
            return f"欄位「{name}」的值太小或太短，最小值為 {minimum}"
        return f"欄位「{name}」的值太小或太短"
    if issue.kind == TOO_BIG:
        maximum = _first_present(ctx, "max_length", "le", "lt", "maximum")
        if maximum is not None:
            return f"欄位「{name}」的值太大或太長，最大值為 {maximum}"
        return f"欄位「{name}」的值太大或太長"
    if issue.kind == INVALID_ENUM:
        expected = _first_present(ctx, "expected", "options")
        if expected is not None:
            return f"欄位「{name}」的值無效，可選值為：{expected}"
        return f"欄位「{name}」的值無效"
    if issue.kind == INVALID_DATE:
        return f"欄位「{name}」的日期時間格式不正確"
    if issue.kind == CUSTOM and issue.raw_message:
        return f"欄位「{name}」{_strip_custom_prefix(issue.raw_message)}"
    return f"欄位「{name}」驗證失敗"


def _first_present(ctx: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if ctx.get(key) is not None:
            return ctx[key]
    return None


def _strip_custom_prefix(message: str) -> str:
    for prefix in ("Value error, ", "Assertion failed, "):
        if message.startswith(prefix):
            return message[len(prefix):]
    return message


def _clean_path(loc: Sequence[Any]) -> tuple[Any, ...]:
    path = tuple(loc)
    if path and path[0] in _REQUEST_LOCATIONS:
        path = path[1:]
    return path


def _json_safe_ctx(ctx: Mapping[str, Any] | None) -> dict[str, Any]:
    # pydantic puts the raised exception object into ctx["error"]
    if not ctx:
        return {}
    return {
        key: value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
        for key, value in ctx.items()
    }


def issue_from_mapping(raw: Mapping[str, Any]) -> ValidationIssue | None:
    """Build an issue from a pydantic-style or a generic issue mapping."""
    if "type" in raw and "loc" in raw:
        error_type = str(raw["type"])
        expected = None
        if error_type.endswith("_type") or error_type in _PARSING_TYPES:
            expected = error_type.split("_")[0]
        return ValidationIssue(
            path=_clean_path(raw.get("loc") or ()),
            kind=classify_kind(error_type),
            raw_message=str(raw.get("msg", "")),
            context=_json_safe_ctx(raw.get("ctx")),
            expected_type=expected,
        )
    if "code" in raw and "path" in raw:
        code = str(raw["code"])
        kind = classify_kind(code)
        if code == "invalid_type" and raw.get("received") in ("undefined", "null", None):
            kind = MISSING
        return ValidationIssue(
            path=tuple(raw.get("path") or ()),
            kind=kind,
            raw_message=str(raw.get("message", "")),
            context=_json_safe_ctx(raw),
            expected_type=str(raw["expected"]) if raw.get("expected") and kind == WRONG_TYPE else None,
        )
    return None


def _from_issue_list(raw_issues: Any, source: str) -> StructuredValidationError | None:
    if not isinstance(raw_issues, (list, tuple)):
        return None
    issues = [
        issue
        for issue in (issue_from_mapping(raw) for raw in raw_issues if isinstance(raw, Mapping))
        if issue is not None
    ]
    return StructuredValidationError(issues=issues, source=source) if issues else None


# Probes


def probe_direct(exc: BaseException) -> StructuredValidationError | None:
    """A pydantic ValidationError or FastAPI RequestValidationError itself."""
    if isinstance(exc, ValidationError):
        return _from_issue_list(exc.errors(include_url=False), "direct")
    if isinstance(exc, RequestValidationError):
        return _from_issue_list(list(exc.errors()), "direct")
    return None


def probe_cause(exc: BaseException) -> StructuredValidationError | None:
    """``raise Wrapper(...) from validation_error``."""
    cause = exc.__cause__
    if cause is None:
        return None
    result = probe_direct(cause)
    return StructuredValidationError(result.issues, "cause") if result else None


def probe_original(exc: BaseException) -> StructuredValidationError | None:
    """Wrappers that keep the failure on an ``original`` attribute."""
    original = getattr(exc, "original", None)
    if not isinstance(original, BaseException):
        return None
    result = probe_direct(original)
    return StructuredValidationError(result.issues, "original") if result else None


def probe_data_issues(exc: BaseException) -> StructuredValidationError | None:
    """``exc.data == {"issues": [...]}``."""
    data = getattr(exc, "data", None)
    if not isinstance(data, Mapping):
        return None
    return _from_issue_list(data.get("issues"), "data.issues")


_NESTED_DATA_KEYS = ("error", "cause", "validation", "validationError")


def probe_nested_data(exc: BaseException) -> StructuredValidationError | None:
    """Issues one level deeper inside ``exc.data``."""
    data = getattr(exc, "data", None)
    if not isinstance(data, Mapping):
        return None
    for key in _NESTED_DATA_KEYS:
        nested = data.get(key)
        if isinstance(nested, BaseException):
            result = probe_direct(nested)
        elif isinstance(nested, Mapping):
            result = _from_issue_list(nested.get("issues"), f"data.{key}")
        else:
            result = None
        if result is not None:
            return result
    return None


def probe_details_issues(exc: BaseException) -> StructuredValidationError | None:
    """``exc.details[0]["issues"]``."""
    details = getattr(exc, "details", None)
    if not isinstance(details, (list, tuple)) or not details:
        return None
    first = details[0]
    if not isinstance(first, Mapping):
        return None
    return _from_issue_list(first.get("issues"), "details[0].issues")


Probe = Callable[[BaseException], "StructuredValidationError | None"]

PROBES: list[Probe] = [
    probe_direct,
    probe_cause,
    probe_original,
    probe_data_issues,
    probe_nested_data,
    probe_details_issues,
]


def extract_validation(exc: BaseException) -> StructuredValidationError | None:
    """Run PROBES in order and return the first structured result."""
    for probe in PROBES:
        result = probe(exc)
        if result is not None:
            return result
    return None


def looks_like_validation(exc: BaseException) -> bool:
    """Heuristic for validation failures whose issues could not be unwrapped."""
    if "validation" in type(exc).__name__.lower():
        return True
    message = str(exc).lower()
    if "validation" in message or "invalid input" in message:
        return True
    return getattr(exc, "code", None) in ("BAD_REQUEST", "VALIDATION_ERROR")


def synthesize_validation(exc: BaseException) -> StructuredValidationError:
    """Best-effort issue for an opaque validation failure.

    Scans the error's text and attributes for known required-field names and
    reports the first one found as missing.
    """
    serialized = repr(exc)
    attrs = getattr(exc, "__dict__", None)
    if attrs:
        serialized += " " + repr(attrs)
    for name in REQUIRED_FIELD_HINTS:
        if name in serialized:
            issue = ValidationIssue(path=(name,), kind=MISSING, raw_message=str(exc))
            return StructuredValidationError(issues=[issue], source="heuristic")
    issue = ValidationIssue(path=(), kind=OTHER, raw_message=str(exc))
    return StructuredValidationError(issues=[issue], source="heuristic")
