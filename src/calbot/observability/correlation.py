"""Correlation ID management for request tracing.

The same ID is echoed on responses and reused as ``requestId`` in error
envelopes, so a user-reported failure can be matched to its log lines.
"""

import uuid
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Current correlation ID, or an empty string outside a request."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
