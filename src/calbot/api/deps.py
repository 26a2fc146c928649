"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from calbot.errors.taxonomy import internal_error
from calbot.services.container import Services


def get_services(request: Request) -> Services:
    """Services wired for this request by the configuration middleware."""
    services = getattr(request.state, "services", None)
    if services is None:
        raise internal_error("services not initialized for request", code="CONFIGURATION_ERROR")
    return services
