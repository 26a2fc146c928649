"""Per-request service wiring.

``create_app`` takes a factory from Settings to Services. Production uses
build_services; tests pass a factory returning in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from calbot.ai.extraction import CalendarExtractionClient
from calbot.infra.datastore import Datastore
from calbot.infra.settings import Settings
from calbot.infra.storage import LocalObjectStorage, ObjectStorage
from calbot.line.client import LineClient


@dataclass
class Services:
    settings: Settings
    datastore: Any  # Datastore or a compatible fake
    line: LineClient
    extractor: CalendarExtractionClient
    storage: ObjectStorage


ServicesFactory = Callable[[Settings], Services]


def build_services(settings: Settings) -> Services:
    return Services(
        settings=settings,
        datastore=Datastore(settings.database_url),
        line=LineClient(settings.line_access_token),
        extractor=CalendarExtractionClient(settings.google_ai_api_key, model=settings.ai_model),
        storage=LocalObjectStorage(settings.storage_root),
    )
