"""What a procedure handler receives besides its validated input."""

from __future__ import annotations

from dataclasses import dataclass

from calbot.api.auth import LineIdentity
from calbot.services.container import Services


@dataclass(frozen=True)
class ProcedureContext:
    services: Services
    identity: LineIdentity | None = None
