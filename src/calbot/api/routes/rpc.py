"""RPC dispatcher: POST /rpc/{procedure}.

Order per call: policy lookup, identity resolution, input validation,
handler. Every failure leaves as a normalized error envelope.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from calbot.api.auth import resolve_identity
from calbot.api.deps import get_services
from calbot.api.policy import Procedure, policy_for
from calbot.api.procedures.context import ProcedureContext
from calbot.api.procedures.registry import PROCEDURES
from calbot.errors.normalizer import normalize_error
from calbot.errors.taxonomy import not_found_error, validation_error
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context
from calbot.services.container import Services

router = APIRouter(prefix="/rpc", tags=["rpc"])

logger = get_logger(__name__)


class ProcedureInputError(Exception):
    """Input failed its procedure's schema; the pydantic error is ``__cause__``."""

    code = "BAD_REQUEST"


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except ValueError as exc:
        raise validation_error(
            "Request body is not valid JSON",
            "請求內容不是有效的 JSON",
            code="INVALID_JSON",
        ) from exc


def _resolve_procedure(name: str) -> Procedure:
    try:
        return Procedure(name)
    except ValueError:
        raise not_found_error("procedure", code="PROCEDURE_NOT_FOUND")


@router.post("/{procedure_name}")
async def call_procedure(
    procedure_name: str,
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    """Run one procedure.

    Returns:
        200 with the handler's JSON result, or the error envelope with the
        normalized status.
    """
    try:
        identity = await run_in_threadpool(
            resolve_identity, request, services.line, policy_for(procedure_name)
        )
        procedure = _resolve_procedure(procedure_name)
        spec = PROCEDURES[procedure]

        payload = await _read_payload(request)
        try:
            data = spec.input_model.model_validate(payload)
        except ValidationError as exc:
            raise ProcedureInputError("Input validation failed") from exc

        result = await run_in_threadpool(spec.handler, ProcedureContext(services, identity), data)
    except Exception as exc:
        normalized = normalize_error(exc, context={"procedure": procedure_name})
        return JSONResponse(normalized.to_envelope(), status_code=normalized.status)

    logger.info(
        "procedure completed",
        extra={"extra_fields": safe_log_context(procedure=procedure_name, authenticated=identity is not None)},
    )
    return JSONResponse(jsonable_encoder(result))
