"""File download route, gated like the file procedures."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from calbot.api.auth import resolve_identity
from calbot.api.deps import get_services
from calbot.api.policy import AuthPolicy, authorize_resource
from calbot.errors.normalizer import normalize_error
from calbot.errors.taxonomy import not_found_error
from calbot.infra.storage import ObjectNotFoundError
from calbot.services.container import Services

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{file_id}/content")
async def download_file(
    file_id: str,
    request: Request,
    group_id: str | None = Query(None, alias="groupId"),
    services: Services = Depends(get_services),
) -> Response:
    """Stream a stored file.

    Group files need ``groupId``; personal files need the owner's token.
    """
    try:
        identity = await run_in_threadpool(resolve_identity, request, services.line, AuthPolicy.OPTIONAL)
        stored = await run_in_threadpool(services.datastore.get_file, file_id)
        if stored is None:
            raise not_found_error("file", code="FILE_NOT_FOUND")
        authorize_resource(
            identity,
            owner_id=stored.user_id,
            resource_group_id=stored.group_id,
            supplied_group_id=group_id,
        )
        try:
            content, content_type = await run_in_threadpool(services.storage.get, stored.storage_path)
        except ObjectNotFoundError:
            raise not_found_error("file", code="FILE_CONTENT_NOT_FOUND")
    except Exception as exc:
        normalized = normalize_error(exc, context={"route": "download_file"})
        return JSONResponse(normalized.to_envelope(), status_code=normalized.status)

    disposition = f"attachment; filename*=UTF-8''{quote(stored.file_name)}"
    return Response(content, media_type=content_type, headers={"Content-Disposition": disposition})
