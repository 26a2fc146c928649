"""File procedures: listing, renaming, deleting and uploading backed-up files."""

from __future__ import annotations

import base64
import binascii
import uuid
from typing import Any

from calbot.api.policy import authorize_resource, ensure_self
from calbot.domain.models import Page, StoredFile, storage_path_for
from calbot.errors.taxonomy import not_found_error, validation_error
from calbot.observability.logging import get_logger
from calbot.observability.redaction import safe_log_context

from .context import ProcedureContext
from .schemas import (
    MAX_UPLOAD_BYTES,
    GetFileInput,
    GetFilesInput,
    GetGroupFilesInput,
    GroupFileInput,
    UpdateFileNameInput,
    UpdateGroupFileNameInput,
    UploadFileInput,
    UploadGroupFileInput,
    UserFileInput,
)

logger = get_logger(__name__)


def _load_file(ctx: ProcedureContext, file_id: str) -> StoredFile:
    stored = ctx.services.datastore.get_file(file_id)
    if stored is None:
        raise not_found_error("file", code="FILE_NOT_FOUND")
    return stored


def _authorize(ctx: ProcedureContext, stored: StoredFile, *, group_id: str | None) -> None:
    authorize_resource(
        ctx.identity,
        owner_id=stored.user_id,
        resource_group_id=stored.group_id,
        supplied_group_id=group_id,
    )


def decode_file_data(file_data: str) -> bytes:
    """Decode base64 upload data, accepting a ``data:`` URL prefix.

    Raises:
        NormalizedError: validation, on bad base64 or an oversized payload.
    """
    payload = file_data.split(",", 1)[1] if file_data.startswith("data:") else file_data
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise validation_error(
            "fileData is not valid base64",
            "欄位「fileData」的格式不正確",
            details={"field": "fileData"},
        ) from exc
    if not data:
        raise validation_error("fileData is empty", "必填欄位「fileData」不能為空", details={"field": "fileData"})
    if len(data) > MAX_UPLOAD_BYTES:
        raise validation_error(
            "fileData exceeds upload limit",
            f"檔案大小不能超過 {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
            details={"field": "fileData"},
        )
    return data


def _list(ctx: ProcedureContext, data: GetFilesInput | GetGroupFilesInput, **scope: str) -> dict[str, Any]:
    items, total = ctx.services.datastore.list_files(
        **scope,
        name_filter=data.search,
        sort_by=data.sort_by,
        descending=data.sort_order == "desc",
        limit=data.limit,
        offset=data.offset,
    )
    return Page(items, total, data.page, data.limit).to_api()


def get_files(ctx: ProcedureContext, data: GetFilesInput) -> dict[str, Any]:
    ensure_self(ctx.identity, data.user_id)
    return _list(ctx, data, user_id=data.user_id)


def get_group_files(ctx: ProcedureContext, data: GetGroupFilesInput) -> dict[str, Any]:
    return _list(ctx, data, group_id=data.group_id)


def get_file(ctx: ProcedureContext, data: GetFileInput) -> dict[str, Any]:
    stored = _load_file(ctx, data.file_id)
    _authorize(ctx, stored, group_id=data.group_id)
    return stored.to_api()


def _rename(ctx: ProcedureContext, stored: StoredFile, file_name: str) -> dict[str, Any]:
    renamed = ctx.services.datastore.rename_file(stored.file_id, file_name)
    if renamed is None:
        raise not_found_error("file", code="FILE_NOT_FOUND")
    return renamed.to_api()


def update_file_name(ctx: ProcedureContext, data: UpdateFileNameInput) -> dict[str, Any]:
    ensure_self(ctx.identity, data.user_id)
    stored = _load_file(ctx, data.file_id)
    _authorize(ctx, stored, group_id=None)
    return _rename(ctx, stored, data.file_name)


def update_group_file_name(ctx: ProcedureContext, data: UpdateGroupFileNameInput) -> dict[str, Any]:
    stored = _load_file(ctx, data.file_id)
    _authorize(ctx, stored, group_id=data.group_id)
    return _rename(ctx, stored, data.file_name)


def _delete(ctx: ProcedureContext, stored: StoredFile) -> dict[str, Any]:
    if not ctx.services.datastore.delete_file(stored.file_id):
        raise not_found_error("file", code="FILE_NOT_FOUND")
    try:
        ctx.services.storage.delete(stored.storage_path)
    except Exception as exc:  # metadata row already removed
        logger.warning(
            "failed to delete stored object",
            extra={"extra_fields": safe_log_context(error=type(exc).__name__)},
        )
    return {"success": True, "fileId": stored.file_id}


def delete_file(ctx: ProcedureContext, data: UserFileInput) -> dict[str, Any]:
    ensure_self(ctx.identity, data.user_id)
    stored = _load_file(ctx, data.file_id)
    _authorize(ctx, stored, group_id=None)
    return _delete(ctx, stored)


def delete_group_file(ctx: ProcedureContext, data: GroupFileInput) -> dict[str, Any]:
    stored = _load_file(ctx, data.file_id)
    _authorize(ctx, stored, group_id=data.group_id)
    return _delete(ctx, stored)


def _upload(ctx: ProcedureContext, data: UploadFileInput, *, group_id: str | None) -> dict[str, Any]:
    content = decode_file_data(data.file_data)
    file_id = uuid.uuid4().hex
    key = storage_path_for(file_id, user_id=data.user_id, group_id=group_id)

    storage = ctx.services.storage
    storage.put(key, content, data.file_type)
    try:
        stored = ctx.services.datastore.insert_file(
            file_id=file_id,
            user_id=data.user_id,
            file_name=data.file_name,
            file_size=len(content),
            mime_type=data.file_type,
            group_id=group_id,
        )
    except Exception:
        storage.delete(key)
        raise

    logger.info(
        "file uploaded",
        extra={"extra_fields": safe_log_context(size=len(content), shared=group_id is not None)},
    )
    return stored.to_api()


def upload_file(ctx: ProcedureContext, data: UploadFileInput) -> dict[str, Any]:
    ensure_self(ctx.identity, data.user_id)
    return _upload(ctx, data, group_id=None)


def upload_group_file(ctx: ProcedureContext, data: UploadGroupFileInput) -> dict[str, Any]:
    # uploader is recorded as the owner, so it must be the caller
    ensure_self(ctx.identity, data.user_id)
    return _upload(ctx, data, group_id=data.group_id)
