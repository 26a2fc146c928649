"""Procedure name -> (input model, handler)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from calbot.api.policy import Procedure
from calbot.infra.time import utc_now

from . import events, files
from .context import ProcedureContext
from .schemas import (
    CreateEventInput,
    DeleteEventInput,
    EmptyInput,
    GetEventsInput,
    GetFileInput,
    GetFilesInput,
    GetGroupEventsInput,
    GetGroupFilesInput,
    GroupFileInput,
    GroupScopeInput,
    RpcInput,
    UpdateEventInput,
    UpdateFileNameInput,
    UpdateGroupFileNameInput,
    UploadFileInput,
    UploadGroupFileInput,
    UserFileInput,
    UserScopeInput,
)


@dataclass(frozen=True)
class ProcedureSpec:
    input_model: type[RpcInput]
    handler: Callable[[ProcedureContext, Any], Any]


def health_check(ctx: ProcedureContext, data: EmptyInput) -> dict[str, Any]:
    return {"status": "ok", "timestamp": utc_now().isoformat()}


PROCEDURES: dict[Procedure, ProcedureSpec] = {
    Procedure.HEALTH_CHECK: ProcedureSpec(EmptyInput, health_check),
    Procedure.GET_EVENTS: ProcedureSpec(GetEventsInput, events.get_events),
    Procedure.CREATE_EVENT: ProcedureSpec(CreateEventInput, events.create_event),
    Procedure.UPDATE_EVENT: ProcedureSpec(UpdateEventInput, events.update_event),
    Procedure.DELETE_EVENT: ProcedureSpec(DeleteEventInput, events.delete_event),
    Procedure.GET_INCOMPLETE_EXPIRED_EVENTS: ProcedureSpec(UserScopeInput, events.get_incomplete_expired_events),
    Procedure.GET_GROUP_EVENTS: ProcedureSpec(GetGroupEventsInput, events.get_group_events),
    Procedure.GET_GROUP_INCOMPLETE_EXPIRED_EVENTS: ProcedureSpec(
        GroupScopeInput, events.get_group_incomplete_expired_events
    ),
    Procedure.GET_FILES: ProcedureSpec(GetFilesInput, files.get_files),
    Procedure.GET_FILE: ProcedureSpec(GetFileInput, files.get_file),
    Procedure.DELETE_FILE: ProcedureSpec(UserFileInput, files.delete_file),
    Procedure.UPDATE_FILE_NAME: ProcedureSpec(UpdateFileNameInput, files.update_file_name),
    Procedure.UPLOAD_FILE: ProcedureSpec(UploadFileInput, files.upload_file),
    Procedure.GET_GROUP_FILES: ProcedureSpec(GetGroupFilesInput, files.get_group_files),
    Procedure.UPDATE_GROUP_FILE_NAME: ProcedureSpec(UpdateGroupFileNameInput, files.update_group_file_name),
    Procedure.DELETE_GROUP_FILE: ProcedureSpec(GroupFileInput, files.delete_group_file),
    Procedure.UPLOAD_GROUP_FILE: ProcedureSpec(UploadGroupFileInput, files.upload_group_file),
}

_missing = set(Procedure) - set(PROCEDURES)
if _missing:
    raise RuntimeError(f"procedures without a handler: {sorted(p.value for p in _missing)}")
