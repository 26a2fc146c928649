"""Input models for RPC procedures. Wire format is camelCase."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_UPLOAD_BYTES = 50 * 1024 * 1024

Id = Annotated[str, Field(min_length=1, max_length=128)]


class RpcInput(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class EmptyInput(RpcInput):
    pass


class PageInput(RpcInput):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# Events


class GetEventsInput(PageInput):
    user_id: Id
    start_time: datetime | None = None
    end_time: datetime | None = None


class GetGroupEventsInput(PageInput):
    group_id: Id
    start_time: datetime | None = None
    end_time: datetime | None = None


class CreateEventInput(RpcInput):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    start: datetime
    end: datetime
    all_day: bool = False
    color: str | None = Field(default=None, max_length=32)
    label: str | None = Field(default=None, max_length=64)
    location: str | None = Field(default=None, max_length=255)
    user_id: Id
    group_id: Id | None = None


class UpdateEventInput(RpcInput):
    id: Id
    group_id: Id | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    start: datetime | None = None
    end: datetime | None = None
    all_day: bool | None = None
    color: str | None = Field(default=None, max_length=32)
    label: str | None = Field(default=None, max_length=64)
    location: str | None = Field(default=None, max_length=255)
    completed: bool | None = None


class DeleteEventInput(RpcInput):
    id: Id
    group_id: Id | None = None


class UserScopeInput(RpcInput):
    user_id: Id


class GroupScopeInput(RpcInput):
    group_id: Id


# Files

SortKey = Literal["createdAt", "fileName", "fileSize"]
SortOrder = Literal["asc", "desc"]


class GetFilesInput(PageInput):
    user_id: Id
    search: str | None = Field(default=None, max_length=255)
    sort_by: SortKey = "createdAt"
    sort_order: SortOrder = "desc"


class GetGroupFilesInput(PageInput):
    group_id: Id
    search: str | None = Field(default=None, max_length=255)
    sort_by: SortKey = "createdAt"
    sort_order: SortOrder = "desc"


class GetFileInput(RpcInput):
    file_id: Id
    group_id: Id | None = None


class UserFileInput(RpcInput):
    file_id: Id
    user_id: Id


class GroupFileInput(RpcInput):
    file_id: Id
    group_id: Id


class UpdateFileNameInput(UserFileInput):
    file_name: str = Field(min_length=1, max_length=255)


class UpdateGroupFileNameInput(GroupFileInput):
    file_name: str = Field(min_length=1, max_length=255)


class UploadFileInput(RpcInput):
    user_id: Id
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(pattern=r"^[\w.+-]+/[\w.+-]+$")
    file_size: int = Field(gt=0, le=MAX_UPLOAD_BYTES)
    # base64, optionally as a data URL ("data:<type>;base64,<payload>")
    file_data: str = Field(min_length=1)


class UploadGroupFileInput(UploadFileInput):
    group_id: Id
