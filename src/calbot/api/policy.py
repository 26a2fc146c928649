"""Per-procedure authorization policy and resource-scope checks.

Every RPC procedure declares how much identity it needs:

- NONE: no identity resolution (group-scoped reads and group file edits,
  where holding the group id is the credential).
- OPTIONAL: identity resolved if a token is present; failures leave the
  caller anonymous. Used by procedures that serve both group and personal
  records, which then apply ``authorize_resource``.
- REQUIRED: a valid identity is needed before the procedure runs.
"""

from __future__ import annotations

from enum import Enum

from calbot.errors.taxonomy import authentication_error, authorization_error

from .auth import LineIdentity


class AuthPolicy(str, Enum):
    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED = "required"


class Procedure(str, Enum):
    HEALTH_CHECK = "healthCheck"
    GET_EVENTS = "getEvents"
    CREATE_EVENT = "createEvent"
    UPDATE_EVENT = "updateEvent"
    DELETE_EVENT = "deleteEvent"
    GET_INCOMPLETE_EXPIRED_EVENTS = "getIncompleteExpiredEvents"
    GET_GROUP_EVENTS = "getGroupEvents"
    GET_GROUP_INCOMPLETE_EXPIRED_EVENTS = "getGroupIncompleteExpiredEvents"
    GET_FILES = "getFiles"
    GET_FILE = "getFile"
    DELETE_FILE = "deleteFile"
    UPDATE_FILE_NAME = "updateFileName"
    UPLOAD_FILE = "uploadFile"
    GET_GROUP_FILES = "getGroupFiles"
    UPDATE_GROUP_FILE_NAME = "updateGroupFileName"
    DELETE_GROUP_FILE = "deleteGroupFile"
    UPLOAD_GROUP_FILE = "uploadGroupFile"


PROCEDURE_POLICIES: dict[Procedure, AuthPolicy] = {
    Procedure.HEALTH_CHECK: AuthPolicy.NONE,
    Procedure.GET_GROUP_EVENTS: AuthPolicy.NONE,
    Procedure.GET_GROUP_INCOMPLETE_EXPIRED_EVENTS: AuthPolicy.NONE,
    Procedure.GET_GROUP_FILES: AuthPolicy.NONE,
    Procedure.UPDATE_GROUP_FILE_NAME: AuthPolicy.NONE,
    Procedure.DELETE_GROUP_FILE: AuthPolicy.NONE,
    Procedure.CREATE_EVENT: AuthPolicy.OPTIONAL,
    Procedure.UPDATE_EVENT: AuthPolicy.OPTIONAL,
    Procedure.DELETE_EVENT: AuthPolicy.OPTIONAL,
    Procedure.GET_EVENTS: AuthPolicy.REQUIRED,
    Procedure.GET_INCOMPLETE_EXPIRED_EVENTS: AuthPolicy.REQUIRED,
    Procedure.GET_FILES: AuthPolicy.REQUIRED,
    Procedure.GET_FILE: AuthPolicy.REQUIRED,
    Procedure.DELETE_FILE: AuthPolicy.REQUIRED,
    Procedure.UPDATE_FILE_NAME: AuthPolicy.REQUIRED,
    Procedure.UPLOAD_FILE: AuthPolicy.REQUIRED,
    Procedure.UPLOAD_GROUP_FILE: AuthPolicy.REQUIRED,
}

_undeclared = set(Procedure) - set(PROCEDURE_POLICIES)
if _undeclared:
    raise RuntimeError(f"procedures without an auth policy: {sorted(p.value for p in _undeclared)}")


def policy_for(procedure: Procedure | str) -> AuthPolicy:
    """Policy of a procedure. Unknown names get REQUIRED."""
    try:
        return PROCEDURE_POLICIES[Procedure(procedure)]
    except ValueError:
        return AuthPolicy.REQUIRED


def require_identity(identity: LineIdentity | None) -> LineIdentity:
    if identity is None:
        raise authentication_error("Authentication required", code="AUTH_REQUIRED")
    return identity


def ensure_self(identity: LineIdentity | None, user_id: str) -> LineIdentity:
    """The caller must be ``user_id``."""
    caller = require_identity(identity)
    if caller.user_id != user_id:
        raise authorization_error("Caller does not match requested user", code="USER_MISMATCH")
    return caller


def authorize_resource(
    identity: LineIdentity | None,
    *,
    owner_id: str,
    resource_group_id: str | None,
    supplied_group_id: str | None,
) -> None:
    """Scope check for mutating an existing event or file.

    ``owner_id`` and ``resource_group_id`` must come from the persisted
    record, never from the request. A group record accepts any caller that
    supplies its group id; a personal record only accepts its owner.

    Raises:
        NormalizedError: authorization (wrong group id, or not the owner) or
            authentication (personal record and no identity).
    """
    if resource_group_id:
        if supplied_group_id != resource_group_id:
            raise authorization_error("Group id does not match resource", code="GROUP_MISMATCH")
        return
    caller = require_identity(identity)
    if caller.user_id != owner_id:
        raise authorization_error("Caller is not the resource owner", code="NOT_OWNER")


def authorize_create(
    identity: LineIdentity | None,
    *,
    owner_id: str,
    group_id: str | None,
) -> None:
    """Scope check for creating a record: group records need no identity."""
    if group_id:
        return
    ensure_self(identity, owner_id)
