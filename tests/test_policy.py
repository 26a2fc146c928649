"""Tests for procedure policies and scope checks."""

from __future__ import annotations

import pytest

from calbot.api.auth import LineIdentity
from calbot.api.policy import (
    PROCEDURE_POLICIES,
    AuthPolicy,
    Procedure,
    authorize_create,
    authorize_resource,
    ensure_self,
    policy_for,
)
from calbot.api.procedures.registry import PROCEDURES
from calbot.errors.taxonomy import ErrorType, NormalizedError

OWNER = LineIdentity(user_id="U-owner")
STRANGER = LineIdentity(user_id="U-stranger")


class TestPolicyTable:
    def test_every_procedure_declares_a_policy(self):
        assert set(PROCEDURE_POLICIES) == set(Procedure)

    def test_every_procedure_has_a_handler(self):
        assert set(PROCEDURES) == set(Procedure)

    @pytest.mark.parametrize(
        "name",
        ["getGroupEvents", "getGroupIncompleteExpiredEvents", "getGroupFiles",
         "updateGroupFileName", "deleteGroupFile", "healthCheck"],
    )
    def test_group_reads_need_no_identity(self, name):
        assert policy_for(name) is AuthPolicy.NONE

    @pytest.mark.parametrize("name", ["createEvent", "updateEvent", "deleteEvent"])
    def test_event_mutations_are_optional(self, name):
        assert policy_for(name) is AuthPolicy.OPTIONAL

    @pytest.mark.parametrize("name", ["getEvents", "getFiles", "uploadFile", "uploadGroupFile"])
    def test_personal_procedures_require_identity(self, name):
        assert policy_for(name) is AuthPolicy.REQUIRED

    def test_unknown_procedure_fails_closed(self):
        assert policy_for("dropAllTables") is AuthPolicy.REQUIRED


class TestAuthorizeResource:
    def test_group_resource_with_matching_group(self):
        authorize_resource(None, owner_id="U-owner", resource_group_id="C1", supplied_group_id="C1")

    def test_group_resource_with_wrong_group(self):
        with pytest.raises(NormalizedError) as excinfo:
            authorize_resource(OWNER, owner_id="U-owner", resource_group_id="C1", supplied_group_id="C2")

        assert excinfo.value.type is ErrorType.AUTHORIZATION
        assert excinfo.value.code == "GROUP_MISMATCH"

    def test_group_resource_without_group_rejects_even_owner(self):
        with pytest.raises(NormalizedError) as excinfo:
            authorize_resource(OWNER, owner_id="U-owner", resource_group_id="C1", supplied_group_id=None)

        assert excinfo.value.status == 403

    def test_personal_resource_owner(self):
        authorize_resource(OWNER, owner_id="U-owner", resource_group_id=None, supplied_group_id=None)

    def test_personal_resource_anonymous_is_unauthenticated(self):
        with pytest.raises(NormalizedError) as excinfo:
            authorize_resource(None, owner_id="U-owner", resource_group_id=None, supplied_group_id=None)

        assert excinfo.value.type is ErrorType.AUTHENTICATION
        assert excinfo.value.status == 401

    def test_personal_resource_other_user(self):
        with pytest.raises(NormalizedError) as excinfo:
            authorize_resource(STRANGER, owner_id="U-owner", resource_group_id=None, supplied_group_id=None)

        assert excinfo.value.code == "NOT_OWNER"
        assert excinfo.value.status == 403

    def test_supplied_group_does_not_unlock_personal_resource(self):
        with pytest.raises(NormalizedError):
            authorize_resource(STRANGER, owner_id="U-owner", resource_group_id=None, supplied_group_id="C1")


class TestCreateAndSelf:
    def test_group_create_needs_no_identity(self):
        authorize_create(None, owner_id="U-owner", group_id="C1")

    def test_personal_create_must_be_self(self):
        with pytest.raises(NormalizedError) as excinfo:
            authorize_create(STRANGER, owner_id="U-owner", group_id=None)

        assert excinfo.value.code == "USER_MISMATCH"

    def test_ensure_self_returns_caller(self):
        assert ensure_self(OWNER, "U-owner") is OWNER

    def test_ensure_self_anonymous(self):
        with pytest.raises(NormalizedError) as excinfo:
            ensure_self(None, "U-owner")

        assert excinfo.value.code == "AUTH_REQUIRED"
