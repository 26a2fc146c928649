"""Tests for LINE access-token authentication."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import Request

from calbot.api.auth import (
    extract_bearer_token,
    resolve_identity,
    verify_access_token,
)
from calbot.api.policy import AuthPolicy
from calbot.errors.taxonomy import ErrorType, NormalizedError
from tests.helpers import USER_ID, FakeLineClient, http_error


def _request(authorization: str | None = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode("latin-1")))
    return Request({"type": "http", "method": "POST", "path": "/rpc/x", "headers": headers})


@pytest.fixture
def line():
    client = FakeLineClient()
    client.users["good-token"] = {"sub": USER_ID, "name": "Alice"}
    return client


class TestExtractBearerToken:
    def test_missing_header(self):
        assert extract_bearer_token(_request()) is None

    def test_bearer(self):
        assert extract_bearer_token(_request("Bearer abc")) == "abc"

    def test_scheme_is_case_insensitive(self):
        assert extract_bearer_token(_request("bearer abc")) == "abc"

    def test_malformed(self):
        with pytest.raises(NormalizedError) as excinfo:
            extract_bearer_token(_request("Token"))

        assert excinfo.value.code == "AUTH_INVALID_HEADER"


class TestVerifyAccessToken:
    def test_valid_token(self, line):
        identity = verify_access_token(line, "good-token")

        assert identity.user_id == USER_ID
        assert identity.display_name == "Alice"

    def test_rejected_token(self, line):
        with pytest.raises(NormalizedError) as excinfo:
            verify_access_token(line, "bad-token")

        assert excinfo.value.type is ErrorType.AUTHENTICATION
        assert excinfo.value.code == "INVALID_ACCESS_TOKEN"

    def test_upstream_failure_propagates(self):
        line = MagicMock()
        line.get_userinfo.side_effect = http_error(500, "internal", url="https://api.line.me/oauth2/v2.1/userinfo")

        with pytest.raises(Exception) as excinfo:
            verify_access_token(line, "any")

        assert not isinstance(excinfo.value, NormalizedError)

    def test_payload_without_subject(self):
        line = MagicMock()
        line.get_userinfo.return_value = {"name": "nobody"}

        with pytest.raises(NormalizedError):
            verify_access_token(line, "any")


class TestResolveIdentity:
    def test_none_policy_skips_lookup(self):
        line = MagicMock()

        assert resolve_identity(_request("Bearer good-token"), line, AuthPolicy.NONE) is None
        line.get_userinfo.assert_not_called()

    def test_optional_with_valid_token(self, line):
        identity = resolve_identity(_request("Bearer good-token"), line, AuthPolicy.OPTIONAL)

        assert identity.user_id == USER_ID

    def test_optional_swallows_bad_token(self, line):
        assert resolve_identity(_request("Bearer bad-token"), line, AuthPolicy.OPTIONAL) is None

    def test_optional_swallows_malformed_header(self, line):
        assert resolve_identity(_request("garbage"), line, AuthPolicy.OPTIONAL) is None

    def test_optional_anonymous(self, line):
        assert resolve_identity(_request(), line, AuthPolicy.OPTIONAL) is None

    def test_required_without_token(self, line):
        with pytest.raises(NormalizedError) as excinfo:
            resolve_identity(_request(), line, AuthPolicy.REQUIRED)

        assert excinfo.value.code == "AUTH_MISSING_TOKEN"
        assert excinfo.value.status == 401

    def test_required_with_bad_token(self, line):
        with pytest.raises(NormalizedError) as excinfo:
            resolve_identity(_request("Bearer bad-token"), line, AuthPolicy.REQUIRED)

        assert excinfo.value.code == "INVALID_ACCESS_TOKEN"
